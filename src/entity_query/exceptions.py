"""
Filter engine exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``FilterError`` and provide ``to_dict()``
for API-friendly error responses.  Nothing here is transient: every
error is raised synchronously to the immediate caller.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class FilterError(Exception):
    """Base exception for all filter engine errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class FilterParseError(FilterError):
    """Query-string key or filter text could not be parsed."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.message = message
        self.key = key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FILTER_PARSE_ERROR",
            "message": self.message,
            "key": self.key,
        }


class InvalidFilterShapeError(FilterError):
    """
    A node matches neither AttributeFilter, EntityFilter nor FilterGroup.

    ``path`` points at the offending node, e.g. ``<root>.and[1]``.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_FILTER_SHAPE",
            "message": self.message,
            "path": self.path,
        }


class InvalidOperatorError(InvalidFilterShapeError):
    """
    Unknown operator specified.

    Provides fuzzy-matched suggestions for likely intended operators.
    """

    def __init__(
        self,
        operator: str,
        valid_operators: list[str],
        path: str | None = None,
    ) -> None:
        self.operator = operator
        self.valid_operators = valid_operators
        self.suggestions = get_close_matches(
            str(operator), valid_operators, n=3, cutoff=0.6
        )

        message = f"Unknown operator: '{operator}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid operators: {', '.join(sorted(valid_operators)[:10])}..."
        super().__init__(message, path=path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_OPERATOR",
            "operator": self.operator,
            "path": self.path,
            "suggestions": self.suggestions,
            "valid_operators": sorted(self.valid_operators),
        }


class UnsupportedOperationError(InvalidOperatorError):
    """
    The operator is valid but the expression surface has no function for it.

    Happens when e.g. ``endsWith`` is used against a persistence layer that
    only provides ``begins``.
    """

    def __init__(
        self,
        operator: str,
        operation: str,
        available_operations: list[str],
    ) -> None:
        self.operation = operation
        super().__init__(operator, available_operations)
        self.message = (
            f"Operator '{operator}' requires the '{operation}' operation, "
            f"which the expression surface does not provide. "
            f"Available operations: {', '.join(sorted(available_operations))}"
        )
        self.args = (self.message,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_OPERATION",
            "operator": self.operator,
            "operation": self.operation,
            "available_operations": sorted(self.valid_operators),
        }


class InvalidRangeFormatError(FilterError):
    """Range value is neither a 2-item sequence nor a ``{from, to}`` mapping."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Invalid range value format: {value!r}. "
            "Expected [from, to] or {'from': ..., 'to': ...}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_RANGE_FORMAT",
            "message": str(self),
            "value": repr(self.value),
        }


class UnknownAttributeError(FilterError):
    """
    Attribute name is not known to the target entity.

    Uses fuzzy matching to suggest similar valid attribute names.

    Example error message::

        Unknown attribute 'fistName' on 'User'.
        Did you mean one of these?
          • firstName

        Available attributes: age, firstName, lastName
    """

    def __init__(
        self,
        attribute: str,
        entity_name: str | None,
        available_attributes: list[str],
        cutoff: float = 0.6,
    ) -> None:
        self.attribute = attribute
        self.entity_name = entity_name
        self.available_attributes = available_attributes
        self.suggestions = get_close_matches(
            str(attribute), available_attributes, n=5, cutoff=cutoff
        )
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        owner = self.entity_name or "<expression surface>"
        lines = [f"Unknown attribute '{self.attribute}' on '{owner}'."]
        if self.suggestions:
            lines.append("Did you mean one of these?")
            for s in self.suggestions:
                lines.append(f"  • {s}")

        sorted_attributes = sorted(self.available_attributes)
        preview = ", ".join(sorted_attributes[:15])
        if len(sorted_attributes) > 15:
            preview += ", ..."
        lines.append(f"Available attributes: {preview}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_ATTRIBUTE",
            "attribute": self.attribute,
            "entity": self.entity_name,
            "suggestions": self.suggestions,
            "available_attributes": sorted(self.available_attributes),
        }


class RelatedEntityNotFoundError(FilterError):
    """
    A relation points at an entity that the schema registry does not know.
    """

    def __init__(
        self,
        entity_name: str,
        attribute: str,
        source_entity: str | None = None,
    ) -> None:
        self.entity_name = entity_name
        self.attribute = attribute
        self.source_entity = source_entity

        owner = f"'{source_entity}.{attribute}'" if source_entity else f"'{attribute}'"
        super().__init__(
            f"Relation {owner} targets entity '{entity_name}', "
            "which is not registered in the schema registry"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "RELATED_ENTITY_NOT_FOUND",
            "entity": self.entity_name,
            "attribute": self.attribute,
            "source_entity": self.source_entity,
        }


class AttributeNotAllowedError(FilterError):
    """Attribute or operator is not in the resource whitelist."""

    def __init__(self, attribute: str, operator: str | None = None) -> None:
        self.attribute = attribute
        self.operator = operator
        if operator is None:
            message = f"Attribute {attribute!r} is not filterable"
        else:
            message = f"Operator {operator!r} not allowed for attribute {attribute!r}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "ATTRIBUTE_NOT_ALLOWED",
            "attribute": self.attribute,
            "operator": self.operator,
            "message": str(self),
        }
