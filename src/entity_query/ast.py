"""
Canonical filter tree and the builder that produces it.

Clients may describe filters in three shapes, detected in this order:

1. **AttributeFilter** — operators scoped to one attribute::

       {"attribute": "age", "gte": 18, "lt": 65}

2. **FilterGroup** — nested ``and`` / ``or`` / ``not`` branches::

       {"and": [{"attribute": "name", "eq": "John"}, {"or": [...]}]}

3. **EntityFilter** — attribute name -> operator map sugar::

       {"name": {"like": "John"}, "age": {"gte": 18}, "logicalOp": "or"}

Whatever the input, :func:`build_filter` returns a :class:`FilterGroup`
whose leaves are :class:`AttributeFilter` nodes carrying core operators
only.  ``to_dict()`` on either node produces the client wire shape,
which the builder accepts again (saved filter configurations).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from .exceptions import FilterError, InvalidFilterShapeError, InvalidOperatorError
from .operators import (
    ALL_OPERATORS,
    FilterOperator,
    LogicalOperator,
    is_array_operator,
    is_valid_operator,
    normalize_operator,
    to_core_operator,
)
from .values import (
    ValueType,
    is_complex_filter_value,
    normalize_range_value,
    normalize_to_array,
    parse_query_value,
    split_delimited_value,
    value_type_of,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .whitelist import AttributeWhitelist


ATTRIBUTE_KEY = "attribute"
METADATA_KEYS: frozenset[str] = frozenset(
    {"filterId", "filterLabel", "id", "label", "logicalOp"}
)
ENTITY_FILTER_METADATA_KEYS: frozenset[str] = frozenset(
    {"filterId", "filterLabel", "logicalOp"}
)
GROUP_KEYS: tuple[str, ...] = tuple(m.value for m in LogicalOperator)

QUERY_STRING_FILTER_ID = "queryStringParamsToFilterGroup"
KEYWORD_SEARCH_FILTER_ID = "keywordSearchFilterGroup"
MERGED_FILTER_ID = "_addFilterGroupToEntityFilterCriteria"


# ---------------------------------------------------------------------------
# Canonical nodes
# ---------------------------------------------------------------------------


def _value_to_dict(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_value_to_dict(v) for v in value]
    if isinstance(value, list):
        return [_value_to_dict(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _value_to_dict(v) for k, v in value.items()}
    return value


def _metadata_to_dict(filter_id: str | None, filter_label: str | None) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if filter_id is not None:
        result["filterId"] = filter_id
    if filter_label is not None:
        result["filterLabel"] = filter_label
    return result


@dataclass(frozen=True)
class AttributeFilter:
    """
    One or more operator/value pairs scoped to a single attribute.

    Attributes:
        attribute: Attribute name, resolved against the expression surface
            at compile time.
        criteria: Core operator -> value, in the order supplied.  Array
            operators hold lists, ``bt`` holds a ``(from, to)`` tuple;
            complex values keep their ``{"val": ...}`` envelope.
        logical_op: How the per-operator fragments are combined.
    """

    attribute: str
    criteria: dict[FilterOperator, Any]
    logical_op: LogicalOperator = LogicalOperator.AND
    filter_id: str | None = None
    filter_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {ATTRIBUTE_KEY: self.attribute}
        for operator, value in self.criteria.items():
            result[operator.value] = _value_to_dict(value)
        if self.logical_op is not LogicalOperator.AND:
            result["logicalOp"] = self.logical_op.value
        result.update(_metadata_to_dict(self.filter_id, self.filter_label))
        return result


@dataclass(frozen=True)
class FilterGroup:
    """
    Nested boolean group.  A group without populated branches is vacuously
    true and compiles to an empty expression.
    """

    and_: tuple[FilterNode, ...] = field(default_factory=tuple)
    or_: tuple[FilterNode, ...] = field(default_factory=tuple)
    not_: tuple[FilterNode, ...] = field(default_factory=tuple)
    filter_id: str | None = None
    filter_label: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.and_ or self.or_ or self.not_)

    def branches(self) -> Iterator[tuple[LogicalOperator, tuple[FilterNode, ...]]]:
        """Yield ``(operator, nodes)`` for and / or / not, in that order."""
        yield LogicalOperator.AND, self.and_
        yield LogicalOperator.OR, self.or_
        yield LogicalOperator.NOT, self.not_

    def to_dict(self) -> dict[str, Any]:
        result = _metadata_to_dict(self.filter_id, self.filter_label)
        for operator, nodes in self.branches():
            if nodes:
                result[operator.value] = [node.to_dict() for node in nodes]
        return result


FilterNode = AttributeFilter | FilterGroup


# ---------------------------------------------------------------------------
# Shape predicates
# ---------------------------------------------------------------------------


def is_filter_criteria(payload: Any) -> bool:
    """A mapping holding at least one operator key (core or alias)."""
    return isinstance(payload, Mapping) and any(
        is_valid_operator(key) for key in payload
    )


def is_attribute_filter(payload: Any) -> bool:
    return is_filter_criteria(payload) and ATTRIBUTE_KEY in payload


def is_filter_group(payload: Any) -> bool:
    """
    A mapping with at least one ``and`` / ``or`` / ``not`` list and no
    keys besides branches and metadata.
    """
    if not isinstance(payload, Mapping):
        return False
    has_branch = any(isinstance(payload.get(key), list) for key in GROUP_KEYS)
    if not has_branch:
        return False
    return all(key in GROUP_KEYS or key in METADATA_KEYS for key in payload)


def is_entity_filter(payload: Any) -> bool:
    """
    A mapping whose every non-metadata value is an operator map.

    Vacuously true for metadata-only (or empty) mappings, which build to
    an empty group.
    """
    if not isinstance(payload, Mapping) or ATTRIBUTE_KEY in payload:
        return False
    return all(
        is_filter_criteria(value)
        for key, value in payload.items()
        if not _is_entity_metadata(key, value)
    )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def _metadata(raw: Mapping[str, Any]) -> tuple[str | None, str | None]:
    filter_id = raw.get("filterId", raw.get("id"))
    filter_label = raw.get("filterLabel", raw.get("label"))
    return filter_id, filter_label


def _is_entity_metadata(key: str, value: Any) -> bool:
    """Inside an EntityFilter, ``id`` / ``label`` are attributes unless plain."""
    if key in ENTITY_FILTER_METADATA_KEYS:
        return True
    return key in METADATA_KEYS and not isinstance(value, Mapping)


def _entity_metadata(raw: Mapping[str, Any]) -> tuple[str | None, str | None]:
    return _metadata({k: v for k, v in raw.items() if _is_entity_metadata(k, v)})


def _logical_op(
    raw: Mapping[str, Any],
    path: str,
    allowed: Sequence[LogicalOperator],
) -> LogicalOperator:
    value = raw.get("logicalOp")
    if value is None:
        return LogicalOperator.AND
    if isinstance(value, LogicalOperator) and value in allowed:
        return value
    candidate = str(value).lower()
    for operator in allowed:
        if operator.value == candidate:
            return operator
    raise InvalidFilterShapeError(
        f"Invalid logicalOp {value!r}; expected one of "
        f"{', '.join(op.value for op in allowed)}",
        path=f"{path}.logicalOp",
    )


class FilterTreeBuilder:
    """
    Build canonical filter trees from raw client input.

    Fail-fast: the first malformed node raises.  Use :meth:`validate`
    to collect every problem without raising.
    """

    def __init__(self, *, whitelist: AttributeWhitelist | None = None) -> None:
        self._whitelist = whitelist

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    def build(self, raw: Any) -> FilterGroup:
        """Build a root group; a single attribute filter is wrapped in ``and``."""
        node = self.build_node(raw)
        if isinstance(node, AttributeFilter):
            return FilterGroup(and_=(node,))
        return node

    def build_node(self, raw: Any, path: str = "<root>") -> FilterNode:
        """Dispatch on shape and build one node."""
        if isinstance(raw, FilterGroup | AttributeFilter):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidFilterShapeError(
                f"Expected a filter mapping, got {type(raw).__name__}",
                path=path,
            )
        if is_attribute_filter(raw):
            return self._build_attribute_filter(raw, path)
        if is_filter_group(raw):
            return self._build_group(raw, path)
        if is_entity_filter(raw):
            return self._build_entity_filter(raw, path)
        raise self._shape_error(raw, path)

    def build_entity_filter(self, raw: Any, path: str = "<root>") -> FilterGroup:
        """Convert an EntityFilter into a group, rejecting every other shape."""
        if not is_entity_filter(raw):
            raise self._shape_error(raw, path)
        return self._build_entity_filter(raw, path)

    def validate(self, raw: Any) -> list[str]:
        """Return every error message (with its path); empty when valid."""
        errors: list[str] = []
        self._collect_errors(raw, errors, path="<root>")
        return errors

    # ------------------------------------------------------------------ #
    # Internal: recursive build                                           #
    # ------------------------------------------------------------------ #

    def _build_attribute_filter(
        self, raw: Mapping[str, Any], path: str
    ) -> AttributeFilter:
        attribute = raw[ATTRIBUTE_KEY]
        if not isinstance(attribute, str) or not attribute:
            raise InvalidFilterShapeError(
                f"'attribute' must be a non-empty string, got {attribute!r}",
                path=f"{path}.attribute",
            )
        filter_id, filter_label = _metadata(raw)
        return AttributeFilter(
            attribute=attribute,
            criteria=self._build_criteria(attribute, raw, path),
            logical_op=_logical_op(
                raw, path, (LogicalOperator.AND, LogicalOperator.OR)
            ),
            filter_id=filter_id,
            filter_label=filter_label,
        )

    def _build_group(self, raw: Mapping[str, Any], path: str) -> FilterGroup:
        branches: dict[str, tuple[FilterNode, ...]] = {}
        for key in GROUP_KEYS:
            items = raw.get(key)
            if items is None:
                continue
            if not isinstance(items, list):
                raise InvalidFilterShapeError(
                    f"Group branch '{key}' must be a list",
                    path=f"{path}.{key}",
                )
            branches[f"{key}_"] = tuple(
                self.build_node(item, f"{path}.{key}[{idx}]")
                for idx, item in enumerate(items)
            )
        filter_id, filter_label = _metadata(raw)
        return FilterGroup(**branches, filter_id=filter_id, filter_label=filter_label)

    def _build_entity_filter(self, raw: Mapping[str, Any], path: str) -> FilterGroup:
        logical_op = _logical_op(raw, path, tuple(LogicalOperator))
        filters: list[FilterNode] = []
        for attribute, operator_map in raw.items():
            if _is_entity_metadata(attribute, operator_map):
                continue
            attr_path = f"{path}.{attribute}"
            filter_id, filter_label = _metadata(operator_map)
            filters.append(
                AttributeFilter(
                    attribute=attribute,
                    criteria=self._build_criteria(attribute, operator_map, attr_path),
                    logical_op=_logical_op(
                        operator_map,
                        attr_path,
                        (LogicalOperator.AND, LogicalOperator.OR),
                    ),
                    filter_id=filter_id,
                    filter_label=filter_label,
                )
            )
        group_id, group_label = _entity_metadata(raw)
        if not filters:
            return FilterGroup(filter_id=group_id, filter_label=group_label)
        return FilterGroup(
            **{f"{logical_op.value}_": tuple(filters)},
            filter_id=group_id,
            filter_label=group_label,
        )

    def _build_criteria(
        self,
        attribute: str,
        operator_map: Mapping[str, Any],
        path: str,
    ) -> dict[FilterOperator, Any]:
        criteria: dict[FilterOperator, Any] = {}
        spelled: dict[FilterOperator, str] = {}
        for key, value in operator_map.items():
            if key in METADATA_KEYS or key == ATTRIBUTE_KEY:
                continue
            operator = to_core_operator(key, path=f"{path}.{key}")
            if operator in criteria:
                raise InvalidFilterShapeError(
                    f"Operator '{operator.value}' given more than once "
                    f"(as '{spelled[operator]}' and '{key}')",
                    path=f"{path}.{key}",
                )
            if self._whitelist is not None:
                self._whitelist.allow_filter(attribute, operator.value)
            criteria[operator] = self._shape_value(operator, value)
            spelled[operator] = key
        if not criteria:
            raise InvalidFilterShapeError(
                f"No operators given for attribute '{attribute}'", path=path
            )
        return criteria

    def _shape_value(self, operator: FilterOperator, value: Any) -> Any:
        if is_complex_filter_value(value):
            if value_type_of(value) is not ValueType.LITERAL:
                return dict(value)
            return {**value, "val": self._shape_value(operator, value["val"])}
        if is_array_operator(operator.value):
            return normalize_to_array(value)
        if operator is FilterOperator.BT:
            return normalize_range_value(value)
        return value

    def _shape_error(self, raw: Any, path: str) -> FilterError:
        """Pick the most specific error for a mapping that matched no shape."""
        if not isinstance(raw, Mapping):
            return InvalidFilterShapeError(
                f"Expected a filter mapping, got {type(raw).__name__}", path=path
            )
        if ATTRIBUTE_KEY in raw:
            for key in raw:
                if key != ATTRIBUTE_KEY and key not in METADATA_KEYS:
                    return InvalidOperatorError(
                        str(key), sorted(ALL_OPERATORS), path=f"{path}.{key}"
                    )
            return InvalidFilterShapeError(
                f"Attribute filter for '{raw[ATTRIBUTE_KEY]}' has no operators",
                path=path,
            )
        for key, value in raw.items():
            if key in GROUP_KEYS or _is_entity_metadata(key, value):
                continue
            if is_filter_criteria(value):
                continue
            if isinstance(value, Mapping):
                unknown = [
                    k for k in value if k not in METADATA_KEYS and k != ATTRIBUTE_KEY
                ]
                if unknown:
                    return InvalidOperatorError(
                        str(unknown[0]),
                        sorted(ALL_OPERATORS),
                        path=f"{path}.{key}.{unknown[0]}",
                    )
            else:
                return InvalidFilterShapeError(
                    f"'{key}' is not an operator map (got {value!r}); node is not "
                    "an AttributeFilter, EntityFilter or FilterGroup",
                    path=f"{path}.{key}",
                )
        return InvalidFilterShapeError(
            "Node is not an AttributeFilter, EntityFilter or FilterGroup", path=path
        )

    # ------------------------------------------------------------------ #
    # Internal: validation                                                #
    # ------------------------------------------------------------------ #

    def _collect_errors(self, raw: Any, errors: list[str], *, path: str) -> None:
        """Recursive error collection (non-throwing)."""
        if is_filter_group(raw):
            for key in GROUP_KEYS:
                items = raw.get(key)
                if items is None:
                    continue
                if not isinstance(items, list):
                    errors.append(f"{path}.{key}: group branch must be a list")
                    continue
                for idx, item in enumerate(items):
                    self._collect_errors(item, errors, path=f"{path}.{key}[{idx}]")
            return

        if is_entity_filter(raw):
            for key, value in raw.items():
                if _is_entity_metadata(key, value):
                    continue
                self._collect_leaf_errors(
                    {ATTRIBUTE_KEY: key, **value}, errors, path=f"{path}.{key}"
                )
            return

        self._collect_leaf_errors(raw, errors, path=path)

    def _collect_leaf_errors(self, raw: Any, errors: list[str], *, path: str) -> None:
        try:
            self.build_node(raw, path)
        except FilterError as exc:
            errors.append(f"{getattr(exc, 'path', None) or path}: {exc}")


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

_default_builder = FilterTreeBuilder()


def _builder_for(whitelist: AttributeWhitelist | None) -> FilterTreeBuilder:
    if whitelist is None:
        return _default_builder
    return FilterTreeBuilder(whitelist=whitelist)


def build_filter(
    raw: Any, *, whitelist: AttributeWhitelist | None = None
) -> FilterGroup:
    """
    Build the canonical :class:`FilterGroup` for any supported input shape.

    Example::

        build_filter({"name": {"equalTo": "John"}, "age": {">": 18}})
        # FilterGroup(and_=(
        #     AttributeFilter("name", {EQ: "John"}),
        #     AttributeFilter("age", {GT: 18}),
        # ))
    """
    return _builder_for(whitelist).build(raw)


def build_filter_node(raw: Any, path: str = "<root>") -> FilterNode:
    return _default_builder.build_node(raw, path)


def validate_filter(
    raw: Any, *, whitelist: AttributeWhitelist | None = None
) -> list[str]:
    """Validate without raising; returns a list of ``"<path>: message"`` strings."""
    return _builder_for(whitelist).validate(raw)


def entity_filter_to_filter_group(raw: Mapping[str, Any]) -> FilterGroup:
    """
    Convert an EntityFilter to a group, ``and`` being the default branch.

    Example::

        entity_filter_to_filter_group(
            {"logicalOp": "or", "name": {"eq": "John"}, "age": {"gt": 18}}
        )
        # FilterGroup(or_=(AttributeFilter("name", ...), AttributeFilter("age", ...)))

    Raises:
        InvalidFilterShapeError: If *raw* is not an EntityFilter.
    """
    return _default_builder.build_entity_filter(raw)


def _query_string_operator_values(operator_map: Any) -> dict[str, Any]:
    if not isinstance(operator_map, Mapping):
        operator_map = {FilterOperator.EQ.value: operator_map}

    formatted: dict[str, Any] = {}
    for key, value in operator_map.items():
        if isinstance(value, str):
            if is_array_operator(key):
                value = split_delimited_value(value)
            elif normalize_operator(key) == FilterOperator.BT.value:
                # ISO datetimes contain ':' and '.', so ranges split on ',' only
                value = [part.strip() for part in value.split(",")]
        formatted[key] = parse_query_value(value)
    return formatted


def _query_string_fragments(name: str, value: Any) -> list[dict[str, Any]]:
    """One raw fragment per attribute; group keys recurse into nested groups."""
    if name in GROUP_KEYS:
        items = value if isinstance(value, list) else [value]
        fragments: list[dict[str, Any]] = []
        for item in items:
            if not isinstance(item, Mapping):
                raise InvalidFilterShapeError(
                    f"Group '{name}' items must be mappings, got {item!r}",
                    path=name,
                )
            for item_key, item_value in item.items():
                if item_key in GROUP_KEYS:
                    fragments.append(
                        {item_key: _query_string_fragments(item_key, item_value)}
                    )
                else:
                    fragments.extend(_query_string_fragments(item_key, item_value))
        return fragments
    return [{ATTRIBUTE_KEY: name, **_query_string_operator_values(value)}]


def query_string_params_to_filter_group(
    parsed: Mapping[str, Any], *, whitelist: AttributeWhitelist | None = None
) -> FilterGroup:
    """
    Turn a parsed query-string tree into a filter group.

    Top-level ``and`` / ``or`` / ``not`` lists land in their branch; every
    other key is an attribute in the ``and`` branch.  A bare value means
    ``eq``; array-operator strings are split on the value delimiters and
    values are typed with :func:`parse_query_value`.

    Example::

        query_string_params_to_filter_group({"foo": {"eq": "1", "neq": "3"}})
        # FilterGroup(and_=(AttributeFilter("foo", {EQ: 1, NEQ: 3}),),
        #             filter_id="queryStringParamsToFilterGroup")
    """
    raw: dict[str, Any] = {
        "filterId": QUERY_STRING_FILTER_ID,
        "and": [],
        "or": [],
        "not": [],
    }
    for name, value in parsed.items():
        branch = name if name in GROUP_KEYS else LogicalOperator.AND.value
        raw[branch].extend(_query_string_fragments(name, value))
    return build_filter(raw, whitelist=whitelist)


def make_filter_group_for_search_keywords(
    keywords: Sequence[str],
    attribute_names: Sequence[str] = (),
) -> FilterGroup:
    """``OR`` over attributes, each containing every keyword."""
    return FilterGroup(
        or_=tuple(
            AttributeFilter(
                attribute=name,
                criteria={FilterOperator.CONTAINS: list(keywords)},
            )
            for name in attribute_names
        ),
        filter_id=KEYWORD_SEARCH_FILTER_ID,
    )


def add_filter_group_to_filter_criteria(
    filter_group: FilterGroup | Mapping[str, Any],
    criteria: FilterNode | Mapping[str, Any] | None = None,
) -> FilterGroup:
    """
    AND-merge *filter_group* into existing *criteria*.

    A group keeps its id and its ``or`` / ``not`` branches and gets the new
    group appended to ``and``; an attribute or entity filter becomes the
    first ``and`` member of a new group.
    """
    group = build_filter_node(filter_group)
    if criteria is None:
        return FilterGroup(and_=(group,), filter_id=MERGED_FILTER_ID)

    existing = build_filter_node(criteria)
    if isinstance(existing, FilterGroup) and not (
        isinstance(criteria, Mapping) and is_entity_filter(criteria)
    ):
        return replace(existing, and_=(*existing.and_, group))
    return FilterGroup(and_=(existing, group), filter_id=MERGED_FILTER_ID)
