"""
Filter tree -> persistence expression string.

The compiler never builds query syntax itself.  It looks attribute names
up in an *attribute reference* map and delegates every comparison to an
*operation function* supplied by the persistence layer::

    attributes = {"name": "#name", "age": "#age"}
    operations = {
        "eq": lambda ref, v: f"{ref} = {v!r}",
        "gt": lambda ref, v: f"{ref} > {v!r}",
        ...
    }
    compile_filter_expression(
        {"name": {"eq": "John"}, "age": {"gt": "18"}}, attributes, operations
    )
    # "( #name = 'John' AND #age > 18 )"

Parentheses are only added around more than one fragment.  An empty
result means "no filter", never "match nothing".
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .ast import AttributeFilter, FilterGroup, build_filter_node
from .exceptions import UnknownAttributeError, UnsupportedOperationError
from .operators import FilterOperator, LogicalOperator
from .values import (
    ValueType,
    coerce_value,
    extract_filter_value,
    is_complex_filter_value,
    normalize_range_value,
    normalize_to_array,
    value_type_of,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .ast import FilterNode

    OperationFunction = Callable[..., str]


# Logical operation -> key looked up in the operations map
DEFAULT_OPERATION_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "eq": "eq",
        "ne": "ne",
        "gt": "gt",
        "gte": "gte",
        "lt": "lt",
        "lte": "lte",
        "between": "between",
        "begins": "begins",
        "endsWith": "endsWith",
        "contains": "contains",
        "notContains": "notContains",
        "exists": "exists",
        "notExists": "notExists",
        "name": "name",
    }
)

_COMPARISON_OPERATIONS: Mapping[FilterOperator, str] = MappingProxyType(
    {
        FilterOperator.EQ: "eq",
        FilterOperator.NEQ: "ne",
        FilterOperator.GT: "gt",
        FilterOperator.GTE: "gte",
        FilterOperator.LT: "lt",
        FilterOperator.LTE: "lte",
        FilterOperator.LIKE: "begins",
        FilterOperator.STARTS_WITH: "begins",
        FilterOperator.ENDS_WITH: "endsWith",
    }
)

# Array operator -> (per-element operation, joining keyword)
_ARRAY_OPERATIONS: Mapping[FilterOperator, tuple[str, LogicalOperator]] = (
    MappingProxyType(
        {
            FilterOperator.IN: ("eq", LogicalOperator.OR),
            FilterOperator.NIN: ("ne", LogicalOperator.AND),
            FilterOperator.CONTAINS: ("contains", LogicalOperator.AND),
            FilterOperator.CONTAINS_SOME: ("contains", LogicalOperator.OR),
            FilterOperator.NOT_CONTAINS: ("notContains", LogicalOperator.AND),
        }
    )
)


def make_parentheses_group(items: Sequence[str], delimiter: str) -> str:
    """
    Join *items* with *delimiter*, parenthesised only when there are two
    or more.

    Example::

        make_parentheses_group(["a", "b"], "and")  # "( a AND b )"
        make_parentheses_group(["a"], "and")       # "a"
        make_parentheses_group([], "and")          # ""
    """
    if len(items) > 1:
        return "( " + f" {delimiter.upper()} ".join(items) + " )"
    if items:
        return items[0]
    return ""


class FilterExpressionCompiler:
    """
    Compile canonical (or raw) filter nodes against one expression surface.

    Args:
        attributes: Attribute name -> persistence reference.
        operations: Operation name -> fragment function.
        operation_names: Overrides for :data:`DEFAULT_OPERATION_NAMES`, e.g.
            ``{"begins": "beginsWith"}`` when the surface spells it that way.
    """

    def __init__(
        self,
        attributes: Mapping[str, Any],
        operations: Mapping[str, OperationFunction],
        *,
        operation_names: Mapping[str, str] | None = None,
    ) -> None:
        self._attributes = attributes
        self._operations = operations
        self._operation_names = {**DEFAULT_OPERATION_NAMES, **(operation_names or {})}

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    def compile(self, node: FilterNode | Mapping[str, Any]) -> str:
        """Compile any filter shape; raw mappings are built first."""
        if isinstance(node, AttributeFilter):
            return self._compile_attribute_filter(node)
        if isinstance(node, FilterGroup):
            return self._compile_group(node)
        return self.compile(build_filter_node(node))

    # ------------------------------------------------------------------ #
    # Nodes                                                               #
    # ------------------------------------------------------------------ #

    def _compile_group(self, group: FilterGroup) -> str:
        parts: list[str] = []
        for operator, nodes in group.branches():
            fragments = [f for f in (self.compile(n) for n in nodes) if f]
            if not fragments:
                continue
            if operator is LogicalOperator.NOT:
                # Conjunctive negation: every member must be false
                fragments = [f"NOT {fragment}" for fragment in fragments]
                parts.append(make_parentheses_group(fragments, "AND"))
            else:
                parts.append(make_parentheses_group(fragments, operator.value))
        return make_parentheses_group(parts, LogicalOperator.AND.value)

    def _compile_attribute_filter(self, node: AttributeFilter) -> str:
        ref = self._attribute_ref(node.attribute)
        fragments: list[str] = []
        for operator, value in node.criteria.items():
            fragment = self._compile_criterion(ref, operator, value)
            if fragment:
                fragments.append(fragment)
        return make_parentheses_group(fragments, node.logical_op.value)

    def _compile_criterion(self, ref: Any, operator: FilterOperator, raw: Any) -> str:
        if operator in _COMPARISON_OPERATIONS:
            fn = self._operation(_COMPARISON_OPERATIONS[operator], operator)
            return fn(ref, self._value(raw, operator))

        if operator in _ARRAY_OPERATIONS:
            name, joiner = _ARRAY_OPERATIONS[operator]
            fn = self._operation(name, operator)
            items = normalize_to_array(self._unwrap(raw))
            return make_parentheses_group(
                [fn(ref, self._value(item, operator)) for item in items],
                joiner.value,
            )

        if operator is FilterOperator.BT:
            fn = self._operation("between", operator)
            low, high = normalize_range_value(self._unwrap(raw))
            return fn(ref, self._value(low, operator), self._value(high, operator))

        if operator is FilterOperator.IS_NULL:
            name = "exists" if self._unwrap(raw) else "notExists"
            return self._operation(name, operator)(ref)

        if operator is FilterOperator.IS_EMPTY:
            name = "eq" if self._unwrap(raw) else "ne"
            return self._operation(name, operator)(ref, "")

        raise UnsupportedOperationError(
            operator.value, operator.value, sorted(self._operations)
        )

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _attribute_ref(self, attribute: str) -> Any:
        try:
            return self._attributes[attribute]
        except KeyError:
            raise UnknownAttributeError(
                attribute, None, [str(name) for name in self._attributes]
            ) from None

    def _operation(self, name: str, operator: FilterOperator) -> OperationFunction:
        key = self._operation_names.get(name, name)
        fn = self._operations.get(key)
        if fn is None:
            raise UnsupportedOperationError(
                operator.value, key, [str(op) for op in self._operations]
            )
        return fn

    def _resolve_prop_ref(self, attribute: Any) -> Any:
        ref = self._attribute_ref(attribute)
        name_fn = self._operations.get(self._operation_names["name"])
        return name_fn(ref) if name_fn is not None else ref

    def _unwrap(self, raw: Any) -> Any:
        """Strip a literal envelope around a container value (list, range, flag)."""
        if is_complex_filter_value(raw) and value_type_of(raw) is ValueType.LITERAL:
            return raw["val"]
        return raw

    def _value(self, raw: Any, operator: FilterOperator) -> Any:
        value = extract_filter_value(raw, self._resolve_prop_ref)
        if is_complex_filter_value(raw) and value_type_of(raw) is not ValueType.LITERAL:
            return value
        return coerce_value(value, operator.value)


def compile_filter_expression(
    node: FilterNode | Mapping[str, Any],
    attributes: Mapping[str, Any],
    operations: Mapping[str, OperationFunction],
    *,
    operation_names: Mapping[str, str] | None = None,
) -> str:
    """Functional shortcut for :class:`FilterExpressionCompiler`."""
    compiler = FilterExpressionCompiler(
        attributes, operations, operation_names=operation_names
    )
    return compiler.compile(node)
