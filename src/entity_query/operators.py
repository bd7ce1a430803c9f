"""
Operator vocabulary: core operators, their aliases and classification sets.

The alias table is built once at import time and exposed read-only.
Internal code only ever sees core names after :func:`normalize_operator`.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from .exceptions import InvalidOperatorError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


class FilterOperator(str, Enum):
    """Core operators understood natively by the compiler."""

    # Standard comparison
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    # Membership / range
    IN = "in"
    NIN = "nin"
    BT = "bt"

    # Null/Empty checks
    IS_NULL = "isNull"
    IS_EMPTY = "isEmpty"

    # Collection / string operations
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    CONTAINS_SOME = "containsSome"
    LIKE = "like"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


class LogicalOperator(str, Enum):
    """Group branches and per-attribute combinators."""

    AND = "and"
    OR = "or"
    NOT = "not"


OPERATOR_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        # Equality
        "equalTo": FilterOperator.EQ.value,
        "equal": FilterOperator.EQ.value,
        "===": FilterOperator.EQ.value,
        "==": FilterOperator.EQ.value,
        # Inequality
        "notEqualTo": FilterOperator.NEQ.value,
        "notEqual": FilterOperator.NEQ.value,
        "!==": FilterOperator.NEQ.value,
        "!=": FilterOperator.NEQ.value,
        "<>": FilterOperator.NEQ.value,
        "ne": FilterOperator.NEQ.value,
        # Comparison
        "greaterThan": FilterOperator.GT.value,
        "greaterThen": FilterOperator.GT.value,
        ">": FilterOperator.GT.value,
        "greaterThanOrEqualTo": FilterOperator.GTE.value,
        "greaterThenOrEqualTo": FilterOperator.GTE.value,
        ">=": FilterOperator.GTE.value,
        ">==": FilterOperator.GTE.value,
        "lessThan": FilterOperator.LT.value,
        "lessThen": FilterOperator.LT.value,
        "<": FilterOperator.LT.value,
        "lessThanOrEqualTo": FilterOperator.LTE.value,
        "lessThenOrEqualTo": FilterOperator.LTE.value,
        "<=": FilterOperator.LTE.value,
        "<==": FilterOperator.LTE.value,
        # Range
        "between": FilterOperator.BT.value,
        "bw": FilterOperator.BT.value,
        "><": FilterOperator.BT.value,
        # Lists
        "inList": FilterOperator.IN.value,
        "notInList": FilterOperator.NIN.value,
        "notIn": FilterOperator.NIN.value,
        # Existence
        "exists": FilterOperator.IS_NULL.value,
        # String patterns
        "begins": FilterOperator.STARTS_WITH.value,
        "beginsWith": FilterOperator.STARTS_WITH.value,
        # Contains
        "includes": FilterOperator.CONTAINS.value,
        "has": FilterOperator.CONTAINS.value,
        "includesSome": FilterOperator.CONTAINS_SOME.value,
        "hasSome": FilterOperator.CONTAINS_SOME.value,
        "notIncludes": FilterOperator.NOT_CONTAINS.value,
        "notHas": FilterOperator.NOT_CONTAINS.value,
    }
)

CORE_OPERATORS: frozenset[str] = frozenset(m.value for m in FilterOperator)

NUMERIC_COMPARISON_OPERATORS: frozenset[str] = frozenset(
    {
        FilterOperator.GT.value,
        FilterOperator.GTE.value,
        FilterOperator.LT.value,
        FilterOperator.LTE.value,
        FilterOperator.BT.value,
        "between",
    }
)

ARRAY_OPERATORS: frozenset[str] = frozenset(
    {
        FilterOperator.IN.value,
        FilterOperator.NIN.value,
        FilterOperator.CONTAINS.value,
        FilterOperator.NOT_CONTAINS.value,
        FilterOperator.CONTAINS_SOME.value,
    }
)

# Every spelling accepted at the input boundary
ALL_OPERATORS: frozenset[str] = CORE_OPERATORS | frozenset(OPERATOR_ALIASES)


def normalize_operator(operator: str) -> str:
    """
    Map an alias to its core operator.

    Unrecognised strings pass through unchanged; callers decide whether
    that makes them invalid.

    Example::

        normalize_operator("equalTo")  # "eq"
        normalize_operator(">=")       # "gte"
        normalize_operator("eq")       # "eq"
    """
    if isinstance(operator, FilterOperator):
        return operator.value
    return OPERATOR_ALIASES.get(operator, operator)


def is_core_operator(operator: str) -> bool:
    return operator in CORE_OPERATORS


def is_numeric_operator(operator: str) -> bool:
    """True if the operator compares numerically (values may be coerced)."""
    return normalize_operator(operator) in NUMERIC_COMPARISON_OPERATORS


def is_array_operator(operator: str) -> bool:
    """True if the operator (alias or core) takes a list of values."""
    return normalize_operator(operator) in ARRAY_OPERATORS


def is_valid_operator(operator: str) -> bool:
    """True for core operators and known aliases."""
    return isinstance(operator, str) and operator in ALL_OPERATORS


def is_operator_alias(operator: str, core_operator: str) -> bool:
    """True if *operator* normalises to *core_operator*."""
    return normalize_operator(operator) == normalize_operator(core_operator)


def get_operator_aliases(core_operator: str) -> list[str]:
    """
    Return every spelling of *core_operator*, the core form first.

    Meant for validation and introspection, not for the compile path.
    """
    core = normalize_operator(core_operator)
    aliases = [alias for alias, target in OPERATOR_ALIASES.items() if target == core]
    return [core, *aliases]


def to_core_operator(operator: str, *, path: str | None = None) -> FilterOperator:
    """
    Normalise *operator* and return the matching :class:`FilterOperator`.

    Raises:
        InvalidOperatorError: If the operator is neither core nor an alias.
    """
    if not is_valid_operator(operator):
        raise InvalidOperatorError(str(operator), sorted(ALL_OPERATORS), path=path)
    return FilterOperator(normalize_operator(operator))


def create_operator_matcher(*core_operators: str) -> Callable[[str], bool]:
    """
    Build a predicate matching any spelling of the given core operators.

    Example::

        is_equality = create_operator_matcher("eq", "neq")
        is_equality("!=")  # True
        is_equality("gt")  # False
    """
    targets = frozenset(normalize_operator(op) for op in core_operators)

    def _matches(operator: str) -> bool:
        return normalize_operator(operator) in targets

    return _matches
