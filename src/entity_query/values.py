"""
Filter value helpers: complex-value extraction, coercion and shaping.

A filter value is either a bare value or a *complex* value, a mapping
carrying ``val`` plus optional provenance metadata::

    {"val": "createdAt", "valType": "propRef", "label": "Created"}

These are pure-Python helpers with no persistence dependencies.
"""

from __future__ import annotations

import datetime
import json
import logging
import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidRangeFormatError
from .operators import is_numeric_operator

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ValueType(str, Enum):
    """How the compiler resolves the ``val`` of a complex value."""

    LITERAL = "literal"
    PROP_REF = "propRef"
    EXPRESSION = "expression"


# Any run of these characters separates values for array-shaped operators
PARSE_VALUE_DELIMITERS = re.compile(r"(?:&|,|\+|;|:|\.)+")

# Keyword search terms are split on runs of these characters
SEARCH_KEYWORD_DELIMITERS = re.compile(r"(?:&| |,|\+)+")

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?"
    r"(Z|[+-]\d{2}:?\d{2})?$"
)


# ---------------------------------------------------------------------------
# Complex values
# ---------------------------------------------------------------------------


def is_complex_filter_value(payload: Any) -> bool:
    return isinstance(payload, Mapping) and "val" in payload


def value_type_of(payload: Any) -> ValueType:
    """Return the declared ``valType`` of a complex value (default literal)."""
    raw = payload.get("valType") if is_complex_filter_value(payload) else None
    if raw is None:
        return ValueType.LITERAL
    try:
        return ValueType(raw)
    except ValueError:
        logger.warning("Unknown valType %r, treating value as literal", raw)
        return ValueType.LITERAL


def extract_filter_value(
    raw: Any,
    resolve_prop_ref: Callable[[Any], Any] | None = None,
) -> Any:
    """
    Return the comparable value of a filter value.

    - bare values are returned unchanged;
    - ``literal`` complex values yield ``val``;
    - ``propRef`` complex values are handed to *resolve_prop_ref*, which
      turns an attribute name into a reference token;
    - ``expression`` values (``now()``, ``$currentUser``...) are not
      interpreted: ``val`` is passed through unresolved.
    """
    if not is_complex_filter_value(raw):
        return raw

    val = raw["val"]
    value_type = value_type_of(raw)

    if value_type is ValueType.PROP_REF:
        if resolve_prop_ref is None:
            logger.warning(
                "No property reference resolver available, treating %r as literal",
                val,
            )
            return val
        return resolve_prop_ref(val)

    if value_type is ValueType.EXPRESSION:
        logger.warning(
            "Expression filter values are not evaluated, passing %r through", val
        )

    return val


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _is_numeric_string(value: str) -> bool:
    return bool(_NUMBER_RE.match(value.strip()))


def _to_number(value: Any) -> int | float:
    if isinstance(value, int | float):
        return value
    number = float(value)
    is_integral = "." not in value and "e" not in value.lower()
    if is_integral and math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def should_coerce_to_number(value: Any, operator: str) -> bool:
    """
    True iff the normalised operator is numeric and *value* is a number
    or a numeric-looking string.

    Example::

        should_coerce_to_number("123", "gt")  # True
        should_coerce_to_number("abc", "gt")  # False
        should_coerce_to_number("123", "eq")  # False
    """
    if not is_numeric_operator(operator):
        return False
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float):
        return True
    return isinstance(value, str) and _is_numeric_string(value)


def coerce_value(value: Any, operator: str) -> Any:
    """Convert *value* to a number when :func:`should_coerce_to_number` says so."""
    if should_coerce_to_number(value, operator):
        return _to_number(value)
    return value


# ---------------------------------------------------------------------------
# Shaping
# ---------------------------------------------------------------------------


def normalize_to_array(value: Any) -> list[Any]:
    """
    Wrap non-list values in a single-element list.

    Example::

        normalize_to_array("single")    # ["single"]
        normalize_to_array(["a", "b"])  # ["a", "b"]
        normalize_to_array(None)        # [None]
    """
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def normalize_range_value(value: Any) -> tuple[Any, Any]:
    """
    Normalise a range value to a ``(from, to)`` tuple.

    Accepts an ordered sequence with at least two items or a mapping
    with ``from`` and ``to`` keys.

    Raises:
        InvalidRangeFormatError: For any other shape.
    """
    if isinstance(value, list | tuple) and len(value) >= 2:
        return (value[0], value[1])
    if isinstance(value, Mapping) and "from" in value and "to" in value:
        return (value["from"], value["to"])
    raise InvalidRangeFormatError(value)


def split_delimited_value(raw: str) -> list[str]:
    """Split ``"4,34&343+787"`` into ``["4", "34", "343", "787"]``."""
    return [part for part in PARSE_VALUE_DELIMITERS.split(raw) if part != ""]


def split_search_keywords(raw: str | list[str] | None) -> list[str]:
    """Split a search string on spaces, commas, ``+`` and ``&``."""
    if not raw:
        return []
    if isinstance(raw, str):
        return [s for s in SEARCH_KEYWORD_DELIMITERS.split(raw.strip()) if s]
    return [s for s in raw if s]


# ---------------------------------------------------------------------------
# Query-string value typing
# ---------------------------------------------------------------------------


def _parse_datetime(value: str) -> datetime.datetime | None:
    if not _DATE_RE.match(value):
        return None
    try:
        result = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if result.tzinfo is not None:
        result = result.astimezone(datetime.timezone.utc)
    return result


def _parse_string(value: str) -> Any:
    if value == "":
        return value
    if value in ("null", "undefined"):
        return None
    if value in ("true", "false"):
        return value == "true"
    if _is_numeric_string(value):
        return _to_number(value)
    stripped = value.strip()
    if stripped[:1] in ("{", "["):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            pass
    parsed_date = _parse_datetime(stripped)
    if parsed_date is not None:
        return parsed_date
    return value


def parse_query_value(value: Any) -> Any:
    """
    Best-effort typing for values that arrived as query-string text.

    Lists and mappings are parsed recursively (a new container is
    returned); non-string scalars pass through.

    Example::

        parse_query_value("18")            # 18
        parse_query_value(["4", "x"])      # [4, "x"]
        parse_query_value("true")          # True
        parse_query_value("2024-01-15")    # datetime(2024, 1, 15)
    """
    if isinstance(value, str):
        return _parse_string(value)
    if isinstance(value, list | tuple):
        return [parse_query_value(item) for item in value]
    if isinstance(value, Mapping):
        return {key: parse_query_value(item) for key, item in value.items()}
    return value
