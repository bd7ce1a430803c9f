"""
Query-string parameters -> nested raw filter tree.

Keys encode nesting with three interchangeable notations which may be
mixed freely inside one key:

- bracket: ``foo[eq]=1``
- dot: ``foo.eq=1``
- indexed array for group membership: ``or[0].foo.eq=1``, ``or.1[foo][neq]=3``,
  ``or[].foo.eq=1``

Example::

    parse_query_string_parameters({
        "or.0.foo.eq": "1",
        "and.1.baz.nin": "8989",
        "and.1.baz[nin]": "565",
    })
    # {
    #     "or": [{"foo": {"eq": "1"}}],
    #     "and": [{"baz": {"nin": ["8989", "565"]}}],
    # }

Values are left untouched (strings stay strings); operator
normalisation and typing happen later in the AST builder.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .exceptions import FilterParseError
from .operators import LogicalOperator

logger = logging.getLogger(__name__)

GROUP_KEYS: frozenset[str] = frozenset(m.value for m in LogicalOperator)


class _GroupSlots(dict):
    """Group fragments keyed by their (possibly sparse) index while parsing."""


def split_parameter_key(key: str) -> list[str]:
    """
    Split a parameter name into path segments.

    ``"or[0].foo[eq]"`` -> ``["or", "0", "foo", "eq"]``; ``"or[].foo"`` ->
    ``["or", "", "foo"]``.  Text inside brackets is taken literally.

    Raises:
        FilterParseError: On empty keys, empty dot segments or unbalanced
            brackets.
    """
    if not key:
        raise FilterParseError("Empty query parameter name", key=key)

    segments: list[str] = []
    buf: list[str] = []
    i = 0
    while i < len(key):
        ch = key[i]
        if ch == "[":
            close = key.find("]", i)
            if close == -1:
                raise FilterParseError(f"Unbalanced '[' in {key!r}", key=key)
            if buf:
                segments.append("".join(buf))
                buf = []
            elif not segments:
                raise FilterParseError(f"Missing name before '[' in {key!r}", key=key)
            segments.append(key[i + 1 : close])
            i = close + 1
            if i < len(key):
                if key[i] == ".":
                    i += 1
                elif key[i] != "[":
                    raise FilterParseError(
                        f"Unexpected {key[i]!r} after ']' in {key!r}", key=key
                    )
            continue
        if ch == "]":
            raise FilterParseError(f"Unbalanced ']' in {key!r}", key=key)
        if ch == ".":
            if not buf:
                raise FilterParseError(f"Empty segment in {key!r}", key=key)
            segments.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1

    if buf:
        segments.append("".join(buf))
    elif key.endswith("."):
        raise FilterParseError(f"Empty segment in {key!r}", key=key)
    return segments


def _is_index(segment: str) -> bool:
    return segment == "" or segment.isdigit()


def _combine(existing: Any, value: Any) -> list[Any]:
    combined = list(existing) if isinstance(existing, list) else [existing]
    if isinstance(value, list):
        combined.extend(value)
    else:
        combined.append(value)
    return combined


def _set_leaf(
    node: dict[str, Any],
    segment: str,
    value: Any,
    key: str,
    *,
    filter_level: bool,
) -> None:
    existing = node.get(segment)
    if isinstance(existing, dict):
        if not filter_level:
            raise FilterParseError(
                f"Parameter {key!r} mixes a plain value with nested keys", key=key
            )
        # ``foo[neq]=3`` followed by ``foo=1``: the bare value joins as ``eq``
        _set_leaf(existing, "eq", value, key, filter_level=False)
        return
    if segment in node:
        node[segment] = _combine(node[segment], value)
    else:
        node[segment] = list(value) if isinstance(value, list) else value


def _extend_group(slots: _GroupSlots, value: Any, key: str) -> None:
    """Raw mapping / list-of-mapping values supplied directly for a group key."""
    items = value if isinstance(value, list) else [value]
    for item in items:
        if not isinstance(item, Mapping):
            raise FilterParseError(
                f"Group parameter {key!r} needs filter fragments, got {item!r}",
                key=key,
            )
        slots[max(slots, default=-1) + 1] = dict(item)


def _assign(
    node: dict[str, Any],
    segments: list[str],
    value: Any,
    key: str,
    *,
    filter_level: bool = True,
) -> None:
    segment, rest = segments[0], segments[1:]

    if filter_level and segment in GROUP_KEYS:
        slots = node.setdefault(segment, _GroupSlots())
        if not isinstance(slots, _GroupSlots):
            raise FilterParseError(f"Conflicting use of group key {segment!r}", key=key)
        if not rest or rest == [""]:
            _extend_group(slots, value, key)
            return
        if _is_index(rest[0]):
            index = int(rest[0]) if rest[0] else 0
            rest = rest[1:]
        else:
            index = 0
        element = slots.setdefault(index, {})
        if not rest:
            if not isinstance(value, Mapping):
                raise FilterParseError(
                    f"Group parameter {key!r} needs filter fragments, got {value!r}",
                    key=key,
                )
            element.update(value)
            return
        _assign(element, rest, value, key, filter_level=True)
        return

    if segment == "":
        raise FilterParseError(f"Empty segment in {key!r}", key=key)

    # Trailing ``[]`` on a value key only marks it as multi-valued
    while rest and rest[-1] == "":
        rest = rest[:-1]

    if not rest:
        _set_leaf(node, segment, value, key, filter_level=filter_level)
        return

    child = node.get(segment)
    if child is None:
        child = node[segment] = {}
    elif not isinstance(child, dict):
        if not filter_level:
            raise FilterParseError(
                f"Parameter {key!r} nests under a plain value", key=key
            )
        # ``foo=1`` followed by ``foo[neq]=3``: a bare value means ``eq``
        child = node[segment] = {"eq": child}
    _assign(child, rest, value, key, filter_level=False)


def _compact(node: Any) -> Any:
    if isinstance(node, _GroupSlots):
        return [_compact(node[index]) for index in sorted(node)]
    if isinstance(node, dict):
        return {k: _compact(v) for k, v in node.items()}
    return node


def parse_query_string_parameters(
    params: Mapping[str, str | list[str] | None],
) -> dict[str, Any]:
    """
    Convert a flat map of query parameters into a nested raw filter tree.

    - repeated keys that resolve to the same path are combined into a list;
    - top-level ``and`` / ``or`` / ``not`` always produce lists of
      fragments, whatever notation was used;
    - ``None`` values are dropped.
    """
    root: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        segments = split_parameter_key(key)
        _assign(root, segments, value, key)

    parsed = _compact(root)
    logger.debug("Parsed %d query parameters into %r", len(params), parsed)
    return parsed
