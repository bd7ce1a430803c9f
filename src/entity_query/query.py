"""
EntityQuery — a list request parsed from query-string parameters.

Reserved keys are picked off first (paging, ``filters``, ``attributes``,
``search``, ``searchAttributes``); every other key is a query-string
filter in bracket / dot / indexed notation.  Both filter sources end up
AND-merged in :attr:`EntityQuery.filters`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from .ast import (
    FilterGroup,
    add_filter_group_to_filter_criteria,
    build_filter,
    make_filter_group_for_search_keywords,
    query_string_params_to_filter_group,
)
from .exceptions import FilterParseError
from .pagination import PAGINATION_KEYS, Pagination
from .query_string import parse_query_string_parameters
from .values import split_search_keywords

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .whitelist import AttributeWhitelist

logger = logging.getLogger(__name__)

RESERVED_KEYS: frozenset[str] = PAGINATION_KEYS | frozenset(
    {"filters", "attributes", "search", "searchAttributes"}
)


def _split_names(value: Any) -> list[str] | None:
    """``"a,b"`` / ``["a", "b,c"]`` -> ``["a", "b", "c"]``; ``None`` when absent."""
    if value is None:
        return None
    items = [value] if isinstance(value, str) else list(value)
    names = [
        name.strip() for item in items for name in str(item).split(",") if name.strip()
    ]
    return names or None


def _merge(current: FilterGroup, extra: FilterGroup) -> FilterGroup:
    if extra.is_empty:
        return current
    if current.is_empty:
        return extra
    return add_filter_group_to_filter_criteria(extra, current)


@dataclass(frozen=True)
class EntityQuery:
    """Parsed list request."""

    attributes: list[str] | None = None
    filters: FilterGroup = field(default_factory=FilterGroup)
    search: list[str] = field(default_factory=list)
    search_attributes: list[str] | None = None
    pagination: Pagination = field(default_factory=Pagination)

    def with_search_filters(self, default_attributes: Sequence[str] = ()) -> EntityQuery:
        """
        AND-merge a keyword search group into :attr:`filters`.

        Keywords are matched with ``contains`` against ``search_attributes``,
        or *default_attributes* when none were requested.  Without keywords
        the query is returned unchanged.
        """
        if not self.search:
            return self
        attribute_names = self.search_attributes or list(default_attributes)
        if not attribute_names:
            logger.warning(
                "Search keywords %r given without searchable attributes, ignoring",
                self.search,
            )
            return self
        search_group = make_filter_group_for_search_keywords(
            self.search, attribute_names
        )
        return replace(
            self,
            search_attributes=list(attribute_names),
            filters=add_filter_group_to_filter_criteria(search_group, self.filters),
        )


def _parse_filters(raw: Any, whitelist: AttributeWhitelist | None) -> FilterGroup:
    if raw is None or raw == "":
        return FilterGroup()
    if isinstance(raw, list) and len(raw) == 1:
        raw = raw[0]
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise FilterParseError(
                f"'filters' is not valid JSON: {exc.msg}", key="filters"
            ) from exc
    if not isinstance(raw, Mapping):
        raise FilterParseError(
            f"'filters' must be an object, got {type(raw).__name__}", key="filters"
        )
    return build_filter(raw, whitelist=whitelist)


def parse_entity_query(
    params: Mapping[str, Any],
    *,
    whitelist: AttributeWhitelist | None = None,
    default_count: int | None = None,
    default_limit: int | None = None,
) -> EntityQuery:
    """
    Parse a list request.

    Example::

        parse_entity_query({
            "attributes": "id,name",
            "search": "john doe",
            "age[gte]": "18",
            "count": "20",
        })
        # EntityQuery(attributes=["id", "name"], search=["john", "doe"],
        #             filters=FilterGroup(and_=(AttributeFilter("age", {GTE: 18}),), ...),
        #             pagination=Pagination(count=20, ...))

    Raises:
        FilterParseError: Malformed ``filters`` text or query keys.
        InvalidFilterShapeError: Filters that match no filter shape.
    """
    pagination_defaults: dict[str, int] = {}
    if default_count is not None:
        pagination_defaults["default_count"] = default_count
    if default_limit is not None:
        pagination_defaults["default_limit"] = default_limit

    filters = _parse_filters(params.get("filters"), whitelist)

    remaining = {k: v for k, v in params.items() if k not in RESERVED_KEYS}
    if remaining:
        parsed = parse_query_string_parameters(remaining)
        filters = _merge(
            filters, query_string_params_to_filter_group(parsed, whitelist=whitelist)
        )

    search = params.get("search")
    if isinstance(search, list):
        search = " ".join(str(s) for s in search)

    return EntityQuery(
        attributes=_split_names(params.get("attributes")),
        filters=filters,
        search=split_search_keywords(search),
        search_attributes=_split_names(params.get("searchAttributes")),
        pagination=Pagination.from_query_params(params, **pagination_defaults),
    )
