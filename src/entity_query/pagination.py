"""Pagination — list-request paging options from query params."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_COUNT = 12
DEFAULT_LIMIT = 250
DEFAULT_PAGES = 1

PAGINATION_KEYS: frozenset[str] = frozenset(
    {"limit", "count", "pages", "order", "cursor"}
)


def _first(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return value[0] if value else None
    return value


def _safe_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


class Pagination(BaseModel):
    """
    Descriptive paging options.  ``cursor`` is opaque to this package and
    handed to the persistence layer untouched.
    """

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=DEFAULT_LIMIT, ge=1)
    count: int = Field(default=DEFAULT_COUNT, ge=1)
    pages: int | Literal["all"] = DEFAULT_PAGES
    order: Literal["asc", "desc"] = "asc"
    cursor: str | None = None

    @classmethod
    def from_query_params(
        cls,
        params: Mapping[str, Any],
        *,
        default_count: int = DEFAULT_COUNT,
        default_limit: int = DEFAULT_LIMIT,
        default_pages: int = DEFAULT_PAGES,
    ) -> Pagination:
        """
        Parse paging options; malformed numbers fall back to the defaults.

        Example::

            Pagination.from_query_params({"count": "20", "pages": "all"})
            # Pagination(limit=250, count=20, pages="all", order="asc", cursor=None)
        """
        raw_pages = _first(params.get("pages"))
        pages: int | Literal["all"]
        if isinstance(raw_pages, str) and raw_pages.strip().lower() == "all":
            pages = "all"
        else:
            pages = _safe_int(raw_pages, default_pages)

        order = _first(params.get("order"))
        cursor = _first(params.get("cursor"))

        return cls(
            limit=_safe_int(_first(params.get("limit")), default_limit),
            count=_safe_int(_first(params.get("count")), default_count),
            pages=pages,
            order="desc" if str(order or "").lower() == "desc" else "asc",
            cursor=str(cursor) if cursor else None,
        )
