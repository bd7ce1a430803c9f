"""AttributeWhitelist — per-resource filterable attributes and operators."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import AttributeNotAllowedError
from .operators import normalize_operator

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class AttributeWhitelist:
    """
    Per-resource allowed attributes and operators.

    Operators may be given in any spelling; both sides are normalised, so
    allowing ``"=="`` also allows ``"eq"`` and ``"equalTo"``.  An empty
    operator set allows every operator on that attribute.
    """

    def __init__(
        self,
        *,
        filterable_attributes: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self.filterable_attributes: dict[str, frozenset[str]] = {
            attribute: frozenset(normalize_operator(op) for op in ops)
            for attribute, ops in (filterable_attributes or {}).items()
        }

    def allow_filter(self, attribute: str, operator: str) -> None:
        """Raise AttributeNotAllowedError if attribute or operator is not allowed."""
        if attribute not in self.filterable_attributes:
            raise AttributeNotAllowedError(attribute)
        allowed = self.filterable_attributes[attribute]
        if allowed and normalize_operator(operator) not in allowed:
            raise AttributeNotAllowedError(attribute, operator)
