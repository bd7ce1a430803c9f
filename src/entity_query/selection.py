"""
Selection path resolver.

Turns requested attribute paths (``"group.members.firstName"``) into a
selection tree, expanding relations through the schema registry.  Cyclic
schema graphs are handled per descent path: a relation whose target
entity is already on the current path, or which would exceed
``max_depth``, is emitted as a truncated node instead of being expanded.
Sibling branches are unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import RelatedEntityNotFoundError, UnknownAttributeError
from .schema import IdentifierPair

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import EntitySchema, ISchemaRegistry, RelationMetadata, RelationType

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5

AttributePathTree = dict[str, Any]


@dataclass(frozen=True)
class RelationSelection:
    """
    An expanded (or truncated) relation in a selection tree.

    ``skipped_due_to_cycle`` nodes carry only the target entity name.
    """

    entity_name: str
    relation_type: RelationType | None = None
    identifiers: tuple[IdentifierPair, ...] = ()
    attributes: dict[str, SelectionNode] = field(default_factory=dict)
    skipped_due_to_cycle: bool = False

    def to_dict(self) -> dict[str, Any]:
        if self.skipped_due_to_cycle:
            return {"entityName": self.entity_name, "skippedDueToCycle": True}
        return {
            "entityName": self.entity_name,
            "relationType": self.relation_type,
            "identifiers": [
                {"source": pair.source, "target": pair.target}
                for pair in self.identifiers
            ],
            "attributes": selection_to_dict(self.attributes),
        }


SelectionNode = bool | RelationSelection


def selection_to_dict(selection: Mapping[str, SelectionNode]) -> dict[str, Any]:
    return {
        name: node.to_dict() if isinstance(node, RelationSelection) else node
        for name, node in selection.items()
    }


def parse_entity_attribute_paths(paths: Iterable[str]) -> AttributePathTree:
    """
    Group dotted paths into a nested tree of ``True`` leaves.

    A name requested both as a leaf and as a branch keeps the branch.

    Example::

        parse_entity_attribute_paths(["user.name", "user.address.city", "id"])
        # {"user": {"name": True, "address": {"city": True}}, "id": True}
    """
    tree: AttributePathTree = {}
    for path in paths:
        parts = [part for part in path.strip().split(".") if part]
        if not parts:
            continue
        node = tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        if not isinstance(node.get(parts[-1]), dict):
            node[parts[-1]] = True
    return tree


def resolve_identifiers(relation: RelationMetadata) -> tuple[IdentifierPair, ...]:
    """Normalise a pair, a list of pairs or a resolver function to a tuple."""
    raw: Any = relation.identifiers
    if callable(raw):
        raw = raw()
    items = raw if isinstance(raw, list | tuple) else [raw]
    return tuple(
        item if isinstance(item, IdentifierPair) else IdentifierPair.model_validate(item)
        for item in items
    )


class SelectionResolver:
    """Resolve attribute path trees against one schema registry."""

    def __init__(
        self,
        registry: ISchemaRegistry,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._registry = registry
        self._max_depth = max_depth

    def resolve(
        self,
        schema: EntitySchema,
        paths: Iterable[str] | Mapping[str, Any],
        *,
        visited: frozenset[str] = frozenset(),
    ) -> dict[str, SelectionNode]:
        tree = (
            paths if isinstance(paths, Mapping) else parse_entity_attribute_paths(paths)
        )
        return self._resolve_tree(schema, tree, visited=frozenset(visited), depth=0)

    def _resolve_tree(
        self,
        schema: EntitySchema,
        tree: Mapping[str, Any],
        *,
        visited: frozenset[str],
        depth: int,
    ) -> dict[str, SelectionNode]:
        result: dict[str, SelectionNode] = {}
        for name, requested in tree.items():
            if not requested:
                continue
            definition = schema.attributes.get(name)
            if definition is None:
                raise UnknownAttributeError(name, schema.name, list(schema.attributes))
            if definition.relation is None:
                result[name] = True
                continue
            result[name] = self._resolve_relation(
                schema,
                name,
                definition.relation,
                requested,
                visited=visited,
                depth=depth,
            )
        return result

    def _resolve_relation(
        self,
        schema: EntitySchema,
        name: str,
        relation: RelationMetadata,
        requested: Any,
        *,
        visited: frozenset[str],
        depth: int,
    ) -> RelationSelection:
        target = relation.entity_name
        if target in visited or depth >= self._max_depth:
            logger.debug(
                "Not expanding %s.%s -> %s (depth=%d, visited=%s)",
                schema.name,
                name,
                target,
                depth,
                sorted(visited),
            )
            return RelationSelection(entity_name=target, skipped_due_to_cycle=True)

        if not self._registry.has_schema(target):
            raise RelatedEntityNotFoundError(target, name, schema.name)
        target_schema = self._registry.get_schema(target)

        if isinstance(requested, Mapping):
            subtree: Mapping[str, Any] = requested
        else:
            names = relation.attributes or target_schema.plain_attribute_names()
            subtree = dict.fromkeys(names, True)

        return RelationSelection(
            entity_name=target,
            relation_type=relation.type,
            identifiers=resolve_identifiers(relation),
            attributes=self._resolve_tree(
                target_schema, subtree, visited=visited | {target}, depth=depth + 1
            ),
        )


def infer_selections(
    schema: EntitySchema,
    paths: Iterable[str] | Mapping[str, Any],
    registry: ISchemaRegistry,
    *,
    origin_entity: str | None = None,
    visited: Iterable[str] = (),
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, SelectionNode]:
    """
    Resolve *paths* on *schema* into a selection tree.

    Args:
        schema: Entity the paths start from.
        paths: Dotted path strings or an already nested tree
            (``False`` entries are dropped).
        registry: Lookup for relation targets.
        origin_entity: Name used in log output; defaults to ``schema.name``.
        visited: Entities already on the caller's descent path.
        max_depth: Relations expanded on one path before truncation.

    Example::

        infer_selections(user_schema, ["group.name", "userId"], registry)
        # {"group": RelationSelection("Group", ..., attributes={"name": True}),
        #  "userId": True}
    """
    logger.debug(
        "Inferring selections for %s from %r", origin_entity or schema.name, paths
    )
    resolver = SelectionResolver(registry, max_depth=max_depth)
    return resolver.resolve(schema, paths, visited=frozenset(visited))
