"""
Entity schema models and the schema registry boundary.

The engine only *reads* schemas: relation metadata on an attribute tells
the selection resolver which entity to descend into and how the two are
joined.  Plain dicts are accepted through ``model_validate``::

    EntitySchema.model_validate({
        "name": "User",
        "attributes": {
            "userId": {"type": "string"},
            "group": {
                "type": "map",
                "relation": {
                    "entityName": "Group",
                    "type": "many-to-one",
                    "identifiers": {"source": "groupId", "target": "groupId"},
                },
            },
        },
    })
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

RelationType = Literal["one-to-one", "one-to-many", "many-to-one", "many-to-many"]


class IdentifierPair(BaseModel):
    """Join condition: ``source`` on the owning entity, ``target`` on the related one."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str


class RelationMetadata(BaseModel):
    """Relation attached to an attribute definition."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entity_name: str = Field(..., alias="entityName")
    type: RelationType = "many-to-one"
    identifiers: (
        IdentifierPair
        | list[IdentifierPair]
        | Callable[[], IdentifierPair | list[IdentifierPair] | Mapping[str, str]]
    )
    attributes: list[str] | None = Field(
        default=None,
        description="Attributes selected when the relation is requested as a whole",
    )


class AttributeDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "string"
    relation: RelationMetadata | None = None


class EntitySchema(BaseModel):
    """Name plus attribute definitions of one entity."""

    model_config = ConfigDict(frozen=True)

    name: str
    attributes: dict[str, AttributeDefinition] = Field(default_factory=dict)

    def plain_attribute_names(self) -> list[str]:
        """Attributes without relation metadata, in declaration order."""
        return [
            name
            for name, definition in self.attributes.items()
            if definition.relation is None
        ]


@runtime_checkable
class ISchemaRegistry(Protocol):
    """Read-only lookup of entity schemas by name."""

    def has_schema(self, entity_name: str) -> bool:
        """Return True if *entity_name* is registered."""
        ...

    def get_schema(self, entity_name: str) -> EntitySchema:
        """Return the schema for *entity_name*; only called after ``has_schema``."""
        ...


class InMemorySchemaRegistry:
    """Dictionary-backed registry; the input is copied at construction."""

    def __init__(
        self,
        schemas: Mapping[str, EntitySchema | Mapping[str, Any]]
        | list[EntitySchema]
        | None = None,
    ) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        if isinstance(schemas, Mapping):
            for name, schema in schemas.items():
                if isinstance(schema, Mapping) and "name" not in schema:
                    schema = {**schema, "name": name}
                self._register(schema)
        else:
            for schema in schemas or ():
                self._register(schema)

    def _register(self, schema: EntitySchema | Mapping[str, Any]) -> None:
        parsed = (
            schema
            if isinstance(schema, EntitySchema)
            else EntitySchema.model_validate(schema)
        )
        self._schemas[parsed.name] = parsed

    def has_schema(self, entity_name: str) -> bool:
        return entity_name in self._schemas

    def get_schema(self, entity_name: str) -> EntitySchema:
        return self._schemas[entity_name]

    def __len__(self) -> int:
        return len(self._schemas)
