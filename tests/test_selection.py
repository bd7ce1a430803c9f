"""Tests for attribute path parsing and selection inference."""

from __future__ import annotations

import pytest

from entity_query.exceptions import RelatedEntityNotFoundError, UnknownAttributeError
from entity_query.schema import (
    EntitySchema,
    IdentifierPair,
    InMemorySchemaRegistry,
    ISchemaRegistry,
    RelationMetadata,
)
from entity_query.selection import (
    RelationSelection,
    infer_selections,
    parse_entity_attribute_paths,
    resolve_identifiers,
    selection_to_dict,
)


def _chain_registry(length: int) -> InMemorySchemaRegistry:
    """E0 -> E1 -> ... -> E<length>, each linked through ``next``."""
    schemas = []
    for i in range(length + 1):
        attributes = {"id": {"type": "string"}}
        if i < length:
            attributes["next"] = {
                "type": "map",
                "relation": {
                    "entityName": f"E{i + 1}",
                    "identifiers": {"source": "nextId", "target": "id"},
                },
            }
        schemas.append({"name": f"E{i}", "attributes": attributes})
    return InMemorySchemaRegistry(schemas)


# -- parse_entity_attribute_paths --------------------------------------------


def test_paths_group_into_tree():
    assert parse_entity_attribute_paths(
        ["user.name", "user.age", "user.address.city", "id"]
    ) == {
        "user": {"name": True, "age": True, "address": {"city": True}},
        "id": True,
    }


def test_branch_wins_over_leaf_in_either_order():
    assert parse_entity_attribute_paths(["a", "a.b"]) == {"a": {"b": True}}
    assert parse_entity_attribute_paths(["a.b", "a"]) == {"a": {"b": True}}


def test_blank_paths_are_ignored():
    assert parse_entity_attribute_paths(["", " ", "a..b"]) == {"a": {"b": True}}


# -- schema registry ---------------------------------------------------------


def test_registry_copies_input_and_satisfies_protocol(schemas):
    registry = InMemorySchemaRegistry(schemas)
    schemas.clear()
    assert isinstance(registry, ISchemaRegistry)
    assert registry.has_schema("User")
    assert registry.get_schema("Group").attributes["tenant"].relation.attributes == [
        "tenantId",
        "name",
    ]
    assert len(registry) == 3


def test_relation_metadata_accepts_alias_and_field_name():
    by_alias = RelationMetadata.model_validate(
        {"entityName": "Group", "identifiers": {"source": "a", "target": "b"}}
    )
    by_name = RelationMetadata(
        entity_name="Group", identifiers=IdentifierPair(source="a", target="b")
    )
    assert by_alias == by_name


def test_resolve_identifiers_variants():
    pair = IdentifierPair(source="groupId", target="id")
    single = RelationMetadata(entity_name="G", identifiers=pair)
    many = RelationMetadata(entity_name="G", identifiers=[pair, pair])
    lazy = RelationMetadata(
        entity_name="G", identifiers=lambda: {"source": "groupId", "target": "id"}
    )
    assert resolve_identifiers(single) == (pair,)
    assert resolve_identifiers(many) == (pair, pair)
    assert resolve_identifiers(lazy) == (pair,)


# -- infer_selections --------------------------------------------------------


def test_plain_attributes_are_true(schema_registry):
    user = schema_registry.get_schema("User")
    assert infer_selections(user, ["userId", "firstName"], schema_registry) == {
        "userId": True,
        "firstName": True,
    }


def test_relation_is_expanded(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(user, ["group.name"], schema_registry)
    group = selection["group"]
    assert group == RelationSelection(
        entity_name="Group",
        relation_type="many-to-one",
        identifiers=(IdentifierPair(source="groupId", target="groupId"),),
        attributes={"name": True},
    )


def test_whole_relation_uses_declared_attributes(schema_registry):
    group = schema_registry.get_schema("Group")
    selection = infer_selections(group, ["tenant"], schema_registry)
    assert selection["tenant"].attributes == {"tenantId": True, "name": True}


def test_whole_relation_defaults_to_plain_attributes(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(user, ["group"], schema_registry)
    assert selection["group"].attributes == {
        "groupId": True,
        "id": True,
        "name": True,
        "tenantId": True,
    }


def test_cycle_is_truncated_per_path(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(
        user, ["group.members.group.id", "userId"], schema_registry
    )
    assert selection["userId"] is True
    members = selection["group"].attributes["members"]
    assert members.entity_name == "User"
    assert members.relation_type == "one-to-many"
    assert members.attributes["group"] == RelationSelection(
        entity_name="Group", skipped_due_to_cycle=True
    )
    assert selection_to_dict(selection)["group"]["attributes"]["members"][
        "attributes"
    ]["group"] == {"entityName": "Group", "skippedDueToCycle": True}


def test_sibling_branches_are_not_pruned(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(
        user,
        ["group.members.group.id", "group.tenant.name", "group.members.firstName"],
        schema_registry,
    )
    group = selection["group"]
    assert group.attributes["tenant"].attributes == {"name": True}
    assert group.attributes["members"].attributes["firstName"] is True


def test_max_depth_truncates_distinct_chain():
    registry = _chain_registry(5)
    root = registry.get_schema("E0")
    selection = infer_selections(
        root, ["next.next.next.next.id"], registry, max_depth=3
    )
    third = selection["next"].attributes["next"].attributes["next"]
    assert third.entity_name == "E3"
    assert not third.skipped_due_to_cycle
    assert third.attributes["next"] == RelationSelection(
        entity_name="E4", skipped_due_to_cycle=True
    )


def test_cyclic_graph_with_small_depth_never_raises(schema_registry):
    user = schema_registry.get_schema("User")
    paths = ["group.members.group.members.group.members.userId"]
    selection = infer_selections(user, paths, schema_registry, max_depth=3)
    assert selection["group"].attributes["members"].attributes["group"] == (
        RelationSelection(entity_name="Group", skipped_due_to_cycle=True)
    )


def test_caller_visited_set_is_honoured(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(
        user, ["group.name"], schema_registry, visited={"Group"}
    )
    assert selection["group"].skipped_due_to_cycle


def test_nested_tree_input_drops_false_entries(schema_registry):
    user = schema_registry.get_schema("User")
    selection = infer_selections(
        user, {"userId": True, "firstName": False, "group": {"name": True}},
        schema_registry,
    )
    assert set(selection) == {"userId", "group"}


def test_unknown_attribute_raises(schema_registry):
    user = schema_registry.get_schema("User")
    with pytest.raises(UnknownAttributeError) as exc_info:
        infer_selections(user, ["frstName"], schema_registry)
    assert exc_info.value.entity_name == "User"
    assert "firstName" in exc_info.value.suggestions


def test_missing_related_entity_raises():
    registry = InMemorySchemaRegistry(
        [
            EntitySchema.model_validate(
                {
                    "name": "Order",
                    "attributes": {
                        "customer": {
                            "relation": {
                                "entityName": "Customer",
                                "identifiers": {"source": "cid", "target": "id"},
                            }
                        }
                    },
                }
            )
        ]
    )
    with pytest.raises(RelatedEntityNotFoundError) as exc_info:
        infer_selections(registry.get_schema("Order"), ["customer.id"], registry)
    assert exc_info.value.to_dict() == {
        "error": "RELATED_ENTITY_NOT_FOUND",
        "entity": "Customer",
        "attribute": "customer",
        "source_entity": "Order",
    }


def test_to_dict_shape(schema_registry):
    group = schema_registry.get_schema("Group")
    selection = infer_selections(group, ["tenant.plan", "name"], schema_registry)
    assert selection_to_dict(selection) == {
        "tenant": {
            "entityName": "Tenant",
            "relationType": "many-to-one",
            "identifiers": [{"source": "tenantId", "target": "tenantId"}],
            "attributes": {"plan": True},
        },
        "name": True,
    }
