"""Shared fixtures for entity_query tests."""

from __future__ import annotations

import pytest

from entity_query import InMemorySchemaRegistry


@pytest.fixture
def attributes():
    """Attribute reference map where every reference is the attribute name."""
    return {
        name: name
        for name in (
            "name",
            "age",
            "email",
            "status",
            "tags",
            "createdAt",
            "updatedAt",
            "score",
        )
    }


@pytest.fixture
def operations():
    """Fragment functions rendering a small readable expression syntax."""
    return {
        "eq": lambda a, v: f"{a}={v}",
        "ne": lambda a, v: f"{a}!={v}",
        "gt": lambda a, v: f"{a}>{v}",
        "gte": lambda a, v: f"{a}>={v}",
        "lt": lambda a, v: f"{a}<{v}",
        "lte": lambda a, v: f"{a}<={v}",
        "between": lambda a, lo, hi: f"{a} BETWEEN {lo} AND {hi}",
        "begins": lambda a, v: f"begins({a},{v})",
        "endsWith": lambda a, v: f"endsWith({a},{v})",
        "contains": lambda a, v: f"contains({a},{v})",
        "notContains": lambda a, v: f"notContains({a},{v})",
        "exists": lambda a: f"exists({a})",
        "notExists": lambda a: f"notExists({a})",
        "name": lambda a: f"#{a}",
    }


@pytest.fixture
def schemas():
    """User <-> Group cycle plus a plain Tenant entity."""
    return {
        "User": {
            "name": "User",
            "attributes": {
                "userId": {"type": "string"},
                "firstName": {"type": "string"},
                "groupId": {"type": "string"},
                "group": {
                    "type": "map",
                    "relation": {
                        "entityName": "Group",
                        "type": "many-to-one",
                        "identifiers": {"source": "groupId", "target": "groupId"},
                    },
                },
            },
        },
        "Group": {
            "name": "Group",
            "attributes": {
                "groupId": {"type": "string"},
                "id": {"type": "string"},
                "name": {"type": "string"},
                "tenantId": {"type": "string"},
                "members": {
                    "type": "list",
                    "relation": {
                        "entityName": "User",
                        "type": "one-to-many",
                        "identifiers": [{"source": "groupId", "target": "groupId"}],
                    },
                },
                "tenant": {
                    "type": "map",
                    "relation": {
                        "entityName": "Tenant",
                        "type": "many-to-one",
                        "identifiers": {"source": "tenantId", "target": "tenantId"},
                        "attributes": ["tenantId", "name"],
                    },
                },
            },
        },
        "Tenant": {
            "name": "Tenant",
            "attributes": {
                "tenantId": {"type": "string"},
                "name": {"type": "string"},
                "plan": {"type": "string"},
            },
        },
    }


@pytest.fixture
def schema_registry(schemas):
    return InMemorySchemaRegistry(schemas)
