"""Tests for the filter expression compiler."""

from __future__ import annotations

import logging

import pytest

from entity_query.ast import AttributeFilter, FilterGroup, build_filter
from entity_query.compiler import (
    FilterExpressionCompiler,
    compile_filter_expression,
    make_parentheses_group,
)
from entity_query.exceptions import (
    InvalidOperatorError,
    UnknownAttributeError,
    UnsupportedOperationError,
)
from entity_query.operators import FilterOperator


@pytest.fixture
def compile_(attributes, operations):
    def _compile(node):
        return compile_filter_expression(node, attributes, operations)

    return _compile


# -- make_parentheses_group --------------------------------------------------


def test_parentheses_only_around_multiple_items():
    assert make_parentheses_group(["a", "b"], "and") == "( a AND b )"
    assert make_parentheses_group(["a"], "or") == "a"
    assert make_parentheses_group([], "and") == ""


# -- attribute filters -------------------------------------------------------


def test_entity_filter_on_id_attribute(operations):
    assert (
        compile_filter_expression({"id": {"eq": 5}}, {"id": "id"}, operations)
        == "id=5"
    )


def test_entity_filter_compiles_with_and(compile_):
    assert (
        compile_({"name": {"eq": "John"}, "age": {"gt": 18}})
        == "( name=John AND age>18 )"
    )


def test_single_fragment_has_no_parentheses(compile_):
    assert compile_({"attribute": "name", "equalTo": "John"}) == "name=John"


def test_attribute_logical_op_joins_fragments(compile_):
    assert (
        compile_({"attribute": "age", "lt": 18, "gt": 65, "logicalOp": "or"})
        == "( age<18 OR age>65 )"
    )


def test_numeric_operators_coerce_strings(compile_):
    assert compile_({"attribute": "age", "gte": "18"}) == "age>=18"
    node = AttributeFilter("age", {FilterOperator.GT: "18"})
    assert FilterExpressionCompiler({"age": "age"}, {"gt": lambda a, v: v}).compile(
        node
    ) == 18


def test_equality_does_not_coerce(attributes):
    seen = []
    operations = {"eq": lambda a, v: seen.append(v) or f"{a}={v}"}
    compile_filter_expression({"attribute": "name", "eq": "18"}, attributes, operations)
    assert seen == ["18"]


@pytest.mark.parametrize(
    ("operator", "expected"),
    [
        ("in", "( status=a OR status=b )"),
        ("nin", "( status!=a AND status!=b )"),
        ("contains", "( contains(status,a) AND contains(status,b) )"),
        ("containsSome", "( contains(status,a) OR contains(status,b) )"),
        ("notContains", "( notContains(status,a) AND notContains(status,b) )"),
    ],
)
def test_array_operator_semantics(compile_, operator, expected):
    assert compile_({"attribute": "status", operator: ["a", "b"]}) == expected


def test_single_element_array_is_bare(compile_):
    assert compile_({"attribute": "status", "in": "a"}) == "status=a"


def test_between_consumes_range(compile_):
    assert compile_({"age": {"bt": ["18", "65"]}}) == "age BETWEEN 18 AND 65"
    assert compile_({"age": {"between": {"from": 1, "to": 2}}}) == "age BETWEEN 1 AND 2"


@pytest.mark.parametrize(
    ("operator", "expected"),
    [
        ("like", "begins(name,Jo)"),
        ("startsWith", "begins(name,Jo)"),
        ("beginsWith", "begins(name,Jo)"),
        ("endsWith", "endsWith(name,Jo)"),
        ("neq", "name!=Jo"),
        ("<=", "name<=Jo"),
    ],
)
def test_operation_mapping(compile_, operator, expected):
    assert compile_({"attribute": "name", operator: "Jo"}) == expected


def test_is_null_and_exists(compile_):
    assert compile_({"attribute": "email", "isNull": True}) == "exists(email)"
    assert compile_({"attribute": "email", "exists": False}) == "notExists(email)"


def test_is_empty(compile_):
    assert compile_({"attribute": "email", "isEmpty": True}) == "email="
    assert compile_({"attribute": "email", "isEmpty": False}) == "email!="


# -- complex values ----------------------------------------------------------


def test_literal_complex_value(compile_):
    assert compile_({"attribute": "age", "gt": {"val": "21", "label": "Adult"}}) == (
        "age>21"
    )


def test_literal_complex_array_value(compile_):
    assert compile_({"attribute": "status", "in": {"val": ["a", "b"]}}) == (
        "( status=a OR status=b )"
    )


def test_prop_ref_resolves_through_name(compile_):
    assert (
        compile_({"attribute": "updatedAt", "gt": {"val": "createdAt", "valType": "propRef"}})
        == "updatedAt>#createdAt"
    )


def test_prop_ref_without_name_operation_uses_reference(attributes):
    operations = {"eq": lambda a, v: f"{a}={v}"}
    assert (
        compile_filter_expression(
            {"attribute": "score", "eq": {"val": "age", "valType": "propRef"}},
            attributes,
            operations,
        )
        == "score=age"
    )


def test_prop_ref_to_unknown_attribute(compile_):
    with pytest.raises(UnknownAttributeError):
        compile_({"attribute": "age", "gt": {"val": "agee", "valType": "propRef"}})


def test_expression_value_passes_through(compile_, caplog):
    with caplog.at_level(logging.WARNING, logger="entity_query.values"):
        result = compile_(
            {"attribute": "createdAt", "lt": {"val": "now()", "valType": "expression"}}
        )
    assert result == "createdAt<now()"
    assert "now()" in caplog.text


# -- groups ------------------------------------------------------------------


def test_empty_group_compiles_to_empty_string(compile_):
    assert compile_(FilterGroup()) == ""
    assert compile_({"and": [], "or": [], "not": []}) == ""
    assert compile_({}) == ""
    assert compile_({"filterId": "f", "filterLabel": "only metadata"}) == ""


def test_group_branches(compile_):
    expression = compile_(
        {
            "and": [{"attribute": "age", "gt": 18}, {"attribute": "status", "eq": "a"}],
            "or": [{"attribute": "name", "eq": "x"}, {"attribute": "name", "eq": "y"}],
            "not": [{"attribute": "email", "isNull": False}],
        }
    )
    assert expression == (
        "( ( age>18 AND status=a ) AND ( name=x OR name=y ) AND NOT notExists(email) )"
    )


def test_not_branch_negates_every_member(compile_):
    assert compile_(
        {"not": [{"attribute": "status", "eq": "a"}, {"attribute": "age", "lt": 1}]}
    ) == "( NOT status=a AND NOT age<1 )"


def test_single_branch_single_member_is_bare(compile_):
    assert compile_({"or": [{"attribute": "age", "gt": 1}]}) == "age>1"


def test_empty_subgroups_are_dropped(compile_):
    assert compile_({"and": [{"or": []}, {"attribute": "age", "gt": 1}]}) == "age>1"


def test_canonical_tree_compiles(attributes, operations):
    group = build_filter({"name": {"eq": "John"}})
    compiler = FilterExpressionCompiler(attributes, operations)
    assert compiler.compile(group) == "name=John"
    assert compiler.compile(group.and_[0]) == "name=John"


# -- errors ------------------------------------------------------------------


def test_unknown_attribute_suggests(compile_):
    with pytest.raises(UnknownAttributeError) as exc_info:
        compile_({"attribute": "nmae", "eq": "x"})
    assert "name" in exc_info.value.suggestions
    assert exc_info.value.to_dict()["error"] == "UNKNOWN_ATTRIBUTE"


def test_missing_operation_function(attributes):
    with pytest.raises(UnsupportedOperationError) as exc_info:
        compile_filter_expression(
            {"attribute": "name", "endsWith": "x"},
            attributes,
            {"eq": lambda a, v: f"{a}={v}"},
        )
    err = exc_info.value
    assert isinstance(err, InvalidOperatorError)
    assert err.operation == "endsWith"
    assert err.to_dict()["error"] == "UNSUPPORTED_OPERATION"


def test_operation_names_can_be_overridden(attributes):
    operations = {"beginsWith": lambda a, v: f"{a}^={v}"}
    assert (
        compile_filter_expression(
            {"attribute": "name", "like": "Jo"},
            attributes,
            operations,
            operation_names={"begins": "beginsWith"},
        )
        == "name^=Jo"
    )
