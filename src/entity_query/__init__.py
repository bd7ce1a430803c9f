from .ast import (
    AttributeFilter,
    FilterGroup,
    FilterNode,
    FilterTreeBuilder,
    add_filter_group_to_filter_criteria,
    build_filter,
    build_filter_node,
    entity_filter_to_filter_group,
    is_attribute_filter,
    is_entity_filter,
    is_filter_group,
    make_filter_group_for_search_keywords,
    query_string_params_to_filter_group,
    validate_filter,
)
from .compiler import (
    DEFAULT_OPERATION_NAMES,
    FilterExpressionCompiler,
    compile_filter_expression,
    make_parentheses_group,
)
from .exceptions import (
    AttributeNotAllowedError,
    FilterError,
    FilterParseError,
    InvalidFilterShapeError,
    InvalidOperatorError,
    InvalidRangeFormatError,
    RelatedEntityNotFoundError,
    UnknownAttributeError,
    UnsupportedOperationError,
)
from .operators import (
    FilterOperator,
    LogicalOperator,
    create_operator_matcher,
    get_operator_aliases,
    is_array_operator,
    is_core_operator,
    is_numeric_operator,
    is_operator_alias,
    is_valid_operator,
    normalize_operator,
)
from .pagination import Pagination
from .query import EntityQuery, parse_entity_query
from .query_string import parse_query_string_parameters
from .schema import (
    AttributeDefinition,
    EntitySchema,
    IdentifierPair,
    InMemorySchemaRegistry,
    ISchemaRegistry,
    RelationMetadata,
)
from .selection import (
    DEFAULT_MAX_DEPTH,
    RelationSelection,
    SelectionNode,
    SelectionResolver,
    infer_selections,
    parse_entity_attribute_paths,
    selection_to_dict,
)
from .values import (
    ValueType,
    coerce_value,
    extract_filter_value,
    normalize_range_value,
    normalize_to_array,
    parse_query_value,
    should_coerce_to_number,
    split_search_keywords,
)
from .whitelist import AttributeWhitelist

__all__ = [
    # Operators
    "FilterOperator",
    "LogicalOperator",
    "normalize_operator",
    "is_core_operator",
    "is_numeric_operator",
    "is_array_operator",
    "is_valid_operator",
    "is_operator_alias",
    "get_operator_aliases",
    "create_operator_matcher",
    # Values
    "ValueType",
    "extract_filter_value",
    "should_coerce_to_number",
    "coerce_value",
    "normalize_to_array",
    "normalize_range_value",
    "parse_query_value",
    "split_search_keywords",
    # Query string
    "parse_query_string_parameters",
    # Filter tree
    "AttributeFilter",
    "FilterGroup",
    "FilterNode",
    "FilterTreeBuilder",
    "build_filter",
    "build_filter_node",
    "validate_filter",
    "is_attribute_filter",
    "is_filter_group",
    "is_entity_filter",
    "entity_filter_to_filter_group",
    "query_string_params_to_filter_group",
    "make_filter_group_for_search_keywords",
    "add_filter_group_to_filter_criteria",
    "AttributeWhitelist",
    # Compiler
    "FilterExpressionCompiler",
    "compile_filter_expression",
    "make_parentheses_group",
    "DEFAULT_OPERATION_NAMES",
    # Schemas / selections
    "AttributeDefinition",
    "EntitySchema",
    "IdentifierPair",
    "RelationMetadata",
    "ISchemaRegistry",
    "InMemorySchemaRegistry",
    "RelationSelection",
    "SelectionNode",
    "SelectionResolver",
    "DEFAULT_MAX_DEPTH",
    "infer_selections",
    "parse_entity_attribute_paths",
    "selection_to_dict",
    # List requests
    "EntityQuery",
    "Pagination",
    "parse_entity_query",
    # Exceptions
    "FilterError",
    "FilterParseError",
    "InvalidFilterShapeError",
    "InvalidOperatorError",
    "UnsupportedOperationError",
    "InvalidRangeFormatError",
    "UnknownAttributeError",
    "RelatedEntityNotFoundError",
    "AttributeNotAllowedError",
]
