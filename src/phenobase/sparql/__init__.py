"""
SPARQL query construction for PhenoBase.
"""

from phenobase.sparql.ast import (
    IRI,
    Aggregate,
    AskQuery,
    Filter,
    FunctionCall,
    Literal,
    OptionalPattern,
    ZeroOrMorePath,
    SelectQuery,
    TriplePattern,
    Variable,
    WhereClause,
)
from phenobase.sparql.builder import (
    COUNT_VARIABLE,
    count_query,
    escape_regex,
    exists_with_type,
    language_filter,
    paginate,
    substring_filter,
)

__all__ = [
    "IRI",
    "Aggregate",
    "AskQuery",
    "Filter",
    "FunctionCall",
    "Literal",
    "OptionalPattern",
    "ZeroOrMorePath",
    "SelectQuery",
    "TriplePattern",
    "Variable",
    "WhereClause",
    "COUNT_VARIABLE",
    "count_query",
    "escape_regex",
    "exists_with_type",
    "language_filter",
    "paginate",
    "substring_filter",
]
