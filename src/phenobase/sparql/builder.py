"""
Helpers for assembling search and count queries from AST nodes.

All helpers are pure: they return new nodes and never mutate their inputs,
so a count query derived from a search query cannot leak back into it.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional
import re

from phenobase.models import Page
from phenobase.sparql.ast import (
    IRI,
    Aggregate,
    AskQuery,
    Disjunction,
    Equals,
    Filter,
    FunctionCall,
    Literal,
    SelectQuery,
    TriplePattern,
    Variable,
    WhereClause,
    ZeroOrMorePath,
)
from phenobase.vocabulary import RDF_TYPE, RDFS_SUBCLASS_OF

COUNT_VARIABLE = "count"

# XPath regex metacharacters (SPARQL REGEX follows XPath fn:matches)
_REGEX_META = re.compile(r"([\\.*+?^${}()|\[\]\-])")


def escape_regex(text: str) -> str:
    """Escape regex metacharacters so that ``text`` matches literally."""
    return _REGEX_META.sub(r"\\\1", text)


def language_filter(variable: Variable, language: str) -> Filter:
    """
    Keep untagged literals and literals whose tag matches ``language``.

    FILTER((LANG(?v) = "" || LANGMATCHES(LANG(?v), "en")))

    LANGMATCHES compares language ranges case-insensitively, so "en" also
    matches "EN" and "en-GB".
    """
    lang = FunctionCall("LANG", [variable])
    return Filter(Disjunction([
        Equals(lang, Literal("")),
        FunctionCall("LANGMATCHES", [FunctionCall("LANG", [variable]), Literal(language)]),
    ]))


def substring_filter(variable: Variable, text: str) -> Filter:
    """Case-insensitive "contains" filter on a bound literal."""
    return Filter(FunctionCall("REGEX", [variable, Literal(escape_regex(text)), Literal("i")]))


def type_closure(type_term: Variable, root: str) -> TriplePattern:
    """``?type rdfs:subClassOf* <root>`` - any type at or under ``root``."""
    return TriplePattern(type_term, ZeroOrMorePath(IRI(RDFS_SUBCLASS_OF)), IRI(root))


def typed(subject, type_term) -> TriplePattern:
    """``subject rdf:type type_term``."""
    return TriplePattern(subject, IRI(RDF_TYPE), type_term)


def paginate(query: SelectQuery, page: Page) -> SelectQuery:
    """Return a copy of ``query`` restricted to ``page``."""
    return replace(query, limit=page.size, offset=page.offset)


def count_query(
    search: SelectQuery,
    counted: Optional[Variable],
    alias: str = COUNT_VARIABLE,
) -> SelectQuery:
    """
    Derive the count query of a search query.

    Projections, limit, offset and ordering are dropped; the
    projection becomes ``(COUNT(DISTINCT ?counted) AS ?count)``. The WHERE
    clause is shared, so both queries apply the same predicate.

    With ``counted=None`` (subject fixed by the caller, nothing to count
    distinctly) the projection is ``(COUNT(*) AS ?count)``.
    """
    return replace(
        search,
        projections=[Aggregate("COUNT", counted, Variable(alias), distinct=counted is not None)],
        distinct=False,
        limit=None,
        offset=None,
        order_by=[],
    )


def exists_with_type(uri: str, root_type: str) -> AskQuery:
    """
    ASK whether ``uri`` is typed by ``root_type`` or one of its subclasses.

    ASK WHERE {
      <uri> rdf:type ?type .
      ?type rdfs:subClassOf* <root_type> .
    }
    """
    rdf_type = Variable("rdfType")
    return AskQuery(where=WhereClause([
        typed(IRI(uri), rdf_type),
        type_closure(rdf_type, root_type),
    ]))


def subject_term(uri: Optional[str], name: str) -> Variable | IRI:
    """The IRI itself when the caller fixed it, else a variable to project."""
    return IRI(uri) if uri is not None else Variable(name)
