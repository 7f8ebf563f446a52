"""
Entity families searchable in the triplestore.

A family knows how to turn its criteria into a search query and a count
query, and how to turn one result row back into an entity. TriplestoreSearch
runs any family against a session with the count-then-fetch contract.

Infrastructure search query, no criteria, language "en":

    SELECT DISTINCT ?uri ?rdfType ?rdfTypeLabel ?isPartOf ?label
    WHERE {
      ?rdfType <rdfs:subClassOf>* <oeso:Infrastructure> .
      ?uri <rdf:type> ?rdfType .
      OPTIONAL {
        ?rdfType <rdfs:label> ?rdfTypeLabel .
        FILTER((LANG(?rdfTypeLabel) = "" || LANGMATCHES(LANG(?rdfTypeLabel), "en")))
      }
      OPTIONAL {
        ?uri <oeso:isPartOf> ?isPartOf .
      }
      OPTIONAL {
        ?uri <rdfs:label> ?label .
      }
    }
    LIMIT 20
    OFFSET 0
"""

from __future__ import annotations

import logging
from typing import Generic, List, Optional, Protocol, TypeVar

from phenobase.errors import MaterializationError, StoreFailure, UnsupportedOperation
from phenobase.models import Infrastructure, InfrastructureCriteria, Page
from phenobase.search.pagination import PageResult, assemble
from phenobase.sparql.ast import (
    IRI,
    OptionalPattern,
    SelectQuery,
    TriplePattern,
    Variable,
    WhereClause,
)
from phenobase.sparql.builder import (
    COUNT_VARIABLE,
    count_query,
    language_filter,
    paginate,
    subject_term,
    substring_filter,
    type_closure,
    typed,
)
from phenobase.storage.sparql_endpoint import STORE_NAME, Row, TriplestoreSession
from phenobase.vocabulary import OESO_INFRASTRUCTURE, OESO_IS_PART_OF, RDFS_LABEL

logger = logging.getLogger(__name__)

C = TypeVar("C")
E = TypeVar("E")


class EntityFamily(Protocol[C, E]):
    """Query construction and row materialization for one kind of entity."""

    name: str

    def build_search(self, criteria: C, page: Page) -> SelectQuery:
        ...

    def build_count(self, criteria: C) -> SelectQuery:
        ...

    def materialize(self, row: Row, criteria: C) -> E:
        ...


def _required(row: Row, binding: str, entity: str, subject: Optional[str] = None) -> str:
    value = row.get(binding)
    if value is None:
        raise MaterializationError(entity, binding, subject)
    return value


# =============================================================================
# Infrastructures
# =============================================================================

class InfrastructureFamily:
    """Infrastructures: installations, fields, greenhouses and their parts."""

    name = "Infrastructure"

    URI = Variable("uri")
    RDF_TYPE = Variable("rdfType")
    RDF_TYPE_LABEL = Variable("rdfTypeLabel")
    PARENT = Variable("isPartOf")
    LABEL = Variable("label")

    def _select(self, criteria: InfrastructureCriteria) -> SelectQuery:
        subject = subject_term(criteria.uri, self.URI.name)
        rdf_type = subject_term(criteria.rdf_type, self.RDF_TYPE.name)
        projections: List[Variable] = []
        elements = []

        if criteria.uri is None:
            projections.append(self.URI)

        if criteria.rdf_type is None:
            projections.append(self.RDF_TYPE)
            elements.append(type_closure(self.RDF_TYPE, OESO_INFRASTRUCTURE))
        elements.append(typed(subject, rdf_type))

        projections.append(self.RDF_TYPE_LABEL)
        elements.append(OptionalPattern(
            [TriplePattern(rdf_type, IRI(RDFS_LABEL), self.RDF_TYPE_LABEL)],
            [language_filter(self.RDF_TYPE_LABEL, criteria.language)] if criteria.language else [],
        ))

        if criteria.parent is None:
            projections.append(self.PARENT)
            elements.append(OptionalPattern(
                [TriplePattern(subject, IRI(OESO_IS_PART_OF), self.PARENT)]
            ))
        else:
            elements.append(TriplePattern(subject, IRI(OESO_IS_PART_OF), IRI(criteria.parent)))

        projections.append(self.LABEL)
        elements.append(OptionalPattern([TriplePattern(subject, IRI(RDFS_LABEL), self.LABEL)]))
        if criteria.label is not None:
            elements.append(substring_filter(self.LABEL, criteria.label))

        return SelectQuery(projections=projections, where=WhereClause(elements), distinct=True)

    def build_search(self, criteria: InfrastructureCriteria, page: Page) -> SelectQuery:
        return paginate(self._select(criteria), page)

    def build_count(self, criteria: InfrastructureCriteria) -> SelectQuery:
        counted = self.URI if criteria.uri is None else None
        return count_query(self._select(criteria), counted)

    def materialize(self, row: Row, criteria: InfrastructureCriteria) -> Infrastructure:
        uri = criteria.uri or _required(row, self.URI.name, self.name)
        return Infrastructure(
            uri=uri,
            rdf_type=criteria.rdf_type or _required(row, self.RDF_TYPE.name, self.name, uri),
            rdf_type_label=_required(row, self.RDF_TYPE_LABEL.name, self.name, uri),
            label=_required(row, self.LABEL.name, self.name, uri),
            parent=criteria.parent or row.get(self.PARENT.name),
        )


# =============================================================================
# Generic execution
# =============================================================================

class TriplestoreSearch(Generic[C, E]):
    """Runs the search and count queries of a family against a session."""

    def __init__(self, session: TriplestoreSession, family: EntityFamily[C, E]):
        self.session = session
        self.family = family

    def count(self, criteria: C) -> int:
        rows = self.session.evaluate(self.family.build_count(criteria))
        if not rows or COUNT_VARIABLE not in rows[0]:
            raise StoreFailure(STORE_NAME, f"{self.family.name} count returned no ?{COUNT_VARIABLE}")
        try:
            return int(rows[0][COUNT_VARIABLE])
        except ValueError as e:
            raise StoreFailure(
                STORE_NAME, f"{self.family.name} count is not an integer: {rows[0][COUNT_VARIABLE]!r}"
            ) from e

    def fetch(self, criteria: C, page: Page) -> List[E]:
        rows = self.session.evaluate(self.family.build_search(criteria, page))
        return [self.family.materialize(row, criteria) for row in rows]

    def search(self, criteria: C, page: Page) -> PageResult[E]:
        return assemble(
            page,
            lambda: self.count(criteria),
            lambda: self.fetch(criteria, page),
        )


class InfrastructureRepository:
    """
    Infrastructure access. Infrastructures are read-only here: they are
    managed in the ontology, so every mutation is refused.
    """

    def __init__(self, session: TriplestoreSession):
        self.search_runner: TriplestoreSearch[InfrastructureCriteria, Infrastructure] = (
            TriplestoreSearch(session, InfrastructureFamily())
        )

    def find(self, criteria: InfrastructureCriteria, page: Page) -> PageResult[Infrastructure]:
        return self.search_runner.search(criteria, page)

    def count(self, criteria: InfrastructureCriteria) -> int:
        return self.search_runner.count(criteria)

    def create(self, infrastructures: List[Infrastructure]) -> None:
        raise UnsupportedOperation(InfrastructureFamily.name, "create")

    def update(self, infrastructures: List[Infrastructure]) -> None:
        raise UnsupportedOperation(InfrastructureFamily.name, "update")

    def delete(self, uris: List[str]) -> None:
        raise UnsupportedOperation(InfrastructureFamily.name, "delete")

    def validate(self, infrastructures: List[Infrastructure]) -> None:
        raise UnsupportedOperation(InfrastructureFamily.name, "validate")
