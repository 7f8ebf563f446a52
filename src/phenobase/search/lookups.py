"""
Triplestore lookups used to resolve references made from other stores.

A ResourceLookup is bound to one root type (scientific objects, variables,
sensors) and answers three questions: does this URI denote a resource of
that kind, what are its labels, and which resources have a label containing
some text.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from phenobase.errors import StoreFailure
from phenobase.sparql.ast import IRI, Filter, SelectQuery, TriplePattern, Variable, WhereClause
from phenobase.sparql.builder import (
    exists_with_type,
    language_filter,
    substring_filter,
    type_closure,
    typed,
)
from phenobase.storage.sparql_endpoint import STORE_NAME, TriplestoreSession
from phenobase.vocabulary import (
    OESO_SCIENTIFIC_OBJECT,
    OESO_SENSING_DEVICE,
    OESO_VARIABLE,
    RDFS_LABEL,
)

logger = logging.getLogger(__name__)

URI = Variable("uri")
LABEL = Variable("label")
MATCHED = Variable("matched")
RDF_TYPE = Variable("rdfType")


class ResourceLookup:
    """
    Label and existence lookups for resources under one root type.

    Example:
        variables = ResourceLookup(session, OESO_VARIABLE, "variable")
        if variables.exists("http://ex.org/id/variables/v001"):
            name = variables.find_labels_for_uri("http://ex.org/id/variables/v001")
    """

    def __init__(
        self,
        session: TriplestoreSession,
        root_type: str,
        kind: str,
        language: Optional[str] = None,
    ):
        self.session = session
        self.root_type = root_type
        self.kind = kind
        self.language = language

    def _label_filters(self, variable: Variable) -> List[Filter]:
        return [language_filter(variable, self.language)] if self.language else []

    def exists(self, uri: str) -> bool:
        """True if ``uri`` is typed by the root type or one of its subclasses."""
        return self.session.ask(exists_with_type(uri, self.root_type))

    def find_labels_for_uri(self, uri: str) -> List[str]:
        query = SelectQuery(
            projections=[LABEL],
            where=WhereClause(
                [TriplePattern(IRI(uri), IRI(RDFS_LABEL), LABEL)] + self._label_filters(LABEL)
            ),
            distinct=True,
            order_by=[LABEL],
        )
        return [row[LABEL.name] for row in self.session.evaluate(query) if LABEL.name in row]

    def find_uris_and_labels_by_label(self, label: str) -> Dict[str, List[str]]:
        """
        Resources with a label containing ``label`` (case-insensitive).

        Returns every label of each matching resource, not only the matching
        one, keyed by URI.
        """
        query = SelectQuery(
            projections=[URI, LABEL],
            where=WhereClause([
                type_closure(RDF_TYPE, self.root_type),
                typed(URI, RDF_TYPE),
                TriplePattern(URI, IRI(RDFS_LABEL), MATCHED),
                substring_filter(MATCHED, label),
                TriplePattern(URI, IRI(RDFS_LABEL), LABEL),
                *self._label_filters(LABEL),
            ]),
            distinct=True,
            order_by=[URI, LABEL],
        )
        found: Dict[str, List[str]] = {}
        for row in self.session.evaluate(query):
            if URI.name not in row:
                raise StoreFailure(STORE_NAME, f"{self.kind} label lookup returned a row without ?uri")
            labels = found.setdefault(row[URI.name], [])
            if LABEL.name in row and row[LABEL.name] not in labels:
                labels.append(row[LABEL.name])
        logger.debug(f"{self.kind} label {label!r} matched {len(found)} resources")
        return found


def scientific_objects(session: TriplestoreSession, language: Optional[str] = None) -> ResourceLookup:
    return ResourceLookup(session, OESO_SCIENTIFIC_OBJECT, "scientific object", language)


def variables(session: TriplestoreSession, language: Optional[str] = None) -> ResourceLookup:
    return ResourceLookup(session, OESO_VARIABLE, "variable", language)


def sensors(session: TriplestoreSession, language: Optional[str] = None) -> ResourceLookup:
    return ResourceLookup(session, OESO_SENSING_DEVICE, "sensor", language)
