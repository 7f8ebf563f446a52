"""
Store adapters for PhenoBase.

- SparqlEndpointSession: triplestore over the SPARQL 1.1 HTTP protocol
- ExperimentStore: experiment metadata in DuckDB
- ProvenanceStore / DataStore: provenance and measurement records in Polars
"""

from phenobase.storage.config import (
    ConfigValidationError,
    ConfigValidator,
    DocumentConfig,
    PaginationConfig,
    RelationalConfig,
    ServiceConfig,
    TriplestoreConfig,
)
from phenobase.storage.documents import DataStore, ProvenanceStore
from phenobase.storage.relational import ExperimentStore
from phenobase.storage.sparql_endpoint import (
    EndpointStatus,
    SparqlEndpointSession,
    TriplestoreSession,
)
from phenobase.storage.store_call import call_with_timeout, recent_calls

__all__ = [
    "ConfigValidationError",
    "ConfigValidator",
    "DocumentConfig",
    "PaginationConfig",
    "RelationalConfig",
    "ServiceConfig",
    "TriplestoreConfig",
    "DataStore",
    "ProvenanceStore",
    "ExperimentStore",
    "EndpointStatus",
    "SparqlEndpointSession",
    "TriplestoreSession",
    "call_with_timeout",
    "recent_calls",
]
