"""
PhenoBase - search and experiment services for phenotyping data.

Infrastructures, scientific objects, variables and sensors live in an RDF
triplestore; experiments in a relational store; provenances and measurement
records in a document store. The search layer composes one paginated query
per request across them.
"""

from phenobase.errors import (
    MaterializationError,
    PhenobaseError,
    QueryBuildError,
    StoreFailure,
    UnsupportedOperation,
    ValidationError,
)
from phenobase.models import (
    DataCriteria,
    DataFilter,
    DataPoint,
    DataSearchResult,
    Experiment,
    ExperimentCriteria,
    Infrastructure,
    InfrastructureCriteria,
    Page,
    Provenance,
)
from phenobase.search import Outcome, PageResult, SearchService
from phenobase.storage import ServiceConfig

__version__ = "0.1.0"

__all__ = [
    "MaterializationError",
    "PhenobaseError",
    "QueryBuildError",
    "StoreFailure",
    "UnsupportedOperation",
    "ValidationError",
    "DataCriteria",
    "DataFilter",
    "DataPoint",
    "DataSearchResult",
    "Experiment",
    "ExperimentCriteria",
    "Infrastructure",
    "InfrastructureCriteria",
    "Page",
    "Provenance",
    "Outcome",
    "PageResult",
    "SearchService",
    "ServiceConfig",
]
