"""
Federated search for PhenoBase.

- families: triplestore entity families and their query builders
- lookups: existence and label lookups in the triplestore
- resolver: cross-store resolution of object and provenance filters
- pagination: count-then-fetch page assembly
- service: one entry point per search family
"""

from phenobase.search.families import (
    EntityFamily,
    InfrastructureFamily,
    InfrastructureRepository,
    TriplestoreSearch,
)
from phenobase.search.labels import LabelIndex
from phenobase.search.lookups import ResourceLookup
from phenobase.search.pagination import Outcome, PageResult, assemble
from phenobase.search.resolver import CrossStoreResolver, ResolvedFilters
from phenobase.search.service import SearchService

__all__ = [
    "EntityFamily",
    "InfrastructureFamily",
    "InfrastructureRepository",
    "TriplestoreSearch",
    "LabelIndex",
    "ResourceLookup",
    "Outcome",
    "PageResult",
    "assemble",
    "CrossStoreResolver",
    "ResolvedFilters",
    "SearchService",
]
