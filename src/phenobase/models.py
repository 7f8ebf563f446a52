"""
Domain entities and search criteria for PhenoBase.

Criteria objects are frozen: they are built once per request from the
incoming parameters and handed to pure query builders. A ``None`` field
means "no constraint".
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from datetime import date, datetime
from typing import Any, Optional


# =============================================================================
# Pagination
# =============================================================================

@dataclass(frozen=True)
class Page:
    """A zero-based page request."""
    number: int = 0
    size: int = 20

    def __post_init__(self):
        if self.number < 0:
            raise ValueError(f"Page number must be >= 0, got {self.number}")
        if self.size < 0:
            raise ValueError(f"Page size must be >= 0, got {self.size}")

    @property
    def offset(self) -> int:
        return self.number * self.size


# =============================================================================
# Search criteria
# =============================================================================

@dataclass(frozen=True)
class InfrastructureCriteria:
    """Filters for the infrastructure search."""
    uri: Optional[str] = None
    rdf_type: Optional[str] = None
    label: Optional[str] = None
    parent: Optional[str] = None
    language: Optional[str] = None


@dataclass(frozen=True)
class ExperimentCriteria:
    """Filters for the experiment search."""
    uri: Optional[str] = None
    project_uri: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    field: Optional[str] = None
    campaign: Optional[str] = None
    place: Optional[str] = None
    alias: Optional[str] = None
    keywords: Optional[str] = None


@dataclass(frozen=True)
class DataCriteria:
    """
    Filters for the measurement search of one experiment.

    Identifiers win over labels: when ``object_uri`` is set ``object_label``
    is ignored, same for provenances.
    """
    variable_uri: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    object_uri: Optional[str] = None
    object_label: Optional[str] = None
    provenance_uri: Optional[str] = None
    provenance_label: Optional[str] = None


@dataclass(frozen=True)
class DataFilter:
    """
    Resolved filter applied to the data store.

    Empty identifier tuples mean "no constraint on that column".
    """
    variable_uri: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    object_uris: tuple[str, ...] = ()
    provenance_uris: tuple[str, ...] = ()


# =============================================================================
# Entities
# =============================================================================

@dataclass
class Infrastructure:
    """An infrastructure (installation, field, greenhouse...) from the triplestore."""
    uri: str
    rdf_type: str
    rdf_type_label: str
    label: str
    parent: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "rdfType": self.rdf_type,
            "rdfTypeLabel": self.rdf_type_label,
            "label": self.label,
            "parent": self.parent,
        }


@dataclass
class Experiment:
    """Experiment metadata held in the relational store."""
    uri: Optional[str]
    start_date: date
    end_date: Optional[date] = None
    field: Optional[str] = None
    campaign: Optional[str] = None
    place: Optional[str] = None
    alias: Optional[str] = None
    keywords: Optional[str] = None
    objective: Optional[str] = None
    comment: Optional[str] = None
    crop_species: Optional[str] = None
    projects: list[str] = dataclass_field(default_factory=list)
    variables: list[str] = dataclass_field(default_factory=list)
    sensors: list[str] = dataclass_field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "field": self.field,
            "campaign": self.campaign,
            "place": self.place,
            "alias": self.alias,
            "keywords": self.keywords,
            "objective": self.objective,
            "comment": self.comment,
            "cropSpecies": self.crop_species,
            "projects": list(self.projects),
            "variables": list(self.variables),
            "sensors": list(self.sensors),
        }


@dataclass
class Provenance:
    """Origin of measurement records, attached to one or more experiments."""
    uri: str
    label: str
    comment: Optional[str] = None
    experiments: list[str] = dataclass_field(default_factory=list)
    metadata: dict[str, Any] = dataclass_field(default_factory=dict)

    def is_attached_to(self, experiment_uri: str) -> bool:
        return experiment_uri in self.experiments


@dataclass
class DataPoint:
    """One measurement record from the data store."""
    uri: str
    variable_uri: str
    provenance_uri: str
    date: datetime
    value: Any
    object_uri: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "provenanceUri": self.provenance_uri,
            "objectUri": self.object_uri,
            "variableUri": self.variable_uri,
            "date": self.date.isoformat(),
            "value": self.value,
        }


@dataclass
class DataSearchResult:
    """A data point decorated with the labels resolved from the other stores."""
    data: DataPoint
    provenance_label: Optional[str]
    object_labels: list[str]
    variable_label: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        record = self.data.to_dict()
        record["provenance"] = {"uri": self.data.provenance_uri, "label": self.provenance_label}
        record["object"] = (
            {"uri": self.data.object_uri, "labels": list(self.object_labels)}
            if self.data.object_uri else None
        )
        record["variable"] = {"uri": self.data.variable_uri, "label": self.variable_label}
        return record
