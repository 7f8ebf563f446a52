"""
Cross-store filter resolution for the data search.

Object and provenance filters are expressed by identifier or by label, but
the data store only knows identifiers. The resolver turns each filter into
an identifier set before the data store is queried:

1. the variable must exist in the triplestore (else ValidationError)
2. objects: by URI, or by label through a reverse label lookup
3. provenances: by URI (must be attached to the experiment), by label
   (matches kept only if attached), or every provenance of the experiment

A filter that resolves to nothing makes the whole search unsatisfiable: the
data store is then never queried and the search ends with no results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from phenobase.errors import ValidationError
from phenobase.models import DataCriteria, DataFilter, Provenance
from phenobase.search.labels import LabelIndex
from phenobase.search.lookups import ResourceLookup
from phenobase.storage.documents import ProvenanceStore

logger = logging.getLogger(__name__)

DEFAULT_PROVENANCE_CAP = 5000


@dataclass
class ResolvedFilters:
    """Outcome of a resolution pass."""
    labels: LabelIndex
    data_filter: Optional[DataFilter] = None
    variable_label: Optional[str] = None
    unsatisfiable: bool = False
    reasons: List[str] = field(default_factory=list)

    def mark_unsatisfiable(self, reason: str) -> None:
        logger.debug(f"Data filter unsatisfiable: {reason}")
        self.unsatisfiable = True
        self.reasons.append(reason)


class CrossStoreResolver:
    """Resolves data criteria against the triplestore and the provenance store."""

    def __init__(
        self,
        objects: ResourceLookup,
        variables: ResourceLookup,
        provenances: ProvenanceStore,
        provenance_cap: int = DEFAULT_PROVENANCE_CAP,
    ):
        self.objects = objects
        self.variables = variables
        self.provenances = provenances
        self.provenance_cap = provenance_cap

    def resolve(self, experiment_uri: str, criteria: DataCriteria) -> ResolvedFilters:
        """
        Resolve ``criteria`` for the data of ``experiment_uri``.

        Raises:
            ValidationError: If the variable is unknown
            StoreFailure: If a lookup store fails
        """
        if not self.variables.exists(criteria.variable_uri):
            raise ValidationError(f"Unknown variable URI : {criteria.variable_uri}")
        variable_labels = self.variables.find_labels_for_uri(criteria.variable_uri)

        resolved = ResolvedFilters(
            labels=LabelIndex(self.objects.find_labels_for_uri, self.provenances.find_label_by_uri),
            variable_label=variable_labels[0] if variable_labels else None,
        )

        object_uris = self._resolve_objects(criteria, resolved)
        if resolved.unsatisfiable:
            return resolved
        provenance_uris = self._resolve_provenances(experiment_uri, criteria, resolved)
        if resolved.unsatisfiable:
            return resolved

        resolved.data_filter = DataFilter(
            variable_uri=criteria.variable_uri,
            start_date=criteria.start_date,
            end_date=criteria.end_date,
            object_uris=object_uris,
            provenance_uris=provenance_uris,
        )
        return resolved

    def _resolve_objects(self, criteria: DataCriteria, resolved: ResolvedFilters) -> Tuple[str, ...]:
        if criteria.object_uri is not None:
            resolved.labels.seed_objects(
                {criteria.object_uri: self.objects.find_labels_for_uri(criteria.object_uri)}
            )
            return (criteria.object_uri,)

        if criteria.object_label is not None:
            found = self.objects.find_uris_and_labels_by_label(criteria.object_label)
            if not found:
                resolved.mark_unsatisfiable(f"No scientific object labelled like '{criteria.object_label}'")
                return ()
            resolved.labels.seed_objects(found)
            return tuple(found)

        return ()

    def _resolve_provenances(
        self, experiment_uri: str, criteria: DataCriteria, resolved: ResolvedFilters
    ) -> Tuple[str, ...]:
        if criteria.provenance_uri is not None:
            provenance = self.provenances.find_by_uri(criteria.provenance_uri)
            if provenance is None or not provenance.is_attached_to(experiment_uri):
                resolved.mark_unsatisfiable(
                    f"Provenance {criteria.provenance_uri} is not attached to {experiment_uri}"
                )
                return ()
            return self._keep([provenance], resolved)

        if criteria.provenance_label is not None:
            attached = [
                p for p in self.provenances.find_by_label(criteria.provenance_label)
                if p.is_attached_to(experiment_uri)
            ]
            if not attached:
                resolved.mark_unsatisfiable(
                    f"No provenance of {experiment_uri} labelled like '{criteria.provenance_label}'"
                )
                return ()
            return self._keep(attached, resolved)

        attached = self.provenances.find_by_experiment(experiment_uri, self.provenance_cap)
        if not attached:
            resolved.mark_unsatisfiable(f"No provenance attached to {experiment_uri}")
            return ()
        if len(attached) >= self.provenance_cap:
            logger.warning(
                f"{experiment_uri} has at least {self.provenance_cap} provenances; "
                f"data of the others is not searched"
            )
        return self._keep(attached, resolved)

    @staticmethod
    def _keep(provenances: List[Provenance], resolved: ResolvedFilters) -> Tuple[str, ...]:
        for provenance in provenances:
            resolved.labels.seed_provenance(provenance.uri, provenance.label)
        return tuple(p.uri for p in provenances)
