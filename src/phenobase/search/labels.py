"""
Per-request label memo.

Data points only carry identifiers; their object and provenance labels live
in other stores. A LabelIndex is created for one resolution pass, seeded
with whatever the resolver already fetched, and loads the rest on miss.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from phenobase.errors import StoreFailure

logger = logging.getLogger(__name__)


class LabelIndex:
    """
    Memoized identifier -> label(s) maps for scientific objects and provenances.

    Usage:
        labels = LabelIndex(objects.find_labels_for_uri, provenances.find_label_by_uri)
        labels.seed_objects({"http://ex.org/so/1": ["Plot 1"]})
        labels.object_labels("http://ex.org/so/1")     # no lookup
        labels.provenance_label("http://ex.org/prov/1")  # one lookup, then memoized
    """

    def __init__(
        self,
        object_loader: Callable[[str], List[str]],
        provenance_loader: Callable[[str], Optional[str]],
    ):
        self._object_loader = object_loader
        self._provenance_loader = provenance_loader
        self._objects: Dict[str, List[str]] = {}
        self._provenances: Dict[str, Optional[str]] = {}
        self.lookups = 0

    def seed_objects(self, labels_by_uri: Dict[str, Iterable[str]]) -> None:
        for uri, labels in labels_by_uri.items():
            self._objects[uri] = list(labels)

    def seed_provenance(self, uri: str, label: Optional[str]) -> None:
        self._provenances[uri] = label

    def object_labels(self, uri: str) -> List[str]:
        if uri not in self._objects:
            self.lookups += 1
            try:
                self._objects[uri] = list(self._object_loader(uri))
            except StoreFailure as e:
                # A failed lookup is memoized as "no labels" for this pass
                logger.warning(f"Could not load labels of object {uri}: {e}")
                self._objects[uri] = []
        return self._objects[uri]

    def provenance_label(self, uri: str) -> Optional[str]:
        if uri not in self._provenances:
            self.lookups += 1
            self._provenances[uri] = self._provenance_loader(uri)
        return self._provenances[uri]

    def __contains__(self, uri: str) -> bool:
        return uri in self._objects or uri in self._provenances
