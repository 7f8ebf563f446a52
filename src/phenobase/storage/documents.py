"""
Document stores for provenances and measurement records.

Both stores keep their records in an immutable Polars DataFrame that is
swapped under a lock on write, so readers always see a consistent frame.
Records can be loaded from NDJSON (one JSON document per line) or Parquet.

Measured values are heterogeneous (numbers, text, small objects); they are
held as JSON text in the ``value`` column and decoded on the way out.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import polars as pl

from phenobase.dates import parse_datetime
from phenobase.models import DataFilter, DataPoint, Page, Provenance
from phenobase.storage.store_call import call_with_timeout

logger = logging.getLogger(__name__)

STORE_NAME = "documents"

PROVENANCE_SCHEMA = {
    "uri": pl.Utf8,
    "label": pl.Utf8,
    "comment": pl.Utf8,
    "experiments": pl.List(pl.Utf8),
    "metadata": pl.Utf8,
}

DATA_SCHEMA = {
    "uri": pl.Utf8,
    "variable_uri": pl.Utf8,
    "object_uri": pl.Utf8,
    "provenance_uri": pl.Utf8,
    "date": pl.Datetime("us"),
    "value": pl.Utf8,
}


def _read_ndjson(path: Path) -> List[Dict[str, Any]]:
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_no}: invalid JSON document: {e}") from e
    return records


class _FrameStore:
    """Shared frame holder: lock-protected swap on write, timeouts on read."""

    schema: Dict[str, Any] = {}

    def __init__(self, timeout_seconds: Optional[float] = 30.0):
        self.timeout_seconds = timeout_seconds
        self._frame = pl.DataFrame(schema=self.schema)
        self._lock = threading.Lock()

    @property
    def frame(self) -> pl.DataFrame:
        return self._frame

    def __len__(self) -> int:
        return self._frame.height

    def _append(self, new: pl.DataFrame) -> None:
        with self._lock:
            self._frame = pl.concat([self._frame, new], how="vertical")

    def _call(self, operation: str, func, *args):
        return call_with_timeout(STORE_NAME, operation, func, self.timeout_seconds, *args)


# =============================================================================
# Provenances
# =============================================================================

class ProvenanceStore(_FrameStore):
    """
    Provenance records.

    Usage:
        store = ProvenanceStore()
        store.add([Provenance(uri="http://ex.org/prov/1", label="Phenoarch",
                              experiments=["http://ex.org/exp/1"])])
        store.find_by_experiment("http://ex.org/exp/1", limit=5000)
    """

    schema = PROVENANCE_SCHEMA

    def add(self, provenances: Iterable[Provenance]) -> int:
        provenances = list(provenances)
        new = pl.DataFrame(
            {
                "uri": [p.uri for p in provenances],
                "label": [p.label for p in provenances],
                "comment": [p.comment for p in provenances],
                "experiments": [list(p.experiments) for p in provenances],
                "metadata": [json.dumps(p.metadata) for p in provenances],
            },
            schema=self.schema,
        )
        self._append(new)
        logger.debug(f"Added {len(provenances)} provenances")
        return len(provenances)

    def load(self, path: Path | str) -> int:
        """Load provenance records from an NDJSON or Parquet file."""
        path = Path(path)
        if path.suffix == ".parquet":
            frame = pl.read_parquet(path)
            count = self.add(
                Provenance(
                    uri=row["uri"],
                    label=row["label"],
                    comment=row.get("comment"),
                    experiments=list(row.get("experiments") or []),
                    metadata=json.loads(row["metadata"]) if row.get("metadata") else {},
                )
                for row in frame.iter_rows(named=True)
            )
        else:
            count = self.add(
                Provenance(
                    uri=doc["uri"],
                    label=doc["label"],
                    comment=doc.get("comment"),
                    experiments=list(doc.get("experiments") or []),
                    metadata=doc.get("metadata") or {},
                )
                for doc in _read_ndjson(path)
            )
        logger.info(f"Loaded {count} provenances from {path}")
        return count

    @staticmethod
    def _to_provenances(frame: pl.DataFrame) -> List[Provenance]:
        return [
            Provenance(
                uri=row["uri"],
                label=row["label"],
                comment=row["comment"],
                experiments=list(row["experiments"] or []),
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            )
            for row in frame.iter_rows(named=True)
        ]

    def find_by_uri(self, uri: str) -> Optional[Provenance]:
        def run():
            found = self._to_provenances(self._frame.filter(pl.col("uri") == uri).head(1))
            return found[0] if found else None
        return self._call("find_provenance", run)

    def find_label_by_uri(self, uri: str) -> Optional[str]:
        provenance = self.find_by_uri(uri)
        return provenance.label if provenance else None

    def find_by_label(self, label: str) -> List[Provenance]:
        """Provenances whose label contains ``label``, ignoring case."""
        def run():
            matches = self._frame.filter(
                pl.col("label").str.to_lowercase().str.contains(label.lower(), literal=True)
            ).sort("uri")
            return self._to_provenances(matches)
        return self._call("find_provenances_by_label", run)

    def find_by_experiment(self, experiment_uri: str, limit: int) -> List[Provenance]:
        """Provenances attached to an experiment, at most ``limit`` of them."""
        def run():
            attached = self._frame.filter(
                pl.col("experiments").list.contains(experiment_uri)
            ).sort("uri").head(limit)
            return self._to_provenances(attached)
        return self._call("find_provenances_by_experiment", run)


# =============================================================================
# Measurement records
# =============================================================================

def data_predicate(data_filter: DataFilter) -> pl.Expr:
    """
    The Polars predicate of a resolved data filter.

    Shared by count and find so both apply exactly the same filter.
    """
    predicate = pl.col("variable_uri") == data_filter.variable_uri
    if data_filter.start_date is not None:
        predicate = predicate & (pl.col("date") >= data_filter.start_date)
    if data_filter.end_date is not None:
        predicate = predicate & (pl.col("date") <= data_filter.end_date)
    if data_filter.object_uris:
        predicate = predicate & pl.col("object_uri").is_in(list(data_filter.object_uris))
    if data_filter.provenance_uris:
        predicate = predicate & pl.col("provenance_uri").is_in(list(data_filter.provenance_uris))
    return predicate


class DataStore(_FrameStore):
    """Measurement records, one row per data point."""

    schema = DATA_SCHEMA

    def add(self, points: Iterable[DataPoint]) -> int:
        points = list(points)
        new = pl.DataFrame(
            {
                "uri": [p.uri for p in points],
                "variable_uri": [p.variable_uri for p in points],
                "object_uri": [p.object_uri for p in points],
                "provenance_uri": [p.provenance_uri for p in points],
                "date": [p.date for p in points],
                "value": [json.dumps(p.value) for p in points],
            },
            schema=self.schema,
        )
        self._append(new)
        logger.debug(f"Added {len(points)} data points")
        return len(points)

    def load(self, path: Path | str) -> int:
        """
        Load data points from an NDJSON or Parquet file.

        Dates may carry an offset; they are stored as naive UTC. In Parquet
        files the ``value`` column holds JSON text.
        """
        path = Path(path)
        if path.suffix == ".parquet":
            docs = [
                dict(row, value=json.loads(row["value"]) if row["value"] is not None else None)
                for row in pl.read_parquet(path).iter_rows(named=True)
            ]
        else:
            docs = _read_ndjson(path)
        count = self.add(
            DataPoint(
                uri=doc["uri"],
                variable_uri=doc["variable_uri"],
                provenance_uri=doc["provenance_uri"],
                object_uri=doc.get("object_uri"),
                date=doc["date"] if not isinstance(doc["date"], str) else parse_datetime(doc["date"]),
                value=doc.get("value"),
            )
            for doc in docs
        )
        logger.info(f"Loaded {count} data points from {path}")
        return count

    def count(self, data_filter: DataFilter) -> int:
        def run():
            return self._frame.filter(data_predicate(data_filter)).height
        return self._call("count_data", run)

    def find(self, data_filter: DataFilter, page: Page) -> List[DataPoint]:
        """One page of data points, ordered by date then URI."""
        def run():
            rows = (
                self._frame.filter(data_predicate(data_filter))
                .sort(["date", "uri"])
                .slice(page.offset, page.size)
            )
            return [
                DataPoint(
                    uri=row["uri"],
                    variable_uri=row["variable_uri"],
                    provenance_uri=row["provenance_uri"],
                    object_uri=row["object_uri"],
                    date=row["date"],
                    value=json.loads(row["value"]) if row["value"] is not None else None,
                )
                for row in rows.iter_rows(named=True)
            ]
        return self._call("find_data", run)
