"""
DuckDB experiment store for PhenoBase.

Holds experiment metadata and the experiment -> project/variable/sensor
links. Search filters are turned into one parameterized WHERE clause shared
by the count and the page query, so both always apply the same predicate.

Concurrency:
- One database connection per store, one cursor per call
- Writes run in a single transaction on the caller thread and roll back on
  any error or timeout
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import duckdb

from phenobase.errors import StoreFailure, ValidationError
from phenobase.models import Experiment, ExperimentCriteria, Page
from phenobase.storage.store_call import CallState, CallStats, call_with_timeout

logger = logging.getLogger(__name__)

STORE_NAME = "relational"

LINK_PROJECT = "project"
LINK_VARIABLE = "variable"
LINK_SENSOR = "sensor"
LINK_KINDS = (LINK_PROJECT, LINK_VARIABLE, LINK_SENSOR)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS experiments (
        uri VARCHAR PRIMARY KEY,
        start_date DATE NOT NULL,
        end_date DATE,
        field VARCHAR,
        campaign VARCHAR,
        place VARCHAR,
        alias VARCHAR,
        keywords VARCHAR,
        objective VARCHAR,
        comment VARCHAR,
        crop_species VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS experiment_links (
        experiment_uri VARCHAR NOT NULL,
        kind VARCHAR NOT NULL,
        target_uri VARCHAR NOT NULL,
        PRIMARY KEY (experiment_uri, kind, target_uri)
    )
    """,
]

COLUMNS = (
    "uri", "start_date", "end_date", "field", "campaign", "place",
    "alias", "keywords", "objective", "comment", "crop_species",
)


def build_where(criteria: ExperimentCriteria) -> Tuple[str, List[Any]]:
    """
    Translate experiment criteria into a WHERE clause and its parameters.

    Text filters are case-insensitive substring matches; the campaign is an
    exact match; the date range keeps experiments lying inside it.
    """
    clauses: List[str] = []
    params: List[Any] = []

    if criteria.uri is not None:
        clauses.append("e.uri = ?")
        params.append(criteria.uri)
    if criteria.project_uri is not None:
        clauses.append(
            "EXISTS (SELECT 1 FROM experiment_links l WHERE l.experiment_uri = e.uri "
            "AND l.kind = ? AND l.target_uri = ?)"
        )
        params.extend([LINK_PROJECT, criteria.project_uri])
    if criteria.start_date is not None:
        clauses.append("e.start_date >= ?")
        params.append(criteria.start_date)
    if criteria.end_date is not None:
        clauses.append("e.end_date <= ?")
        params.append(criteria.end_date)
    if criteria.campaign is not None:
        clauses.append("e.campaign = ?")
        params.append(criteria.campaign)
    for column in ("field", "place", "alias", "keywords"):
        value = getattr(criteria, column)
        if value is not None:
            clauses.append(f"contains(lower(e.{column}), lower(?))")
            params.append(value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def validate_experiment(experiment: Experiment) -> List[str]:
    """Return the problems of an experiment payload (empty if valid)."""
    errors = []
    if experiment.end_date is not None and experiment.end_date < experiment.start_date:
        errors.append(f"{experiment.uri or experiment.alias}: endDate is before startDate")
    if experiment.campaign is not None and not (
        len(experiment.campaign) == 4 and experiment.campaign.isdigit()
    ):
        errors.append(f"{experiment.uri or experiment.alias}: campaign must be a year (YYYY)")
    return errors


class ExperimentStore:
    """
    Experiment metadata in DuckDB.

    Usage:
        store = ExperimentStore(":memory:", base_uri="http://example.org/")
        store.insert([Experiment(uri=None, start_date=date(2017, 5, 1))])
        total = store.count(ExperimentCriteria(campaign="2017"))
        page = store.find(ExperimentCriteria(campaign="2017"), Page(0, 20))
    """

    def __init__(
        self,
        database: str = ":memory:",
        base_uri: str = "http://www.phenome-fppn.fr/phenobase/",
        timeout_seconds: Optional[float] = 30.0,
    ):
        self.database = database
        self.base_uri = base_uri
        self.timeout_seconds = timeout_seconds
        self._conn = duckdb.connect(database)
        self._write_lock = threading.Lock()
        for statement in SCHEMA:
            self._conn.execute(statement)

    def close(self) -> None:
        self._conn.close()

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """A fresh cursor; DuckDB cursors must not be shared across threads."""
        return self._conn.cursor()

    def _call(self, operation: str, func, *args):
        return call_with_timeout(STORE_NAME, operation, func, self.timeout_seconds, *args)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def count(self, criteria: ExperimentCriteria) -> int:
        """Number of experiments matching ``criteria``."""
        return self._call("count", self._count, criteria)

    def _count(self, criteria: ExperimentCriteria) -> int:
        where, params = build_where(criteria)
        sql = f"SELECT COUNT(DISTINCT e.uri) FROM experiments e {where}"
        logger.debug(f"SQL count: {sql} {params}")
        cur = self._cursor()
        try:
            row = cur.execute(sql, params).fetchone()
        finally:
            cur.close()
        return int(row[0]) if row else 0

    def find(self, criteria: ExperimentCriteria, page: Page) -> List[Experiment]:
        """One page of experiments matching ``criteria``, ordered by URI."""
        return self._call("find", self._find, criteria, page)

    def _find(self, criteria: ExperimentCriteria, page: Page) -> List[Experiment]:
        where, params = build_where(criteria)
        sql = (
            f"SELECT {', '.join('e.' + c for c in COLUMNS)} FROM experiments e {where} "
            f"ORDER BY e.uri LIMIT ? OFFSET ?"
        )
        logger.debug(f"SQL find: {sql} {params}")
        cur = self._cursor()
        try:
            rows = cur.execute(sql, params + [page.size, page.offset]).fetchall()
            experiments = [self._row_to_experiment(row) for row in rows]
            self._attach_links(cur, experiments)
        finally:
            cur.close()
        return experiments

    def get(self, uri: str) -> Optional[Experiment]:
        """The experiment with this URI, or None."""
        found = self.find(ExperimentCriteria(uri=uri), Page(0, 1))
        return found[0] if found else None

    def exists(self, uri: str) -> bool:
        return self.count(ExperimentCriteria(uri=uri)) > 0

    @staticmethod
    def _row_to_experiment(row: Sequence[Any]) -> Experiment:
        values = dict(zip(COLUMNS, row))
        return Experiment(**values)

    @staticmethod
    def _attach_links(cur: duckdb.DuckDBPyConnection, experiments: List[Experiment]) -> None:
        if not experiments:
            return
        by_uri = {e.uri: e for e in experiments}
        placeholders = ", ".join("?" for _ in by_uri)
        rows = cur.execute(
            f"SELECT experiment_uri, kind, target_uri FROM experiment_links "
            f"WHERE experiment_uri IN ({placeholders}) ORDER BY target_uri",
            list(by_uri),
        ).fetchall()
        for experiment_uri, kind, target_uri in rows:
            experiment = by_uri[experiment_uri]
            if kind == LINK_PROJECT:
                experiment.projects.append(target_uri)
            elif kind == LINK_VARIABLE:
                experiment.variables.append(target_uri)
            elif kind == LINK_SENSOR:
                experiment.sensors.append(target_uri)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        One write transaction, serialized by the store's write lock.

        Runs on the caller thread. Past ``timeout_seconds`` the running
        statement is interrupted and nothing is committed.

        Usage:
            with self._transaction("insert") as cur:
                cur.execute("INSERT ...")
            # Commits on clean exit, rolls back on exception or timeout
        """
        stats = CallStats(store=STORE_NAME, operation=operation)
        with self._write_lock:
            cur = self._cursor()
            timer = None
            if self.timeout_seconds is not None:
                timer = threading.Timer(self.timeout_seconds, cur.interrupt)
                timer.daemon = True
            stats.start()
            try:
                if timer is not None:
                    timer.start()
                cur.execute("BEGIN TRANSACTION")
                yield cur
                if timer is not None:
                    timer.cancel()
                if self._expired(stats):
                    raise StoreFailure(
                        STORE_NAME, f"{operation} exceeded timeout of {self.timeout_seconds}s"
                    )
                cur.execute("COMMIT")
            except Exception as e:
                if timer is not None:
                    timer.cancel()
                state = CallState.TIMEOUT if self._expired(stats) else CallState.FAILED
                stats.fail(str(e), state)
                self._rollback(cur, operation)
                if isinstance(e, duckdb.Error):
                    if state == CallState.TIMEOUT:
                        message = f"{operation} exceeded timeout of {self.timeout_seconds}s"
                    else:
                        message = f"{operation} failed: {e}"
                    logger.error(f"{STORE_NAME}.{message}")
                    raise StoreFailure(STORE_NAME, message) from e
                raise
            finally:
                cur.close()
        stats.complete()

    def _expired(self, stats: CallStats) -> bool:
        if self.timeout_seconds is None or stats.start_time is None:
            return False
        return time.time() - stats.start_time >= self.timeout_seconds

    @staticmethod
    def _rollback(cur: duckdb.DuckDBPyConnection, operation: str) -> None:
        try:
            cur.execute("ROLLBACK")
        except duckdb.Error as e:
            # Closing the cursor discards the open transaction
            logger.warning(f"{STORE_NAME}.{operation} rollback failed: {e}")

    def insert(self, experiments: Iterable[Experiment]) -> List[str]:
        """
        Insert experiments and their project links in one transaction.

        Experiments without a URI get one generated from the campaign. The
        generated URI is written back onto the experiment only once the
        transaction has committed.

        Returns:
            The URIs of the created experiments, in input order

        Raises:
            ValidationError: If a payload is invalid or a URI already exists
            StoreFailure: On a driver error or a timeout; nothing is written
        """
        experiments = list(experiments)
        errors = [msg for e in experiments for msg in validate_experiment(e)]
        if errors:
            raise ValidationError(errors)

        created = []
        with self._transaction("insert") as cur:
            for experiment in experiments:
                uri = experiment.uri
                if uri is None:
                    uri = self._generate_uri(cur, experiment)
                elif cur.execute("SELECT 1 FROM experiments WHERE uri = ?", [uri]).fetchone():
                    raise ValidationError(f"Experiment already exists: {uri}")
                cur.execute(
                    f"INSERT INTO experiments ({', '.join(COLUMNS)}) "
                    f"VALUES ({', '.join('?' for _ in COLUMNS)})",
                    [uri if c == "uri" else getattr(experiment, c) for c in COLUMNS],
                )
                self._write_links(cur, uri, LINK_PROJECT, experiment.projects)
                created.append(uri)

        for experiment, uri in zip(experiments, created):
            experiment.uri = uri
        logger.info(f"Inserted {len(created)} experiments")
        return created

    def _generate_uri(self, cur: duckdb.DuckDBPyConnection, experiment: Experiment) -> str:
        """``{base_uri}experiments/{campaign}-{n}`` with n above every numeric suffix in use."""
        campaign = experiment.campaign or str(experiment.start_date.year)
        prefix = f"{self.base_uri}experiments/{campaign}-"
        rows = cur.execute(
            "SELECT uri FROM experiments WHERE starts_with(uri, ?)", [prefix]
        ).fetchall()
        suffixes = [row[0][len(prefix):] for row in rows]
        highest = max((int(s) for s in suffixes if s.isdigit()), default=0)
        return f"{prefix}{highest + 1}"

    def update(self, experiments: Iterable[Experiment]) -> List[str]:
        """
        Overwrite experiments and their project links in one transaction.

        Raises:
            ValidationError: If a payload is invalid or an experiment is unknown
            StoreFailure: On a driver error or a timeout; nothing is written
        """
        experiments = list(experiments)
        errors = [msg for e in experiments for msg in validate_experiment(e)]
        errors.extend(f"Experiment URI is required for update ({e.alias})" for e in experiments if not e.uri)
        if errors:
            raise ValidationError(errors)

        assignments = ", ".join(f"{c} = ?" for c in COLUMNS if c != "uri")
        with self._transaction("update") as cur:
            unknown = [
                e.uri for e in experiments
                if not cur.execute("SELECT 1 FROM experiments WHERE uri = ?", [e.uri]).fetchone()
            ]
            if unknown:
                raise ValidationError([f"Unknown experiment URI: {uri}" for uri in unknown])
            for experiment in experiments:
                cur.execute(
                    f"UPDATE experiments SET {assignments} WHERE uri = ?",
                    [getattr(experiment, c) for c in COLUMNS if c != "uri"] + [experiment.uri],
                )
                self._write_links(cur, experiment.uri, LINK_PROJECT, experiment.projects)
        logger.info(f"Updated {len(experiments)} experiments")
        return [e.uri for e in experiments]

    def replace_links(self, experiment_uri: str, kind: str, target_uris: Iterable[str]) -> None:
        """
        Replace every ``kind`` link of an experiment.

        Raises:
            ValidationError: If the experiment is unknown
            StoreFailure: On a driver error or a timeout; nothing is written
        """
        if kind not in LINK_KINDS:
            raise ValueError(f"Unknown link kind: {kind}")
        target_uris = list(target_uris)
        with self._transaction("replace_links") as cur:
            if not cur.execute("SELECT 1 FROM experiments WHERE uri = ?", [experiment_uri]).fetchone():
                raise ValidationError(f"Unknown experiment URI: {experiment_uri}")
            self._write_links(cur, experiment_uri, kind, target_uris)
        logger.info(f"Linked {len(target_uris)} {kind}(s) to {experiment_uri}")

    @staticmethod
    def _write_links(
        cur: duckdb.DuckDBPyConnection,
        experiment_uri: str,
        kind: str,
        target_uris: Iterable[str],
    ) -> None:
        cur.execute(
            "DELETE FROM experiment_links WHERE experiment_uri = ? AND kind = ?",
            [experiment_uri, kind],
        )
        for target_uri in dict.fromkeys(target_uris):
            cur.execute(
                "INSERT INTO experiment_links VALUES (?, ?, ?)",
                [experiment_uri, kind, target_uri],
            )

    def stats(self) -> Dict[str, Any]:
        cur = self._cursor()
        try:
            count = cur.execute("SELECT COUNT(*) FROM experiments").fetchone()[0]
        except duckdb.Error as e:
            raise StoreFailure(STORE_NAME, f"stats failed: {e}") from e
        finally:
            cur.close()
        return {"database": self.database, "experiments": int(count)}
