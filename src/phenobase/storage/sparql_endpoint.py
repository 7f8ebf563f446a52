"""
Triplestore session over the SPARQL 1.1 HTTP protocol.

Queries are POSTed as form data and results are read as
``application/sparql-results+json``. Rows are returned as plain dicts of
binding name -> lexical value; unbound variables are simply absent from the
row.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Protocol, Union

import httpx

from phenobase.errors import StoreFailure
from phenobase.sparql.ast import AskQuery, SelectQuery

logger = logging.getLogger(__name__)

STORE_NAME = "triplestore"

Row = Dict[str, str]
QueryText = Union[str, SelectQuery, AskQuery]


class EndpointStatus(Enum):
    """Remote endpoint health status."""
    HEALTHY = auto()
    UNREACHABLE = auto()
    UNKNOWN = auto()


class TriplestoreSession(Protocol):
    """What the search layer needs from a triplestore."""

    def evaluate(self, query: QueryText) -> List[Row]:
        ...

    def ask(self, query: QueryText) -> bool:
        ...


class SparqlEndpointSession:
    """
    Executes SPARQL queries against a remote endpoint.

    Every failure to obtain a well-formed answer (connection error, timeout,
    HTTP error status, unparsable body) raises StoreFailure. No retries are
    performed here.

    Example:
        session = SparqlEndpointSession("http://localhost:7200/repositories/phis")
        rows = session.evaluate("SELECT ?s WHERE { ?s ?p ?o } LIMIT 1")
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 30.0,
        auth_token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self._headers = {"Accept": "application/sparql-results+json"}
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"
        if headers:
            self._headers.update(headers)
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._owns_client = client is None

        # Health tracking
        self.status = EndpointStatus.UNKNOWN
        self.last_checked: Optional[datetime] = None
        self.last_latency_ms: Optional[float] = None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "SparqlEndpointSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _post(self, query: QueryText) -> Dict[str, Any]:
        text = str(query)
        logger.debug(f"SPARQL query: {text}")
        start_time = time.time()
        try:
            response = self._client.post(
                self.endpoint_url,
                data={"query": text},
                headers=self._headers,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            self._mark(EndpointStatus.UNREACHABLE)
            logger.error(f"SPARQL endpoint {self.endpoint_url} timed out: {e}")
            raise StoreFailure(STORE_NAME, f"query timed out after {self.timeout_seconds}s") from e
        except httpx.HTTPStatusError as e:
            # The endpoint answered: it is reachable but rejected the query
            self._mark(EndpointStatus.HEALTHY)
            logger.error(
                f"SPARQL endpoint rejected query with {e.response.status_code}: {e.response.text[:500]}"
            )
            raise StoreFailure(STORE_NAME, f"query rejected with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self._mark(EndpointStatus.UNREACHABLE)
            logger.error(f"SPARQL endpoint {self.endpoint_url} unreachable: {e}")
            raise StoreFailure(STORE_NAME, f"endpoint unreachable: {e}") from e
        except ValueError as e:
            logger.error(f"SPARQL endpoint returned a malformed body: {e}")
            raise StoreFailure(STORE_NAME, "malformed SPARQL JSON results") from e

        self._mark(EndpointStatus.HEALTHY, (time.time() - start_time) * 1000)
        if not isinstance(data, dict):
            raise StoreFailure(STORE_NAME, "malformed SPARQL JSON results")
        return data

    def _mark(self, status: EndpointStatus, latency_ms: Optional[float] = None) -> None:
        self.status = status
        self.last_checked = datetime.now()
        if latency_ms is not None:
            self.last_latency_ms = latency_ms

    def evaluate(self, query: QueryText) -> List[Row]:
        """Run a SELECT query and return its rows."""
        data = self._post(query)
        try:
            bindings_list = data["results"]["bindings"]
        except (KeyError, TypeError) as e:
            raise StoreFailure(STORE_NAME, "SELECT response has no results.bindings") from e

        # Convert SPARQL JSON results to simple dicts
        results = []
        for binding in bindings_list:
            row = {}
            for var, val in binding.items():
                row[var] = val.get("value")
            results.append(row)
        logger.debug(f"SPARQL query returned {len(results)} rows")
        return results

    def ask(self, query: QueryText) -> bool:
        """Run an ASK query."""
        data = self._post(query)
        if not isinstance(data.get("boolean"), bool):
            raise StoreFailure(STORE_NAME, "ASK response has no boolean")
        return data["boolean"]

    def check_health(self) -> EndpointStatus:
        """Probe the endpoint with a trivial ASK query."""
        try:
            self.ask("ASK { ?s ?p ?o }")
        except StoreFailure as e:
            # _post already recorded whether the endpoint answered at all
            logger.warning(f"Health check failed for {self.endpoint_url}: {e}")
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.endpoint_url,
            "timeout_seconds": self.timeout_seconds,
            "status": self.status.name,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "last_latency_ms": self.last_latency_ms,
        }
