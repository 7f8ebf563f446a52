"""Shared fixtures: a scripted triplestore and in-memory stores."""

import re
from datetime import date, datetime, timedelta

import pytest

from phenobase import DataPoint, Experiment, Provenance, SearchService, ServiceConfig
from phenobase.storage import DataStore, ExperimentStore, ProvenanceStore

BASE_URI = "http://example.org/phenobase/"
EXPERIMENT = "http://example.org/phenobase/experiments/2017-1"
OTHER_EXPERIMENT = "http://example.org/phenobase/experiments/2017-2"
VARIABLE = "http://example.org/id/variables/v001"
SENSOR = "http://example.org/id/sensors/s001"
PROV_ARCH = "http://example.org/id/provenance/phenoarch"
PROV_FIELD = "http://example.org/id/provenance/field-campaign"
PROV_ELSEWHERE = "http://example.org/id/provenance/other"
PLOT_1 = "http://example.org/id/so/plot1"
PLOT_2 = "http://example.org/id/so/plot2"

_LIMIT = re.compile(r"^LIMIT (\d+)$", re.MULTILINE)
_OFFSET = re.compile(r"^OFFSET (\d+)$", re.MULTILINE)


class ScriptedTriplestore:
    """
    Triplestore test double.

    SELECT queries are answered by the first rule whose needles all appear
    in the query text. A count query gets the number of rows of its rule;
    a search query gets the rows sliced by its LIMIT/OFFSET. ASK queries
    answer True for a URI registered with ``register`` under the asked
    type. Every query text is recorded in ``queries``.
    """

    def __init__(self):
        self.rules = []
        self.known = {}
        self.queries = []
        self.fail_with = None

    def on_select(self, needles, rows):
        if isinstance(needles, str):
            needles = [needles]
        self.rules.append((list(needles), list(rows)))

    def register(self, uri, root_type):
        self.known[uri] = root_type

    def evaluate(self, query):
        text = str(query)
        self.queries.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        for needles, rows in self.rules:
            if all(n in text for n in needles):
                if "(COUNT(" in text:
                    return [{"count": str(len(rows))}]
                offset = int(_OFFSET.search(text).group(1)) if _OFFSET.search(text) else 0
                limit = int(_LIMIT.search(text).group(1)) if _LIMIT.search(text) else None
                sliced = rows[offset:]
                return sliced if limit is None else sliced[:limit]
        if "(COUNT(" in text:
            return [{"count": "0"}]
        return []

    def ask(self, query):
        text = str(query)
        self.queries.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return any(
            f"<{uri}> " in text and f"<{root}>" in text for uri, root in self.known.items()
        )

    def selects(self):
        return [q for q in self.queries if q.startswith("SELECT")]


@pytest.fixture
def triplestore():
    return ScriptedTriplestore()


@pytest.fixture
def experiment_store():
    store = ExperimentStore(":memory:", base_uri=BASE_URI, timeout_seconds=10)
    yield store
    store.close()


@pytest.fixture
def provenance_store():
    store = ProvenanceStore(timeout_seconds=10)
    store.add([
        Provenance(uri=PROV_ARCH, label="PhenoArch platform", experiments=[EXPERIMENT]),
        Provenance(uri=PROV_FIELD, label="Field campaign", experiments=[EXPERIMENT, OTHER_EXPERIMENT]),
        Provenance(uri=PROV_ELSEWHERE, label="Other platform", experiments=[OTHER_EXPERIMENT]),
    ])
    return store


def make_points(count, provenance_uri=PROV_ARCH, object_uri=PLOT_1, variable_uri=VARIABLE, prefix="d"):
    start = datetime(2017, 6, 1, 8, 0)
    return [
        DataPoint(
            uri=f"http://example.org/id/data/{prefix}{i:03d}",
            variable_uri=variable_uri,
            provenance_uri=provenance_uri,
            object_uri=object_uri,
            date=start + timedelta(hours=i),
            value=float(i),
        )
        for i in range(count)
    ]


@pytest.fixture
def data_store():
    return DataStore(timeout_seconds=10)


@pytest.fixture
def service(triplestore, experiment_store, provenance_store, data_store):
    return SearchService(triplestore, experiment_store, provenance_store, data_store, ServiceConfig())


@pytest.fixture
def experiment():
    return Experiment(
        uri=EXPERIMENT,
        start_date=date(2017, 5, 1),
        end_date=date(2017, 9, 30),
        field="Mauguio field",
        campaign="2017",
        place="Montpellier",
        alias="DROPS 2017",
        keywords="maize drought",
        projects=["http://example.org/id/projects/drops"],
    )
