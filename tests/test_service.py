"""Tests for the search service."""

from datetime import datetime

import pytest

from conftest import (
    EXPERIMENT,
    PLOT_1,
    PLOT_2,
    PROV_ARCH,
    PROV_ELSEWHERE,
    PROV_FIELD,
    SENSOR,
    VARIABLE,
    make_points,
)
from phenobase.errors import ValidationError
from phenobase.models import DataCriteria, ExperimentCriteria, InfrastructureCriteria, Page
from phenobase.search.pagination import Outcome
from phenobase.storage.config import ServiceConfig
from phenobase.vocabulary import OESO_SENSING_DEVICE, OESO_VARIABLE, RDFS_LABEL


class SpyingDataStore:
    """Wraps a DataStore and records the calls made to it."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def count(self, data_filter):
        self.calls.append("count")
        return self.inner.count(data_filter)

    def find(self, data_filter, page):
        self.calls.append("find")
        return self.inner.find(data_filter, page)


@pytest.fixture
def known_variable(triplestore):
    triplestore.register(VARIABLE, OESO_VARIABLE)
    triplestore.on_select(f"<{VARIABLE}> <{RDFS_LABEL}> ?label", [{"label": "Leaf area"}])
    triplestore.on_select(f"<{PLOT_1}> <{RDFS_LABEL}> ?label", [{"label": "Plot 1"}])
    triplestore.on_select(f"<{PLOT_2}> <{RDFS_LABEL}> ?label", [{"label": "Plot 2"}])


@pytest.fixture
def spy(service):
    service.data = SpyingDataStore(service.data)
    return service.data


# =============================================================================
# Experiment data
# =============================================================================

class TestSearchExperimentData:
    """Tests for search_experiment_data."""

    def test_pages_of_45(self, service, data_store, known_variable):
        data_store.add(make_points(45))
        criteria = DataCriteria(variable_uri=VARIABLE)

        first = service.search_experiment_data(EXPERIMENT, criteria, Page(0, 20))
        assert first.outcome == Outcome.SUCCESS
        assert len(first.items) == 20
        assert first.total_count == 45

        last = service.search_experiment_data(EXPERIMENT, criteria, Page(2, 20))
        assert len(last.items) == 5

    def test_results_are_decorated(self, service, data_store, known_variable):
        data_store.add(make_points(3))
        result = service.search_experiment_data(EXPERIMENT, DataCriteria(variable_uri=VARIABLE), Page(0, 20))
        record = result.items[0].to_dict()
        assert record["provenance"] == {"uri": PROV_ARCH, "label": "PhenoArch platform"}
        assert record["object"] == {"uri": PLOT_1, "labels": ["Plot 1"]}
        assert record["variable"] == {"uri": VARIABLE, "label": "Leaf area"}

    def test_object_labels_are_looked_up_once(self, service, data_store, triplestore, known_variable):
        data_store.add(make_points(10))
        service.search_experiment_data(EXPERIMENT, DataCriteria(variable_uri=VARIABLE), Page(0, 20))
        lookups = [q for q in triplestore.queries if f"<{PLOT_1}> <{RDFS_LABEL}>" in q]
        assert len(lookups) == 1

    def test_unknown_variable_is_not_found(self, service, spy, triplestore):
        result = service.search_experiment_data(
            EXPERIMENT, DataCriteria(variable_uri="http://example.org/id/variables/unknown"), Page(0, 20)
        )
        assert result.outcome == Outcome.NOT_FOUND
        assert result.messages == ["Unknown variable URI : http://example.org/id/variables/unknown"]
        assert spy.calls == []

    def test_provenance_not_linked_skips_data_store(self, service, spy, known_variable):
        result = service.search_experiment_data(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_uri=PROV_ELSEWHERE), Page(0, 20)
        )
        assert result.outcome == Outcome.NO_RESULTS
        assert spy.calls == []

    def test_object_label_filter(self, service, data_store, triplestore, known_variable):
        data_store.add(make_points(4, object_uri=PLOT_1, prefix="a"))
        data_store.add(make_points(6, object_uri=PLOT_2, prefix="b"))
        data_store.add(make_points(5, object_uri="http://example.org/id/so/other", prefix="c"))
        triplestore.on_select("?matched", [
            {"uri": PLOT_1, "label": "Trial plot 1"},
            {"uri": PLOT_2, "label": "trial plot 2"},
        ])
        result = service.search_experiment_data(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, object_label="Trial"), Page(0, 20)
        )
        assert result.total_count == 10
        assert {item.data.object_uri for item in result.items} == {PLOT_1, PLOT_2}

    def test_date_range(self, service, data_store, known_variable):
        data_store.add(make_points(48))
        criteria = DataCriteria(
            variable_uri=VARIABLE,
            start_date=datetime(2017, 6, 2, 0, 0),
            end_date=datetime(2017, 6, 2, 23, 59, 59),
        )
        result = service.search_experiment_data(EXPERIMENT, criteria, Page(0, 50))
        assert result.total_count == 24

    def test_count_only(self, service, data_store, spy, known_variable):
        data_store.add(make_points(12))
        result = service.search_experiment_data(EXPERIMENT, DataCriteria(variable_uri=VARIABLE), Page(0, 0))
        assert result.ok
        assert result.total_count == 12
        assert spy.calls == ["count"]

    def test_identical_searches(self, service, data_store, known_variable):
        data_store.add(make_points(30, provenance_uri=PROV_FIELD))
        criteria = DataCriteria(variable_uri=VARIABLE, provenance_label="field")
        assert service.search_experiment_data(EXPERIMENT, criteria, Page(1, 10)) == \
            service.search_experiment_data(EXPERIMENT, criteria, Page(1, 10))

    def test_page_size_limit(self, service, known_variable):
        with pytest.raises(ValidationError):
            service.search_experiment_data(
                EXPERIMENT, DataCriteria(variable_uri=VARIABLE), Page(0, 100000)
            )


# =============================================================================
# Infrastructures
# =============================================================================

class TestSearchInfrastructures:
    """Tests for the infrastructure entry points."""

    def test_default_language_applied(self, triplestore, experiment_store, provenance_store, data_store):
        from phenobase.search.service import SearchService

        config = ServiceConfig()
        config.triplestore.default_language = "fr"
        service = SearchService(triplestore, experiment_store, provenance_store, data_store, config)
        service.search_infrastructures(InfrastructureCriteria(), Page(0, 20))
        assert 'LANGMATCHES(LANG(?rdfTypeLabel), "fr")' in triplestore.queries[0]

    def test_explicit_language_wins(self, service, triplestore):
        service.count_infrastructures(InfrastructureCriteria(language="en"))
        assert 'LANGMATCHES(LANG(?rdfTypeLabel), "en")' in triplestore.queries[0]


# =============================================================================
# Experiments
# =============================================================================

class TestExperiments:
    """Tests for experiment search and writes."""

    def test_create_and_get(self, service, experiment):
        assert service.create_experiments([experiment]) == [EXPERIMENT]
        result = service.get_experiment(EXPERIMENT)
        assert result.ok
        assert result.items[0].alias == "DROPS 2017"

    def test_get_unknown(self, service):
        assert service.get_experiment("http://example.org/none").outcome == Outcome.NO_RESULTS

    def test_search(self, service, experiment):
        service.create_experiments([experiment])
        result = service.search_experiments(ExperimentCriteria(alias="drops"), Page(0, 20))
        assert result.total_count == 1
        assert service.count_experiments(ExperimentCriteria(campaign="2016")) == 0

    def test_link_variables(self, service, triplestore, experiment):
        triplestore.register(VARIABLE, OESO_VARIABLE)
        service.create_experiments([experiment])
        service.link_variables(EXPERIMENT, [VARIABLE])
        assert service.get_experiment(EXPERIMENT).items[0].variables == [VARIABLE]

    def test_link_unknown_variable(self, service, experiment):
        service.create_experiments([experiment])
        with pytest.raises(ValidationError) as exc_info:
            service.link_variables(EXPERIMENT, [VARIABLE, "http://example.org/id/variables/x"])
        assert len(exc_info.value.messages) == 2

    def test_link_sensors_checks_kind(self, service, triplestore, experiment):
        triplestore.register(VARIABLE, OESO_VARIABLE)
        triplestore.register(SENSOR, OESO_SENSING_DEVICE)
        service.create_experiments([experiment])
        with pytest.raises(ValidationError):
            service.link_sensors(EXPERIMENT, [VARIABLE])
        service.link_sensors(EXPERIMENT, [SENSOR])
        assert service.get_experiment(EXPERIMENT).items[0].sensors == [SENSOR]
