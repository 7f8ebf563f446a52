"""Tests for cross-store filter resolution."""

import pytest

from conftest import (
    EXPERIMENT,
    OTHER_EXPERIMENT,
    PLOT_1,
    PLOT_2,
    PROV_ARCH,
    PROV_ELSEWHERE,
    PROV_FIELD,
    VARIABLE,
)
from phenobase.errors import StoreFailure, ValidationError
from phenobase.models import DataCriteria
from phenobase.search import lookups
from phenobase.search.resolver import CrossStoreResolver
from phenobase.vocabulary import OESO_VARIABLE, RDFS_LABEL


@pytest.fixture
def resolver(triplestore, provenance_store):
    triplestore.register(VARIABLE, OESO_VARIABLE)
    triplestore.on_select(f"<{VARIABLE}> <{RDFS_LABEL}> ?label", [{"label": "Leaf area"}])
    return CrossStoreResolver(
        lookups.scientific_objects(triplestore),
        lookups.variables(triplestore),
        provenance_store,
    )


class TestVariable:
    """The variable is validated before anything else."""

    def test_unknown_variable(self, triplestore, provenance_store):
        resolver = CrossStoreResolver(
            lookups.scientific_objects(triplestore), lookups.variables(triplestore), provenance_store
        )
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(EXPERIMENT, DataCriteria(variable_uri="http://example.org/id/variables/nope"))
        assert exc_info.value.messages == ["Unknown variable URI : http://example.org/id/variables/nope"]
        # only the existence check was sent
        assert len(triplestore.queries) == 1
        assert triplestore.queries[0].startswith("ASK")

    def test_variable_label(self, resolver):
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE))
        assert resolved.variable_label == "Leaf area"

    def test_lookup_failure_propagates(self, resolver, triplestore):
        triplestore.fail_with = StoreFailure("triplestore", "unreachable")
        with pytest.raises(StoreFailure):
            resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE))


class TestObjects:
    """Object filters by identifier and by label."""

    def test_no_object_filter(self, resolver):
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE))
        assert resolved.data_filter.object_uris == ()

    def test_object_uri_is_used_directly(self, resolver, triplestore):
        triplestore.on_select(f"<{PLOT_1}> <{RDFS_LABEL}> ?label", [{"label": "Plot 1"}])
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE, object_uri=PLOT_1))
        assert resolved.data_filter.object_uris == (PLOT_1,)
        assert resolved.labels.object_labels(PLOT_1) == ["Plot 1"]
        assert not any("?matched" in q for q in triplestore.queries)

    def test_object_label_resolves_to_every_match(self, resolver, triplestore):
        triplestore.on_select("?matched", [
            {"uri": PLOT_1, "label": "Trial plot 1"},
            {"uri": PLOT_1, "label": "Essai 1"},
            {"uri": PLOT_2, "label": "TRIAL plot 2"},
        ])
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE, object_label="Trial"))
        lookup = next(q for q in triplestore.queries if "?matched" in q)
        assert 'FILTER(REGEX(?matched, "Trial", "i"))' in lookup
        assert resolved.data_filter.object_uris == (PLOT_1, PLOT_2)
        assert resolved.labels.object_labels(PLOT_1) == ["Trial plot 1", "Essai 1"]

    def test_object_label_without_match_is_unsatisfiable(self, resolver, provenance_store):
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE, object_label="nothing"))
        assert resolved.unsatisfiable
        assert resolved.data_filter is None


class TestProvenances:
    """The three provenance branches."""

    def test_all_provenances_of_the_experiment(self, resolver):
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE))
        assert set(resolved.data_filter.provenance_uris) == {PROV_ARCH, PROV_FIELD}
        assert resolved.labels.provenance_label(PROV_ARCH) == "PhenoArch platform"

    def test_provenance_uri_attached(self, resolver):
        resolved = resolver.resolve(EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_uri=PROV_FIELD))
        assert resolved.data_filter.provenance_uris == (PROV_FIELD,)

    def test_provenance_uri_not_attached(self, resolver):
        resolved = resolver.resolve(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_uri=PROV_ELSEWHERE)
        )
        assert resolved.unsatisfiable

    def test_unknown_provenance_uri(self, resolver):
        resolved = resolver.resolve(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_uri="http://example.org/nope")
        )
        assert resolved.unsatisfiable

    def test_provenance_label_keeps_attached_matches(self, resolver):
        # "platform" matches PROV_ARCH and PROV_ELSEWHERE; only the first is attached
        resolved = resolver.resolve(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_label="PLATFORM")
        )
        assert resolved.data_filter.provenance_uris == (PROV_ARCH,)

    def test_provenance_label_without_attached_match(self, resolver):
        resolved = resolver.resolve(
            EXPERIMENT, DataCriteria(variable_uri=VARIABLE, provenance_label="other")
        )
        assert resolved.unsatisfiable

    def test_experiment_without_provenance(self, resolver):
        resolved = resolver.resolve(
            "http://example.org/phenobase/experiments/empty", DataCriteria(variable_uri=VARIABLE)
        )
        assert resolved.unsatisfiable

    def test_provenance_cap(self, triplestore, provenance_store):
        triplestore.register(VARIABLE, OESO_VARIABLE)
        resolver = CrossStoreResolver(
            lookups.scientific_objects(triplestore),
            lookups.variables(triplestore),
            provenance_store,
            provenance_cap=1,
        )
        resolved = resolver.resolve(OTHER_EXPERIMENT, DataCriteria(variable_uri=VARIABLE))
        assert len(resolved.data_filter.provenance_uris) == 1

    def test_uri_wins_over_label(self, resolver):
        resolved = resolver.resolve(
            EXPERIMENT,
            DataCriteria(variable_uri=VARIABLE, provenance_uri=PROV_FIELD, provenance_label="PhenoArch"),
        )
        assert resolved.data_filter.provenance_uris == (PROV_FIELD,)
