"""
Search service: one entry point per search family plus experiment writes.

The service wires the store adapters together. It owns no per-request
state; every call builds its own criteria, label index and page result.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from phenobase.errors import StoreFailure, ValidationError
from phenobase.models import (
    DataCriteria,
    DataSearchResult,
    Experiment,
    ExperimentCriteria,
    Infrastructure,
    InfrastructureCriteria,
    Page,
)
from phenobase.search import lookups
from phenobase.search.families import InfrastructureRepository
from phenobase.search.pagination import PageResult, assemble
from phenobase.search.resolver import CrossStoreResolver
from phenobase.storage.config import ServiceConfig
from phenobase.storage.documents import DataStore, ProvenanceStore
from phenobase.storage.relational import LINK_SENSOR, LINK_VARIABLE, ExperimentStore
from phenobase.storage.sparql_endpoint import SparqlEndpointSession, TriplestoreSession

logger = logging.getLogger(__name__)


class SearchService:
    """
    Searches and experiment writes over the three stores.

    Example:
        service = SearchService.from_config(ServiceConfig.from_env())
        result = service.search_infrastructures(
            InfrastructureCriteria(label="greenhouse", language="en"), Page(0, 20)
        )
        if result.ok:
            for infrastructure in result.items:
                print(infrastructure.uri, infrastructure.label)
    """

    def __init__(
        self,
        triplestore: TriplestoreSession,
        experiments: ExperimentStore,
        provenances: ProvenanceStore,
        data: DataStore,
        config: Optional[ServiceConfig] = None,
    ):
        self.config = config or ServiceConfig()
        self.triplestore = triplestore
        self.experiments = experiments
        self.provenances = provenances
        self.data = data

        language = self.config.triplestore.default_language
        self.infrastructures = InfrastructureRepository(triplestore)
        self.objects = lookups.scientific_objects(triplestore, language)
        self.variables = lookups.variables(triplestore, language)
        self.sensors = lookups.sensors(triplestore, language)
        self.resolver = CrossStoreResolver(
            self.objects,
            self.variables,
            provenances,
            provenance_cap=self.config.pagination.provenance_page_cap,
        )

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "SearchService":
        """Build the stores described by ``config`` and load the document files."""
        session = SparqlEndpointSession(
            config.triplestore.endpoint_url,
            timeout_seconds=config.triplestore.timeout_seconds,
            auth_token=config.triplestore.auth_token,
        )
        experiments = ExperimentStore(
            config.relational.database,
            base_uri=config.base_uri,
            timeout_seconds=config.relational.timeout_seconds,
        )
        provenances = ProvenanceStore(timeout_seconds=config.documents.timeout_seconds)
        data = DataStore(timeout_seconds=config.documents.timeout_seconds)
        if config.documents.provenance_path:
            provenances.load(config.documents.provenance_path)
        if config.documents.data_path:
            data.load(config.documents.data_path)
        logger.info(
            f"Search service ready (triplestore={config.triplestore.endpoint_url}, "
            f"database={config.relational.database})"
        )
        return cls(session, experiments, provenances, data, config)

    def close(self) -> None:
        if isinstance(self.triplestore, SparqlEndpointSession):
            self.triplestore.close()
        self.experiments.close()

    def check_page(self, page: Page) -> None:
        """Refuse pages larger than the configured maximum."""
        if page.size > self.config.pagination.max_page_size:
            raise ValidationError(
                f"pageSize must be at most {self.config.pagination.max_page_size}, got {page.size}"
            )

    def default_page(self) -> Page:
        return Page(0, self.config.pagination.default_page_size)

    # -------------------------------------------------------------------------
    # Infrastructures
    # -------------------------------------------------------------------------

    def _with_language(self, criteria: InfrastructureCriteria) -> InfrastructureCriteria:
        if criteria.language is None and self.config.triplestore.default_language:
            return replace(criteria, language=self.config.triplestore.default_language)
        return criteria

    def search_infrastructures(
        self, criteria: InfrastructureCriteria, page: Page
    ) -> PageResult[Infrastructure]:
        self.check_page(page)
        return self.infrastructures.find(self._with_language(criteria), page)

    def count_infrastructures(self, criteria: InfrastructureCriteria) -> int:
        return self.infrastructures.count(self._with_language(criteria))

    # -------------------------------------------------------------------------
    # Experiments
    # -------------------------------------------------------------------------

    def search_experiments(self, criteria: ExperimentCriteria, page: Page) -> PageResult[Experiment]:
        self.check_page(page)
        return assemble(
            page,
            lambda: self.experiments.count(criteria),
            lambda: self.experiments.find(criteria, page),
        )

    def count_experiments(self, criteria: ExperimentCriteria) -> int:
        return self.experiments.count(criteria)

    def get_experiment(self, uri: str) -> PageResult[Experiment]:
        return self.search_experiments(ExperimentCriteria(uri=uri), Page(0, 1))

    def create_experiments(self, experiments: Iterable[Experiment]) -> List[str]:
        """Insert experiments; returns the created URIs."""
        return self.experiments.insert(experiments)

    def update_experiments(self, experiments: Iterable[Experiment]) -> List[str]:
        return self.experiments.update(experiments)

    def link_variables(self, experiment_uri: str, variable_uris: Iterable[str]) -> None:
        """Replace the variables measured in an experiment."""
        variable_uris = list(variable_uris)
        unknown = [uri for uri in variable_uris if not self.variables.exists(uri)]
        if unknown:
            raise ValidationError([f"Unknown variable URI : {uri}" for uri in unknown])
        self.experiments.replace_links(experiment_uri, LINK_VARIABLE, variable_uris)

    def link_sensors(self, experiment_uri: str, sensor_uris: Iterable[str]) -> None:
        """Replace the sensors used in an experiment."""
        sensor_uris = list(sensor_uris)
        unknown = [uri for uri in sensor_uris if not self.sensors.exists(uri)]
        if unknown:
            raise ValidationError([f"Unknown sensor URI : {uri}" for uri in unknown])
        self.experiments.replace_links(experiment_uri, LINK_SENSOR, sensor_uris)

    # -------------------------------------------------------------------------
    # Experiment data
    # -------------------------------------------------------------------------

    def search_experiment_data(
        self, experiment_uri: str, criteria: DataCriteria, page: Page
    ) -> PageResult[DataSearchResult]:
        """
        Measurements of one variable in an experiment, decorated with labels.

        Object and provenance filters are resolved first; an unknown
        variable gives NOT_FOUND and an unsatisfiable filter NO_RESULTS,
        in both cases without touching the data store.
        """
        self.check_page(page)
        try:
            resolved = self.resolver.resolve(experiment_uri, criteria)
        except ValidationError as e:
            logger.info(f"Data search on {experiment_uri} rejected: {e}")
            return PageResult.not_found(page, e.messages)
        except StoreFailure as e:
            logger.error(f"Data search on {experiment_uri} could not resolve filters: {e}")
            return PageResult.failure(page, str(e))

        if resolved.unsatisfiable:
            return PageResult.no_results(page)

        data_filter = resolved.data_filter
        result = assemble(
            page,
            lambda: self.data.count(data_filter),
            lambda: self.data.find(data_filter, page),
        )
        labels = resolved.labels
        try:
            return result.map(lambda point: DataSearchResult(
                data=point,
                provenance_label=labels.provenance_label(point.provenance_uri),
                object_labels=labels.object_labels(point.object_uri) if point.object_uri else [],
                variable_label=resolved.variable_label,
            ))
        except StoreFailure as e:
            logger.error(f"Data search on {experiment_uri} could not load labels: {e}")
            return PageResult.failure(page, str(e), result.total_count)
