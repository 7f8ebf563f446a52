"""
Experiment API Router.

Provides REST endpoints for experiments:
- Search experiments, get one experiment
- Create and update experiments
- Replace the variables and sensors linked to an experiment
- Search the measurements of an experiment

Experiment URIs appear in paths URL-encoded, e.g.
``/experiments/http%3A%2F%2Fwww.phenome-fppn.fr%2Fdiaphen%2FDIA2017-1/data``.

Paths are decoded before routing, so an experiment URI ending in ``/data``,
``/variables`` or ``/sensors`` is taken for the sub-resource by
``GET /experiments/{uri}``. Fetch such an experiment with
``GET /experiments?uri=<uri>``, which matches the URI exactly.
"""

from typing import Optional

from fastapi import APIRouter, Body, Query

from phenobase import (
    DataCriteria,
    DataSearchResult,
    Experiment,
    ExperimentCriteria,
    Page,
    SearchService,
)

from phenobase_api.forms import (
    ExperimentInput,
    date_param,
    datetime_param,
    page_response,
    status_response,
    uri_param,
)


def create_experiment_router(service: SearchService) -> APIRouter:
    """Create router for the experiment endpoints."""
    router = APIRouter(prefix="/experiments", tags=["experiments"])

    def page_of(number: int, size: Optional[int]) -> Page:
        return Page(number, service.default_page().size if size is None else size)

    @router.get("")
    def search_experiments(
        uri: Optional[str] = Query(None),
        project_uri: Optional[str] = Query(None, alias="projectUri"),
        start_date: Optional[str] = Query(None, alias="startDate", description="YYYY-MM-DD"),
        end_date: Optional[str] = Query(None, alias="endDate", description="YYYY-MM-DD"),
        field: Optional[str] = Query(None),
        campaign: Optional[str] = Query(None, description="Campaign year (YYYY)"),
        place: Optional[str] = Query(None),
        alias: Optional[str] = Query(None),
        keywords: Optional[str] = Query(None),
        page_size: Optional[int] = Query(None, alias="pageSize", ge=0),
        page: int = Query(0, ge=0),
    ):
        """Search experiments; text filters are case-insensitive partial matches."""
        criteria = ExperimentCriteria(
            uri=uri,
            project_uri=project_uri,
            start_date=date_param("startDate", start_date),
            end_date=date_param("endDate", end_date),
            field=field,
            campaign=campaign,
            place=place,
            alias=alias,
            keywords=keywords,
        )
        result = service.search_experiments(criteria, page_of(page, page_size))
        return page_response(result, Experiment.to_dict)

    @router.post("")
    def create_experiments(experiments: list[ExperimentInput] = Body(...)):
        """Create experiments; the created URIs are listed in metadata.datafiles."""
        created = service.create_experiments(e.to_experiment() for e in experiments)
        return status_response(201, [f"{len(created)} experiment(s) created"], datafiles=created)

    @router.put("")
    def update_experiments(experiments: list[ExperimentInput] = Body(...)):
        updated = service.update_experiments(e.to_experiment() for e in experiments)
        return status_response(200, [f"{len(updated)} experiment(s) updated"], datafiles=updated)

    @router.get("/{uri:path}/data")
    def search_experiment_data(
        uri: str,
        variable_uri: Optional[str] = Query(None, alias="variableUri", description="Variable URI (required)"),
        variable: Optional[str] = Query(None, description="Short form of variableUri"),
        start_date: Optional[str] = Query(None, alias="startDate"),
        end_date: Optional[str] = Query(None, alias="endDate"),
        object_uri: Optional[str] = Query(None, alias="objectUri", description="Scientific object URI"),
        object_short: Optional[str] = Query(None, alias="object", description="Short form of objectUri"),
        object_label: Optional[str] = Query(None, alias="objectLabel"),
        provenance_uri: Optional[str] = Query(None, alias="provenanceUri", description="Provenance URI"),
        provenance_short: Optional[str] = Query(None, alias="provenance", description="Short form of provenanceUri"),
        provenance_label: Optional[str] = Query(None, alias="provenanceLabel"),
        page_size: Optional[int] = Query(None, alias="pageSize", ge=0),
        page: int = Query(0, ge=0),
    ):
        """
        Measurements of one variable in an experiment.

        Dates accept YYYY-MM-DD or a date-time with offset; a date-only
        endDate covers the whole day.
        """
        criteria = DataCriteria(
            variable_uri=uri_param("variableUri", variable_uri, variable, required=True),
            start_date=datetime_param("startDate", start_date),
            end_date=datetime_param("endDate", end_date, end_of_day=True),
            object_uri=uri_param("objectUri", object_uri, object_short),
            object_label=object_label,
            provenance_uri=uri_param("provenanceUri", provenance_uri, provenance_short),
            provenance_label=provenance_label,
        )
        result = service.search_experiment_data(uri, criteria, page_of(page, page_size))
        return page_response(result, DataSearchResult.to_dict)

    @router.put("/{uri:path}/variables")
    def link_variables(uri: str, variables: list[str] = Body(...)):
        """Replace the variables measured in the experiment."""
        service.link_variables(uri, variables)
        return status_response(200, [f"{len(variables)} variable(s) linked to {uri}"], datafiles=[uri])

    @router.put("/{uri:path}/sensors")
    def link_sensors(uri: str, sensors: list[str] = Body(...)):
        """Replace the sensors used in the experiment."""
        service.link_sensors(uri, sensors)
        return status_response(200, [f"{len(sensors)} sensor(s) linked to {uri}"], datafiles=[uri])

    @router.get("/{experiment:path}")
    def get_experiment(experiment: str):
        return page_response(service.get_experiment(experiment), Experiment.to_dict)

    return router
