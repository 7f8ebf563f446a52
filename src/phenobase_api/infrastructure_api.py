"""
Infrastructure API Router.

- GET /infrastructures: search by URI, type, label, parent
- POST/PUT/DELETE /infrastructures: refused (501), infrastructures are
  managed in the ontology
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Query

from phenobase import Infrastructure, InfrastructureCriteria, Page, SearchService

from phenobase_api.forms import page_response


def create_infrastructure_router(service: SearchService) -> APIRouter:
    """Create router for the infrastructure endpoints."""
    router = APIRouter(prefix="/infrastructures", tags=["infrastructures"])

    @router.get("")
    def search_infrastructures(
        uri: Optional[str] = Query(None, description="Infrastructure URI"),
        rdf_type: Optional[str] = Query(None, alias="rdfType", description="Exact infrastructure type URI"),
        label: Optional[str] = Query(None, description="Part of the label, case-insensitive"),
        parent: Optional[str] = Query(None, description="URI of the parent infrastructure"),
        language: Optional[str] = Query(None, description="Language of the type labels (e.g. en, fr)"),
        page_size: Optional[int] = Query(None, alias="pageSize", ge=0),
        page: int = Query(0, ge=0),
    ):
        """Search infrastructures; type labels follow the requested language."""
        criteria = InfrastructureCriteria(
            uri=uri, rdf_type=rdf_type, label=label, parent=parent, language=language,
        )
        size = service.default_page().size if page_size is None else page_size
        result = service.search_infrastructures(criteria, Page(page, size))
        return page_response(result, Infrastructure.to_dict)

    @router.post("")
    def create_infrastructures(body: list[dict[str, Any]] = Body(...)):
        service.infrastructures.create(body)

    @router.put("")
    def update_infrastructures(body: list[dict[str, Any]] = Body(...)):
        service.infrastructures.update(body)

    @router.delete("")
    def delete_infrastructures(uri: list[str] = Query(...)):
        service.infrastructures.delete(uri)

    return router
