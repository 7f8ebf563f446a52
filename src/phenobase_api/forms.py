"""
Request DTOs and BrAPI-style response forms.

Every response has the same envelope:

    {
      "metadata": {
        "pagination": {"pageSize": 20, "currentPage": 0, "totalCount": 45, "totalPages": 3},
        "status": [{"message": "...", "messageType": "INFO"}],
        "datafiles": []
      },
      "result": {"data": [...]}
    }
"""

from datetime import date
from typing import Any, Callable, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from phenobase import Experiment, Outcome, PageResult, ValidationError
from phenobase.dates import parse_date, parse_datetime


OUTCOME_STATUS = {
    Outcome.SUCCESS: 200,
    Outcome.NO_RESULTS: 404,
    Outcome.NOT_FOUND: 404,
    Outcome.STORE_FAILURE: 500,
}


# =============================================================================
# Request models
# =============================================================================

class ExperimentInput(BaseModel):
    """An experiment to create or update."""
    model_config = ConfigDict(populate_by_name=True)

    uri: Optional[str] = Field(None, description="Experiment URI, generated on creation when omitted")
    start_date: date = Field(..., alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    field: Optional[str] = None
    campaign: Optional[str] = Field(None, description="Campaign year (YYYY)")
    place: Optional[str] = None
    alias: Optional[str] = None
    keywords: Optional[str] = None
    objective: Optional[str] = None
    comment: Optional[str] = None
    crop_species: Optional[str] = Field(None, alias="cropSpecies")
    projects: list[str] = Field(default_factory=list, description="URIs of the projects of the experiment")

    def to_experiment(self) -> Experiment:
        return Experiment(
            uri=self.uri,
            start_date=self.start_date,
            end_date=self.end_date,
            field=self.field,
            campaign=self.campaign,
            place=self.place,
            alias=self.alias,
            keywords=self.keywords,
            objective=self.objective,
            comment=self.comment,
            crop_species=self.crop_species,
            projects=list(self.projects),
        )


# =============================================================================
# Parameter helpers
# =============================================================================

def date_param(name: str, value: Optional[str]) -> Optional[date]:
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r} (expected YYYY-MM-DD)")


def datetime_param(name: str, value: Optional[str], end_of_day: bool = False):
    try:
        return parse_datetime(value, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(
            f"Invalid {name}: {value!r} (expected YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS+ZZZZ)"
        )


def uri_param(name: str, value: Optional[str], short_value: Optional[str], required: bool = False) -> Optional[str]:
    """Pick a URI given under its full name (``variableUri``) or its short one (``variable``)."""
    chosen = value if value is not None else short_value
    if chosen is None and required:
        raise ValidationError(f"{name} is required")
    return chosen


# =============================================================================
# Response forms
# =============================================================================

def status_entries(messages: list[str], message_type: str) -> list[dict[str, str]]:
    return [{"message": m, "messageType": message_type} for m in messages]


def form(
    data: list[Any],
    page_size: int = 0,
    current_page: int = 0,
    total_count: int = 0,
    total_pages: int = 0,
    status: Optional[list[dict[str, str]]] = None,
    datafiles: Optional[list[str]] = None,
) -> dict[str, Any]:
    return {
        "metadata": {
            "pagination": {
                "pageSize": page_size,
                "currentPage": current_page,
                "totalCount": total_count,
                "totalPages": total_pages,
            },
            "status": status or [],
            "datafiles": datafiles or [],
        },
        "result": {"data": data},
    }


def page_response(result: PageResult, to_dict: Callable[[Any], dict[str, Any]]) -> JSONResponse:
    """Render a page result with the HTTP status of its outcome."""
    message_type = "INFO" if result.outcome in (Outcome.SUCCESS, Outcome.NO_RESULTS) else "ERROR"
    body = form(
        [to_dict(item) for item in result.items],
        page_size=result.page_size,
        current_page=result.page,
        total_count=result.total_count,
        total_pages=result.total_pages,
        status=status_entries(result.messages, message_type),
    )
    return JSONResponse(status_code=OUTCOME_STATUS[result.outcome], content=body)


def status_response(
    status_code: int,
    messages: list[str],
    datafiles: Optional[list[str]] = None,
) -> JSONResponse:
    """A response with no data, only status messages (writes and errors)."""
    message_type = "INFO" if status_code < 400 else "ERROR"
    return JSONResponse(
        status_code=status_code,
        content=form([], status=status_entries(messages, message_type), datafiles=datafiles),
    )
