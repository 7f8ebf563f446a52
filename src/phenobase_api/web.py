"""
PhenoBase Web API

FastAPI-based REST API over the PhenoBase search service.
Provides endpoints for:
- Infrastructure search
- Experiment search, creation and update
- Experiment variable and sensor links
- Experiment measurement search
- Health check
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from phenobase import (
    MaterializationError,
    QueryBuildError,
    SearchService,
    ServiceConfig,
    StoreFailure,
    UnsupportedOperation,
    ValidationError,
    __version__,
)
from phenobase.storage import SparqlEndpointSession, recent_calls

from phenobase_api.experiment_api import create_experiment_router
from phenobase_api.forms import status_response
from phenobase_api.infrastructure_api import create_infrastructure_router

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[SearchService] = None,
    config: Optional[ServiceConfig] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional SearchService (built from config if not provided)
        config: Optional ServiceConfig (read from the environment if not provided)

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = service.config if service is not None else ServiceConfig.from_env()
    if service is None:
        service = SearchService.from_config(config)

    production_mode = config.production

    if config.cors_origins:
        allowed_origins = list(config.cors_origins)
    elif production_mode:
        # In production, only allow same-origin by default
        allowed_origins = []
    else:
        allowed_origins = ["*"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        service.close()

    app = FastAPI(
        title="PhenoBase API",
        description="Search and experiment services for phenotyping data",
        version=__version__,
        docs_url="/docs" if not production_mode else None,
        redoc_url="/redoc" if not production_mode else None,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if production_mode:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # =========================================================================
    # Error handlers
    # =========================================================================

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return status_response(400, exc.messages)

    @app.exception_handler(QueryBuildError)
    async def query_build_error_handler(request: Request, exc: QueryBuildError):
        return status_response(400, [str(exc)])

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return status_response(400, messages)

    @app.exception_handler(UnsupportedOperation)
    async def unsupported_operation_handler(request: Request, exc: UnsupportedOperation):
        return status_response(501, [str(exc)])

    @app.exception_handler(MaterializationError)
    async def materialization_error_handler(request: Request, exc: MaterializationError):
        logger.error(f"Incomplete {exc.entity} row: {exc}")
        return status_response(500, [str(exc)])

    @app.exception_handler(StoreFailure)
    async def store_failure_handler(request: Request, exc: StoreFailure):
        logger.error(f"Store failure on {request.url.path}: {exc}")
        return status_response(500, [str(exc)])

    # =========================================================================
    # Routes
    # =========================================================================

    app.include_router(create_infrastructure_router(service))
    app.include_router(create_experiment_router(service))

    @app.get("/health")
    def health():
        """Liveness, the last known state of the triplestore endpoint and recent store failures."""
        status = {
            "status": "healthy",
            "version": __version__,
            "storeFailures": recent_calls(limit=10, failed_only=True),
        }
        if isinstance(service.triplestore, SparqlEndpointSession):
            status["triplestore"] = service.triplestore.to_dict()
        return status

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("PHENOBASE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(),
        host=os.getenv("PHENOBASE_HOST", "0.0.0.0"),
        port=int(os.getenv("PHENOBASE_PORT", "8000")),
    )
