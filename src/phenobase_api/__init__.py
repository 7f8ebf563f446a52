"""
PhenoBase API Layer

FastAPI-based REST API for the PhenoBase search service.
Separates API concerns from the core engine (phenobase).
"""

__version__ = "0.1.0"

from phenobase_api.web import create_app

__all__ = ["create_app"]
