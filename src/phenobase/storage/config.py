"""
Service configuration for PhenoBase.

Provides:
- Per-store configuration (triplestore, relational, document stores)
- Pagination defaults and caps
- Loading from a YAML file plus environment overrides
- Configuration validation
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "PHENOBASE_CONFIG"


@dataclass
class TriplestoreConfig:
    """SPARQL endpoint settings."""
    endpoint_url: str = "http://localhost:7200/repositories/phenobase"
    timeout_seconds: float = 30.0
    auth_token: Optional[str] = None
    default_language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint_url": self.endpoint_url,
            "timeout_seconds": self.timeout_seconds,
            "auth_token": self.auth_token,
            "default_language": self.default_language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriplestoreConfig":
        return cls(
            endpoint_url=data.get("endpoint_url", "http://localhost:7200/repositories/phenobase"),
            timeout_seconds=data.get("timeout_seconds", 30.0),
            auth_token=data.get("auth_token"),
            default_language=data.get("default_language"),
        )


@dataclass
class RelationalConfig:
    """DuckDB experiment store settings."""
    database: str = ":memory:"
    timeout_seconds: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database": self.database,
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelationalConfig":
        return cls(
            database=data.get("database", ":memory:"),
            timeout_seconds=data.get("timeout_seconds", 30.0),
        )


@dataclass
class DocumentConfig:
    """Provenance and data record files (NDJSON or Parquet), loaded at startup."""
    provenance_path: Optional[str] = None
    data_path: Optional[str] = None
    timeout_seconds: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provenance_path": self.provenance_path,
            "data_path": self.data_path,
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentConfig":
        return cls(
            provenance_path=data.get("provenance_path"),
            data_path=data.get("data_path"),
            timeout_seconds=data.get("timeout_seconds", 30.0),
        )


@dataclass
class PaginationConfig:
    """Page size defaults."""
    default_page_size: int = 20
    max_page_size: int = 5000
    # Upper bound when listing every provenance of an experiment
    provenance_page_cap: int = 5000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_page_size": self.default_page_size,
            "max_page_size": self.max_page_size,
            "provenance_page_cap": self.provenance_page_cap,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaginationConfig":
        return cls(
            default_page_size=data.get("default_page_size", 20),
            max_page_size=data.get("max_page_size", 5000),
            provenance_page_cap=data.get("provenance_page_cap", 5000),
        )


@dataclass
class ServiceConfig:
    """
    Complete configuration for a PhenoBase service.

    Example YAML:

        base_uri: http://www.phenome-fppn.fr/diaphen/
        triplestore:
          endpoint_url: http://localhost:7200/repositories/phis
          timeout_seconds: 10
        relational:
          database: ./data/experiments.duckdb
        documents:
          provenance_path: ./data/provenances.ndjson
          data_path: ./data/data.parquet
    """
    base_uri: str = "http://www.phenome-fppn.fr/phenobase/"
    production: bool = False
    cors_origins: List[str] = field(default_factory=list)

    triplestore: TriplestoreConfig = field(default_factory=TriplestoreConfig)
    relational: RelationalConfig = field(default_factory=RelationalConfig)
    documents: DocumentConfig = field(default_factory=DocumentConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_uri": self.base_uri,
            "production": self.production,
            "cors_origins": list(self.cors_origins),
            "triplestore": self.triplestore.to_dict(),
            "relational": self.relational.to_dict(),
            "documents": self.documents.to_dict(),
            "pagination": self.pagination.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        return cls(
            base_uri=data.get("base_uri", "http://www.phenome-fppn.fr/phenobase/"),
            production=data.get("production", False),
            cors_origins=data.get("cors_origins", []),
            triplestore=TriplestoreConfig.from_dict(data.get("triplestore") or {}),
            relational=RelationalConfig.from_dict(data.get("relational") or {}),
            documents=DocumentConfig.from_dict(data.get("documents") or {}),
            pagination=PaginationConfig.from_dict(data.get("pagination") or {}),
        )

    def save(self, path: Path | str) -> None:
        """Save configuration as YAML."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, path: Path | str) -> "ServiceConfig":
        """Load configuration from a YAML file; a missing file yields defaults."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ServiceConfig":
        """
        Build the configuration from the environment.

        PHENOBASE_CONFIG names a YAML file; the other variables override
        single settings on top of it.
        """
        env = os.environ if environ is None else environ
        config_path = env.get(ENV_CONFIG_PATH)
        config = cls.load(config_path) if config_path else cls()

        if env.get("PHENOBASE_SPARQL_ENDPOINT"):
            config.triplestore.endpoint_url = env["PHENOBASE_SPARQL_ENDPOINT"]
        if env.get("PHENOBASE_LANGUAGE"):
            config.triplestore.default_language = env["PHENOBASE_LANGUAGE"]
        if env.get("PHENOBASE_DATABASE"):
            config.relational.database = env["PHENOBASE_DATABASE"]
        if env.get("PHENOBASE_PRODUCTION"):
            config.production = env["PHENOBASE_PRODUCTION"].lower() == "true"
        if env.get("PHENOBASE_CORS_ORIGINS"):
            config.cors_origins = [o.strip() for o in env["PHENOBASE_CORS_ORIGINS"].split(",")]

        ConfigValidator.validate_or_raise(config)
        return config


class ConfigValidationError(ValueError):
    """Configuration validation error."""
    pass


class ConfigValidator:
    """Validates service configurations."""

    @staticmethod
    def validate(config: ServiceConfig) -> List[str]:
        """
        Validate configuration.

        Returns list of error messages (empty if valid).
        """
        errors = []

        if not config.base_uri.endswith(("/", "#")):
            errors.append("base_uri must end with '/' or '#'")

        for name, timeout in (
            ("triplestore", config.triplestore.timeout_seconds),
            ("relational", config.relational.timeout_seconds),
            ("documents", config.documents.timeout_seconds),
        ):
            if timeout <= 0:
                errors.append(f"{name}.timeout_seconds must be positive")

        if config.pagination.default_page_size < 0:
            errors.append("default_page_size cannot be negative")

        if config.pagination.max_page_size < config.pagination.default_page_size:
            errors.append("max_page_size cannot be less than default_page_size")

        if config.pagination.provenance_page_cap < 1:
            errors.append("provenance_page_cap must be at least 1")

        return errors

    @staticmethod
    def validate_or_raise(config: ServiceConfig) -> None:
        """Validate configuration, raising on errors."""
        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError("; ".join(errors))
