"""Tests for service configuration."""

import pytest

from phenobase.storage.config import (
    ConfigValidationError,
    ConfigValidator,
    PaginationConfig,
    ServiceConfig,
    TriplestoreConfig,
)


class TestServiceConfig:
    """Tests for ServiceConfig."""

    def test_defaults(self):
        config = ServiceConfig()
        assert config.pagination.default_page_size == 20
        assert config.pagination.provenance_page_cap == 5000
        assert config.relational.database == ":memory:"
        assert ConfigValidator.validate(config) == []

    def test_round_trip_yaml(self, tmp_path):
        config = ServiceConfig(
            base_uri="http://www.phenome-fppn.fr/diaphen/",
            triplestore=TriplestoreConfig(endpoint_url="http://ts:7200/repositories/phis", default_language="fr"),
            pagination=PaginationConfig(default_page_size=50),
        )
        path = tmp_path / "phenobase.yaml"
        config.save(path)
        loaded = ServiceConfig.load(path)
        assert loaded == config

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "phenobase.yaml"
        path.write_text("triplestore:\n  endpoint_url: http://ts/sparql\n")
        loaded = ServiceConfig.load(path)
        assert loaded.triplestore.endpoint_url == "http://ts/sparql"
        assert loaded.triplestore.timeout_seconds == 30.0
        assert loaded.pagination == PaginationConfig()

    def test_missing_file_gives_defaults(self, tmp_path):
        assert ServiceConfig.load(tmp_path / "absent.yaml") == ServiceConfig()

    def test_from_env(self, tmp_path):
        path = tmp_path / "phenobase.yaml"
        path.write_text("documents:\n  data_path: /data/data.parquet\n")
        config = ServiceConfig.from_env({
            "PHENOBASE_CONFIG": str(path),
            "PHENOBASE_SPARQL_ENDPOINT": "http://other/sparql",
            "PHENOBASE_LANGUAGE": "en",
            "PHENOBASE_DATABASE": "/data/exp.duckdb",
            "PHENOBASE_PRODUCTION": "TRUE",
            "PHENOBASE_CORS_ORIGINS": "https://a.org, https://b.org",
        })
        assert config.documents.data_path == "/data/data.parquet"
        assert config.triplestore.endpoint_url == "http://other/sparql"
        assert config.triplestore.default_language == "en"
        assert config.relational.database == "/data/exp.duckdb"
        assert config.production is True
        assert config.cors_origins == ["https://a.org", "https://b.org"]

    def test_from_empty_env(self):
        assert ServiceConfig.from_env({}) == ServiceConfig()


class TestConfigValidator:
    """Tests for ConfigValidator."""

    def test_invalid_values(self):
        config = ServiceConfig(base_uri="http://ex.org/base")
        config.triplestore.timeout_seconds = 0
        config.pagination = PaginationConfig(default_page_size=100, max_page_size=10, provenance_page_cap=0)
        errors = ConfigValidator.validate(config)
        assert len(errors) == 4

    def test_validate_or_raise(self):
        with pytest.raises(ConfigValidationError):
            ConfigValidator.validate_or_raise(ServiceConfig(base_uri="no-slash"))

    def test_from_env_validates(self, tmp_path):
        path = tmp_path / "phenobase.yaml"
        path.write_text("pagination:\n  provenance_page_cap: 0\n")
        with pytest.raises(ConfigValidationError):
            ServiceConfig.from_env({"PHENOBASE_CONFIG": str(path)})
