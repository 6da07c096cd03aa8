"""Tests for configuration loading."""

import os

import pytest
from pydantic import ValidationError

from nodeflow.config import (
    AppConfig, DatabaseType, LogLevel, get_config, get_testing_config, load_config, reset_config
)
from nodeflow.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


class TestAppConfig:
    """Test cases for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.database_url == "sqlite:///./nodeflow.db"
        assert config.max_concurrent_runs == 10
        assert config.http_default_timeout_ms == 30000
        assert config.is_sqlite

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NODEFLOW_PORT", "9001")
        monkeypatch.setenv("NODEFLOW_DEBUG", "yes")
        monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "debug")
        monkeypatch.setenv("NODEFLOW_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("NODEFLOW_HTTP_DEFAULT_TIMEOUT_MS", "1500")

        config = get_config()

        assert config.port == 9001
        assert config.debug is True
        assert config.log_level == LogLevel.DEBUG
        assert config.cors_origins == ["http://a.test", "http://b.test"]
        assert config.http_default_timeout_ms == 1500
        assert get_config() is config

    def test_load_config_reads_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / "nodeflow.env"
        env_file.write_text("NODEFLOW_MAX_CONCURRENT_RUNS=3\n")
        monkeypatch.delenv("NODEFLOW_MAX_CONCURRENT_RUNS", raising=False)

        try:
            config = load_config(str(env_file))
        finally:
            os.environ.pop("NODEFLOW_MAX_CONCURRENT_RUNS", None)

        assert config.max_concurrent_runs == 3

    @pytest.mark.parametrize("field,value", [
        ("database_url", "oracle://db"),
        ("port", 0),
        ("max_concurrent_runs", 0),
        ("http_default_timeout_ms", 0),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            AppConfig(**{field: value})

    def test_database_type_handles_driver_suffix(self):
        assert AppConfig(database_url="sqlite+pysqlite:///x.db").is_sqlite
        assert AppConfig(database_url="postgresql+psycopg://u@h/db").database_type == DatabaseType.POSTGRESQL

    def test_unknown_database_type_is_a_configuration_error(self):
        config = AppConfig()
        config.database_url = "oracle://db"

        with pytest.raises(ConfigurationError) as exc_info:
            config.database_type

        assert exc_info.value.context["config_key"] == "database_url"

    def test_testing_config(self):
        config = get_testing_config()

        assert config.database_url == "sqlite:///:memory:"
        assert config.enable_performance_monitoring is False
        assert config.get_uvicorn_config()["log_level"] == "warning"
