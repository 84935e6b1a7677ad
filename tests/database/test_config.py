"""
Tests for Database Configuration.
"""

import pytest

from core.exceptions import InvalidConfigError
from database.config import DEFAULT_DATABASE_NAME, DatabaseConfig, validate_database_name


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every connection variable so defaults apply."""
    for key in (
        "DATABASE_URL", "DB_DRIVER", "DB_HOST", "DB_PORT", "DB_USER",
        "DB_PASSWORD", "DB_MAINTENANCE_DB", "DB_NAME", "DB_ECHO",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestDatabaseConfigFromEnv:
    """Tests for environment loading."""

    def test_defaults(self, clean_env):
        config = DatabaseConfig.from_env()

        assert config.database == DEFAULT_DATABASE_NAME == "eventhive"
        assert config.dialect == "postgresql"
        assert config.server_url.host == "localhost"
        assert config.server_url.port == 5432
        assert config.server_url.database == "postgres"
        assert config.echo is False

    def test_parts(self, clean_env):
        clean_env.setenv("DB_DRIVER", "mysql+pymysql")
        clean_env.setenv("DB_HOST", "db.internal")
        clean_env.setenv("DB_PORT", "3306")
        clean_env.setenv("DB_USER", "root")
        clean_env.setenv("DB_PASSWORD", "s3cret")
        clean_env.setenv("DB_MAINTENANCE_DB", "mysql")
        clean_env.setenv("DB_NAME", "eventhive_dev")
        clean_env.setenv("DB_ECHO", "true")

        config = DatabaseConfig.from_env()

        assert config.dialect == "mysql"
        assert config.server_url.host == "db.internal"
        assert config.server_url.port == 3306
        assert config.server_url.username == "root"
        assert config.server_url.password == "s3cret"
        assert config.database == "eventhive_dev"
        assert config.echo is True

    def test_database_url_overrides_parts(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite:///local.db")
        clean_env.setenv("DB_HOST", "ignored")

        config = DatabaseConfig.from_env()

        assert config.url == "sqlite:///local.db"
        assert config.dialect == "sqlite"

    def test_empty_port_uses_default(self, clean_env):
        clean_env.setenv("DB_PORT", "")

        assert DatabaseConfig.from_env().server_url.port == 5432

    def test_malformed_port(self, clean_env):
        clean_env.setenv("DB_PORT", "fivefourthreetwo")

        with pytest.raises(InvalidConfigError) as exc_info:
            DatabaseConfig.from_env()

        assert exc_info.value.context["config_key"] == "DB_PORT"
        assert exc_info.value.context["actual_value"] == "fivefourthreetwo"


class TestDatabaseConfigUrls:
    """Tests for URL helpers."""

    def test_safe_url_hides_password(self):
        config = DatabaseConfig(url="postgresql+psycopg2://app:s3cret@db:5432/postgres")

        assert "s3cret" not in config.safe_url()
        assert "***" in config.safe_url()

    def test_target_url_switches_database(self):
        config = DatabaseConfig(url="postgresql+psycopg2://app@db:5432/postgres")

        assert config.target_url().database == "eventhive"
        assert config.target_url("other").database == "other"
        assert config.target_url().host == "db"

    def test_target_url_sqlite_is_the_file(self):
        config = DatabaseConfig(url="sqlite:////tmp/eventhive.db")

        assert config.target_url() == config.server_url


class TestValidation:
    """Tests for configuration validation."""

    @pytest.mark.parametrize("name", ["eventhive", "event_hive_2", "_scratch"])
    def test_valid_names(self, name):
        assert validate_database_name(name) == name

    @pytest.mark.parametrize("name", ["", "event-hive", "1db", "x; DROP DATABASE y", "a b"])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidConfigError):
            validate_database_name(name)

    def test_validate_ok(self):
        assert DatabaseConfig(url="sqlite:///x.db").validate() == []

    def test_validate_collects_errors(self):
        config = DatabaseConfig(url="not a url", database="bad-name")

        errors = config.validate()

        assert len(errors) == 2
        assert any("url" in e for e in errors)
