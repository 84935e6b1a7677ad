"""
Database - Configuration.

============================================================
PURPOSE
============================================================
Connection configuration for the store bootstrap.

The URL points at the database SERVER, not the target
database: the bootstrap connects first and then ensures the
target database exists. For SQLite the URL's file is the
database itself.

ENVIRONMENT:
- DATABASE_URL       full server URL (overrides the parts below)
- DB_DRIVER          default postgresql+psycopg2
- DB_HOST / DB_PORT  default localhost:5432
- DB_USER / DB_PASSWORD
- DB_MAINTENANCE_DB  database used for the first connection
- DB_NAME            target database (default eventhive)
- DB_ECHO            log SQL statements

============================================================
"""

import os
import re
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from core.exceptions import InvalidConfigError


# Load environment variables
load_dotenv()


DEFAULT_DATABASE_NAME = "eventhive"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_database_name(name: str) -> str:
    """
    Check a database name is a plain identifier.

    The name is interpolated into CREATE DATABASE / USE, which
    cannot take bound parameters.
    """
    if not name or not _IDENTIFIER.match(name):
        raise InvalidConfigError(
            "database", name, "must start with a letter or underscore and contain only [A-Za-z0-9_]"
        )
    return name


def env_int(key: str, default: Optional[int]) -> Optional[int]:
    """
    Read an integer environment variable.

    Unset or empty yields the default.

    Raises:
        InvalidConfigError if the value is not an integer
    """
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidConfigError(key, raw, "must be an integer") from e


@dataclass
class DatabaseConfig:
    """Store connection settings."""

    url: str = "postgresql+psycopg2://postgres@localhost:5432/postgres"
    """Server-level SQLAlchemy URL."""

    database: str = DEFAULT_DATABASE_NAME
    """Target database to ensure and bootstrap."""

    echo: bool = False
    """Log SQL statements."""

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Load configuration from environment variables."""
        url = os.getenv("DATABASE_URL")
        if not url:
            url = URL.create(
                drivername=os.getenv("DB_DRIVER", "postgresql+psycopg2"),
                username=os.getenv("DB_USER", "postgres"),
                password=os.getenv("DB_PASSWORD") or None,
                host=os.getenv("DB_HOST", "localhost"),
                port=env_int("DB_PORT", 5432),
                database=os.getenv("DB_MAINTENANCE_DB", "postgres"),
            ).render_as_string(hide_password=False)

        return cls(
            url=url,
            database=os.getenv("DB_NAME", DEFAULT_DATABASE_NAME),
            echo=os.getenv("DB_ECHO", "false").lower() == "true",
        )

    @property
    def server_url(self) -> URL:
        """Parsed server URL."""
        return make_url(self.url)

    @property
    def dialect(self) -> str:
        """Backend name, e.g. postgresql, mysql, sqlite."""
        return self.server_url.get_backend_name()

    def target_url(self, database: Optional[str] = None) -> URL:
        """URL of the target database on the same server."""
        url = self.server_url
        if url.get_backend_name() == "sqlite":
            return url
        return url.set(database=database or self.database)

    def safe_url(self) -> str:
        """Server URL with the password masked, for logging."""
        return self.server_url.render_as_string(hide_password=True)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        try:
            self.server_url
        except ArgumentError as e:
            errors.append(f"url is not a valid SQLAlchemy URL: {e}")

        try:
            validate_database_name(self.database)
        except InvalidConfigError as e:
            errors.append(e.message)

        return errors
