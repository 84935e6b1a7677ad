"""
Database - Store Handle.

============================================================
SCOPED STORE CONNECTION
============================================================

One StoreHandle wraps the single connection the bootstrap
uses. It is passed explicitly to every phase; there is no
module-level engine or connection.

Requirements:
- SQLAlchemy Core, no ORM session
- One connection, released on every exit path
- Driver errors wrapped with their cause
- Passwords never logged

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from core.exceptions import ConnectionError, DatabaseEnsureError, InvalidConfigError

from .config import DatabaseConfig, validate_database_name


logger = logging.getLogger(__name__)


# =============================================================
# ENGINE
# =============================================================

def create_store_engine(url: URL, echo: bool = False) -> Engine:
    """
    Create an engine for a single bootstrap connection.

    NullPool: closing the connection closes the socket, so
    releasing the handle leaves nothing behind.
    """
    engine = create_engine(url, poolclass=NullPool, echo=echo, future=True)

    if engine.dialect.name == "sqlite":
        # SQLite ignores ON DELETE clauses unless told otherwise
        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


# =============================================================
# STORE HANDLE
# =============================================================

class StoreHandle:
    """
    The bootstrap's one store connection.

    Lifecycle: connect() -> ensure_database() -> ... -> close().
    close() is safe to call at any point, any number of times.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: Optional[Engine] = None
        self.connection: Optional[Connection] = None
        self.database: Optional[str] = None

    @property
    def dialect(self) -> str:
        if self.engine is not None:
            return self.engine.dialect.name
        return self.config.dialect

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and not self.connection.closed

    def require_connection(self) -> Connection:
        """The open connection, or ConnectionError."""
        if not self.is_connected:
            raise ConnectionError("Store handle is not connected")
        return self.connection

    # ---------------------------------------------------------
    # Connect
    # ---------------------------------------------------------

    def connect(self) -> Connection:
        """
        Open the server-level connection.

        Raises:
            ConnectionError if the store cannot be reached
        """
        target = self.config.safe_url()
        logger.info(f"Connecting to store: {target}")
        self._open(self.config.server_url, target)
        return self.connection

    def _open(self, url: URL, target: str) -> None:
        self.close()
        try:
            self.engine = create_store_engine(url, echo=self.config.echo)
            self.connection = self.engine.connect()
            self.connection.execute(text("SELECT 1")).fetchone()
            self.connection.commit()
        except SQLAlchemyError as e:
            logger.error(f"Store connection failed: {target}: {e}")
            self.close()
            raise ConnectionError(
                f"Cannot connect to store: {target}", target=target, cause=e
            ) from e

    # ---------------------------------------------------------
    # Ensure database
    # ---------------------------------------------------------

    def ensure_database(self, name: Optional[str] = None) -> str:
        """
        Create the target database if absent and switch to it.

        Raises:
            DatabaseEnsureError if the database cannot be created or selected
        """
        name = name or self.config.database
        try:
            validate_database_name(name)
        except InvalidConfigError as e:
            raise DatabaseEnsureError(e.message, database=name, cause=e) from e

        connection = self.require_connection()
        dialect = self.dialect

        try:
            if dialect == "postgresql":
                self._ensure_postgresql(connection, name)
            elif dialect in ("mysql", "mariadb"):
                self._ensure_mysql(connection, name)
            elif dialect == "sqlite":
                # the file opened by connect() is the database
                logger.info(f"SQLite store, using {self.config.server_url.database or ':memory:'}")
            else:
                raise DatabaseEnsureError(
                    f"Unsupported dialect for ensure-database: {dialect}", database=name
                )
        except SQLAlchemyError as e:
            self._rollback_quietly()
            raise DatabaseEnsureError(
                f"Cannot create or select database '{name}'", database=name, cause=e
            ) from e
        except ConnectionError as e:
            raise DatabaseEnsureError(
                f"Cannot reconnect to database '{name}'", database=name, cause=e
            ) from e

        self.database = name
        logger.info(f"Database '{name}' created or already exists")
        return name

    def _ensure_postgresql(self, connection: Connection, name: str) -> None:
        exists = connection.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": name}
        ).scalar()
        connection.commit()

        if not exists:
            logger.info(f"Creating database '{name}'")
            # CREATE DATABASE cannot run inside a transaction block
            autocommit = connection.execution_options(isolation_level="AUTOCOMMIT")
            try:
                autocommit.execute(text(f'CREATE DATABASE "{name}"'))
            except SQLAlchemyError:
                # a concurrent bootstrap may have won the race
                still_missing = not autocommit.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": name}
                ).scalar()
                if still_missing:
                    raise

        self._reconnect_to(name)

    def _reconnect_to(self, name: str) -> None:
        # PostgreSQL connections are bound to one database
        target_url = self.config.target_url(name)
        self._open(target_url, target_url.render_as_string(hide_password=True))

    def _ensure_mysql(self, connection: Connection, name: str) -> None:
        connection.execute(text(f"CREATE DATABASE IF NOT EXISTS `{name}`"))
        connection.execute(text(f"USE `{name}`"))
        connection.commit()

    # ---------------------------------------------------------
    # Use database
    # ---------------------------------------------------------

    def use_database(self, name: Optional[str] = None) -> str:
        """
        Switch to an existing target database without creating it.

        Raises:
            DatabaseEnsureError if the database cannot be selected
        """
        name = name or self.config.database
        try:
            validate_database_name(name)
        except InvalidConfigError as e:
            raise DatabaseEnsureError(e.message, database=name, cause=e) from e

        connection = self.require_connection()
        dialect = self.dialect

        try:
            if dialect == "postgresql":
                self._reconnect_to(name)
            elif dialect in ("mysql", "mariadb"):
                connection.execute(text(f"USE `{name}`"))
                connection.commit()
        except SQLAlchemyError as e:
            self._rollback_quietly()
            raise DatabaseEnsureError(f"Cannot select database '{name}'", database=name, cause=e) from e
        except ConnectionError as e:
            raise DatabaseEnsureError(f"Cannot connect to database '{name}'", database=name, cause=e) from e

        self.database = name
        return name

    # ---------------------------------------------------------
    # Release
    # ---------------------------------------------------------

    def _rollback_quietly(self) -> None:
        if self.is_connected and self.connection.in_transaction():
            try:
                self.connection.rollback()
            except SQLAlchemyError as e:
                logger.warning(f"Rollback failed: {e}")

    def close(self) -> None:
        """Release the connection and dispose the engine."""
        if self.connection is not None:
            try:
                self.connection.close()
            except SQLAlchemyError as e:
                logger.warning(f"Error closing store connection: {e}")
            self.connection = None
            logger.debug("Store connection released")
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def __enter__(self) -> "StoreHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@contextmanager
def open_store(config: DatabaseConfig, ensure: bool = True, select: bool = False) -> Generator[StoreHandle, None, None]:
    """
    Context manager for a connected store handle.

    Usage:
        with open_store(config) as store:
            probe = VerificationProbe(store)
            probe.run()
    """
    store = StoreHandle(config)
    try:
        store.connect()
        if ensure:
            store.ensure_database()
        elif select:
            store.use_database()
        yield store
    finally:
        store.close()
