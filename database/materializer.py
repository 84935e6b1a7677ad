"""
Database - Schema Materializer.

============================================================
RESPONSIBILITY
============================================================
Creates catalog structures in the store, one entity at a
time, in resolved dependency order.

- Create-if-absent for each table and named index
- Commit after every entity
- Fail fast: first failure aborts with SchemaCreationError
- Re-running against a provisioned store is a no-op

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import SchemaCreationError

from .catalog import ENTITY_CATALOG, EntityDef
from .engine import StoreHandle
from .resolver import build_graph, resolve_creation_order
from .schema import build_metadata


logger = logging.getLogger(__name__)


@dataclass
class MaterializationResult:
    """What a materialization pass did."""

    order: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    indexes_created: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "created": self.created,
            "existing": self.existing,
            "indexes_created": self.indexes_created,
        }


class SchemaMaterializer:
    """
    Applies entity definitions to the store.

    Usage:
        materializer = SchemaMaterializer(store)
        result = materializer.materialize(resolve_creation_order())
    """

    def __init__(self, store: StoreHandle, catalog: Iterable[EntityDef] = ENTITY_CATALOG):
        self.store = store
        self.catalog = tuple(catalog)
        self.metadata = build_metadata(self.catalog)

    def table(self, name: str) -> Table:
        return self.metadata.tables[name]

    def _has_table(self, connection: Connection, name: str) -> bool:
        # dialect call, not inspect(): the inspector caches
        return connection.dialect.has_table(connection, name)

    def _has_index(self, connection: Connection, table: str, name: str) -> bool:
        return connection.dialect.has_index(connection, table, name)

    def materialize_entity(self, entity: EntityDef, result: Optional[MaterializationResult] = None) -> bool:
        """
        Create one entity's table and indexes if absent.

        Returns:
            True if the table was created, False if it already existed

        Raises:
            SchemaCreationError on any failure
        """
        result = result or MaterializationResult()
        connection = self.store.require_connection()
        table = self.table(entity.name)

        try:
            if self._has_table(connection, entity.name):
                created = False
                for idx in table.indexes:
                    if not self._has_index(connection, entity.name, idx.name):
                        idx.create(bind=connection)
                        result.indexes_created.append(idx.name)
            else:
                created = True
                table.create(bind=connection, checkfirst=True)
                result.indexes_created.extend(idx.name for idx in table.indexes)
            connection.commit()
        except SQLAlchemyError as e:
            logger.error(f"  [!!] {entity.label} ({entity.name}): {e}")
            if connection.in_transaction():
                connection.rollback()
            raise SchemaCreationError(entity.name, cause=e) from e

        if created:
            result.created.append(entity.name)
            logger.info(f"  [OK] {entity.label} table created: {entity.name}")
        else:
            result.existing.append(entity.name)
            logger.info(f"  [OK] {entity.label} table already exists: {entity.name}")
        return created

    def materialize(self, order: Optional[List[EntityDef]] = None) -> MaterializationResult:
        """
        Materialize every entity in dependency order.

        Args:
            order: Pre-resolved order; resolved from the catalog if omitted

        Raises:
            CyclicDependencyError before anything is created, if the catalog has a cycle
            SchemaCreationError on the first entity that fails
        """
        if order is None:
            order = resolve_creation_order(self.catalog)

        result = MaterializationResult(order=[entity.name for entity in order])
        logger.info(f"Materializing {len(order)} entities...")

        for entity in order:
            self.materialize_entity(entity, result)

        logger.info(
            f"Schema ready: {len(result.created)} created, "
            f"{len(result.existing)} already present"
        )
        return result

    def drop_all(self) -> List[str]:
        """
        Drop every catalog table if present, dependents first (DANGEROUS).

        Returns:
            Names of tables that were dropped

        Raises:
            SchemaCreationError if a drop fails
        """
        teardown = build_graph(self.catalog).get_teardown_order()

        connection = self.store.require_connection()
        dropped = []

        for name in teardown:
            try:
                if self._has_table(connection, name):
                    self.table(name).drop(bind=connection)
                    dropped.append(name)
                    logger.warning(f"  [--] Dropped table: {name}")
                connection.commit()
            except SQLAlchemyError as e:
                if connection.in_transaction():
                    connection.rollback()
                raise SchemaCreationError(name, cause=e) from e

        return dropped
