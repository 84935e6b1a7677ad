"""
Database - Verification Probe.

============================================================
RESPONSIBILITY
============================================================
Read-only sanity checks after bootstrap.

- Every catalog table exists
- Row count per table
- Bounded samples (first N rows) of users, events, tickets

NEVER mutates the store. Problems become
VerificationWarnings in the report; nothing is raised.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import EventHiveException, VerificationWarning

from .catalog import ENTITY_CATALOG, EntityDef
from .engine import StoreHandle
from .schema import build_metadata


logger = logging.getLogger(__name__)


DEFAULT_SAMPLE_LIMIT = 5

# table -> columns shown in samples
SAMPLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "users": ("id", "username", "email", "role"),
    "events": ("id", "name", "category", "location"),
    "tickets": ("id", "event_id", "type_name", "price"),
}


@dataclass
class VerificationReport:
    """Outcome of a probe run."""

    tables_present: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)
    row_counts: Dict[str, int] = field(default_factory=dict)
    samples: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    warnings: List[VerificationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings and not self.missing_tables

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "tables_present": self.tables_present,
            "missing_tables": self.missing_tables,
            "row_counts": self.row_counts,
            "samples": self.samples,
            "warnings": [w.to_dict() for w in self.warnings],
        }


class VerificationProbe:
    """
    Diagnostic queries against a bootstrapped store.

    Usage:
        report = VerificationProbe(store).run()
        print(report.row_counts)
    """

    def __init__(
        self,
        store: StoreHandle,
        catalog: Iterable[EntityDef] = ENTITY_CATALOG,
        sample_limit: int = DEFAULT_SAMPLE_LIMIT,
        sample_columns: Dict[str, Tuple[str, ...]] = SAMPLE_COLUMNS,
    ):
        self.store = store
        self.catalog = tuple(catalog)
        self.sample_limit = sample_limit
        self.sample_columns = sample_columns
        self.tables = build_metadata(self.catalog).tables

    def _warn(
        self,
        report: VerificationReport,
        message: str,
        check: str,
        table: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        warning = VerificationWarning(message, check=check, table=table, cause=cause)
        report.warnings.append(warning)
        logger.warning(warning.to_log_format())

        # PostgreSQL refuses further statements in a failed transaction
        if cause is not None and self.store.is_connected and self.store.connection.in_transaction():
            self.store.connection.rollback()

    def run(self) -> VerificationReport:
        """Run every check. Never raises for store problems."""
        report = VerificationReport()

        try:
            connection = self.store.require_connection()
        except EventHiveException as e:
            self._warn(report, "Store is not connected", check="connection", cause=e)
            return report

        logger.info("Verifying database...")

        self.check_tables(connection, report)
        self.count_rows(connection, report)
        self.sample_rows(connection, report)

        # a read-only probe still opens a transaction
        if connection.in_transaction():
            connection.rollback()

        if report.ok:
            logger.info("Database verification completed successfully")
        else:
            logger.warning(f"Database verification finished with {len(report.warnings)} warning(s)")
        return report

    def check_tables(self, connection, report: VerificationReport) -> None:
        for entity in self.catalog:
            try:
                exists = connection.dialect.has_table(connection, entity.name)
            except SQLAlchemyError as e:
                self._warn(report, f"Cannot check table {entity.name}", "tables", entity.name, e)
                continue
            if exists:
                report.tables_present.append(entity.name)
                logger.info(f"  [OK] Table verified: {entity.name}")
            else:
                report.missing_tables.append(entity.name)
                self._warn(report, f"Table missing: {entity.name}", "tables", entity.name)

    def count_rows(self, connection, report: VerificationReport) -> None:
        for name in report.tables_present:
            table = self.tables[name]
            try:
                count = connection.execute(select(func.count()).select_from(table)).scalar()
            except SQLAlchemyError as e:
                self._warn(report, f"Cannot count rows in {name}", "row_counts", name, e)
                continue
            report.row_counts[name] = int(count)

    def sample_rows(self, connection, report: VerificationReport) -> None:
        for name, columns in self.sample_columns.items():
            if name not in report.tables_present:
                continue
            table = self.tables[name]
            try:
                stmt = (
                    select(*[table.c[column] for column in columns])
                    .order_by(table.c.id)
                    .limit(self.sample_limit)
                )
                rows = [dict(row) for row in connection.execute(stmt).mappings()]
            except (SQLAlchemyError, KeyError) as e:
                self._warn(report, f"Cannot sample rows from {name}", "samples", name, e)
                continue

            if len(rows) > self.sample_limit:
                self._warn(report, f"Sample of {name} exceeded limit", "samples", name)
            report.samples[name] = rows
            logger.info(f"  {name}: {len(rows)} sample row(s), {report.row_counts.get(name, '?')} total")


def describe_table(store: StoreHandle, name: str) -> List[Dict[str, Any]]:
    """
    Column listing of a live table (name, type, nullable, default).

    Raises:
        VerificationWarning if the table cannot be inspected
    """
    connection = store.require_connection()
    try:
        columns = inspect(connection).get_columns(name)
    except SQLAlchemyError as e:
        raise VerificationWarning(f"Cannot describe table {name}", check="describe", table=name, cause=e) from e
    return [
        {
            "name": column["name"],
            "type": str(column["type"]),
            "nullable": column["nullable"],
            "default": column.get("default"),
        }
        for column in columns
    ]
