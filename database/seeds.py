"""
Database - Seed Data.

============================================================
RESPONSIBILITY
============================================================
Inserts the baseline EventHive records, idempotently.

- Records carry explicit ids, so every conflict is exact
- Insert-if-absent: a unique-key conflict means
  "already seeded", not an error
- Seeded in resolved dependency order
- One transaction: any other failure rolls back the
  whole seed phase

Running the loader N times leaves the store exactly as
running it once.

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import Table, and_, func, insert, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.exceptions import CatalogError, SeedInsertError

from .catalog import ENTITY_CATALOG, EntityDef
from .engine import StoreHandle
from .resolver import resolve_creation_order
from .schema import build_metadata


logger = logging.getLogger(__name__)


# =============================================================
# SEED DATASET
# =============================================================

# bcrypt hash of 'password', shared by every seeded user
SEED_PASSWORD_HASH = "$2a$10$92IXUNpkjO0rOQ5byMi.Ye4oKoEa3Ro9llC/.og/at2.uheWG/igi"

SEED_USERS = [
    {
        "id": 1,
        "username": "admin",
        "email": "admin@eventhive.com",
        "phone": "+1234567890",
        "password_hash": SEED_PASSWORD_HASH,
        "role": "admin",
        "is_verified": True,
        "profile_image_url": None,
    },
    {
        "id": 2,
        "username": "john_organizer",
        "email": "john@eventhive.com",
        "phone": "+1234567891",
        "password_hash": SEED_PASSWORD_HASH,
        "role": "organizer",
        "is_verified": True,
        "profile_image_url": None,
    },
    {
        "id": 3,
        "username": "jane_user",
        "email": "jane@eventhive.com",
        "phone": "+1234567892",
        "password_hash": SEED_PASSWORD_HASH,
        "role": "user",
        "is_verified": True,
        "profile_image_url": None,
    },
]

SEED_ORGANIZER_ID = 2

SEED_EVENTS = [
    {
        "id": 1,
        "name": "Tech Conference 2024",
        "description": "Annual technology conference featuring the latest in web development, AI, and cloud computing.",
        "category": "technology",
        "event_start": datetime(2024, 12, 15, 9, 0, 0),
        "event_end": datetime(2024, 12, 15, 18, 0, 0),
        "registration_start": datetime(2024, 11, 1, 0, 0, 0),
        "registration_end": datetime(2024, 12, 10, 23, 59, 59),
        "location": "San Francisco Convention Center",
        "latitude": Decimal("37.7749"),
        "longitude": Decimal("-122.4194"),
        "poster_url": None,
        "additional_images": None,
        "organizer_id": SEED_ORGANIZER_ID,
        "is_published": True,
    },
    {
        "id": 2,
        "name": "Summer Music Festival",
        "description": "A vibrant outdoor music festival featuring local and international artists.",
        "category": "music",
        "event_start": datetime(2024, 12, 20, 16, 0, 0),
        "event_end": datetime(2024, 12, 20, 23, 0, 0),
        "registration_start": datetime(2024, 11, 1, 0, 0, 0),
        "registration_end": datetime(2024, 12, 18, 23, 59, 59),
        "location": "Golden Gate Park, San Francisco",
        "latitude": Decimal("37.7694"),
        "longitude": Decimal("-122.4862"),
        "poster_url": None,
        "additional_images": None,
        "organizer_id": SEED_ORGANIZER_ID,
        "is_published": True,
    },
    {
        "id": 3,
        "name": "Food & Wine Tasting",
        "description": "Explore the finest local cuisine and wines from renowned chefs and vintners.",
        "category": "food",
        "event_start": datetime(2024, 12, 25, 18, 0, 0),
        "event_end": datetime(2024, 12, 25, 22, 0, 0),
        "registration_start": datetime(2024, 11, 1, 0, 0, 0),
        "registration_end": datetime(2024, 12, 23, 23, 59, 59),
        "location": "Napa Valley Wine Country",
        "latitude": Decimal("38.2975"),
        "longitude": Decimal("-122.2869"),
        "poster_url": None,
        "additional_images": None,
        "organizer_id": SEED_ORGANIZER_ID,
        "is_published": True,
    },
]


def _ticket(id, event_id, type_name, max_per_user, max_total, sale_start, sale_end):
    return {
        "id": id,
        "event_id": event_id,
        "type_name": type_name,
        "price": Decimal("0.00"),
        "max_per_user": max_per_user,
        "max_total": max_total,
        "sold_count": 0,
        "sale_start": sale_start,
        "sale_end": sale_end,
        "is_active": True,
        "metadata": None,
    }


SEED_TICKETS = [
    _ticket(1, 1, "General Admission", 4, 200, datetime(2024, 11, 1), datetime(2024, 12, 10, 23, 59, 59)),
    _ticket(2, 1, "VIP Access", 2, 50, datetime(2024, 11, 1), datetime(2024, 12, 10, 23, 59, 59)),
    _ticket(3, 2, "Early Bird", 6, 300, datetime(2024, 11, 1), datetime(2024, 12, 1, 23, 59, 59)),
    _ticket(4, 2, "Regular", 4, 500, datetime(2024, 12, 2), datetime(2024, 12, 18, 23, 59, 59)),
    _ticket(5, 3, "Standard", 2, 100, datetime(2024, 11, 1), datetime(2024, 12, 23, 23, 59, 59)),
]

SEED_DATASET: Dict[str, List[Dict[str, Any]]] = {
    "users": SEED_USERS,
    "events": SEED_EVENTS,
    "tickets": SEED_TICKETS,
}


# =============================================================
# OUTCOMES
# =============================================================

class SeedOutcome(Enum):
    """Result of seeding one record."""

    INSERTED = "inserted"
    CONFLICT_IGNORED = "conflict_ignored"
    """SeedConflictIgnored: the record (or one sharing a unique key) exists."""


@dataclass
class SeedResult:
    """Per-entity insert/ignore counts."""

    inserted: Dict[str, int] = field(default_factory=dict)
    ignored: Dict[str, int] = field(default_factory=dict)

    def record(self, entity: str, outcome: SeedOutcome) -> None:
        bucket = self.inserted if outcome == SeedOutcome.INSERTED else self.ignored
        bucket[entity] = bucket.get(entity, 0) + 1

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def total_ignored(self) -> int:
        return sum(self.ignored.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inserted": dict(self.inserted),
            "ignored": dict(self.ignored),
            "total_inserted": self.total_inserted,
            "total_ignored": self.total_ignored,
        }


# =============================================================
# SEED LOADER
# =============================================================

class SeedLoader:
    """
    Inserts seed records in dependency order.

    PostgreSQL and SQLite use native ON CONFLICT DO NOTHING.
    Other dialects probe the unique keys inside a savepoint
    and re-probe after an IntegrityError, so a concurrent run
    that inserted first still counts as a conflict.
    """

    NATIVE_CONFLICT_DIALECTS = ("postgresql", "sqlite")

    def __init__(
        self,
        store: StoreHandle,
        catalog: Iterable[EntityDef] = ENTITY_CATALOG,
        dataset: Optional[Mapping[str, Sequence[Dict[str, Any]]]] = None,
    ):
        self.store = store
        self.catalog = tuple(catalog)
        self.dataset = SEED_DATASET if dataset is None else dataset
        self.tables = build_metadata(self.catalog).tables

        known = {entity.name for entity in self.catalog}
        for name in self.dataset:
            if name not in known:
                raise CatalogError(f"Seed data for unknown entity: {name}", entity=name)

    def load(self, order: Optional[List[EntityDef]] = None) -> SeedResult:
        """
        Seed every entity that has records, in dependency order.

        Raises:
            SeedInsertError on the first non-conflict failure (phase rolled back)
        """
        if order is None:
            order = resolve_creation_order(self.catalog)

        connection = self.store.require_connection()
        result = SeedResult()

        if connection.in_transaction():
            connection.commit()

        try:
            with connection.begin():
                for entity in order:
                    records = self.dataset.get(entity.name)
                    if not records:
                        continue
                    self._seed_entity(connection, entity, records, result)
                    logger.info(
                        f"  [OK] Seeded {entity.name}: "
                        f"{result.inserted.get(entity.name, 0)} inserted, "
                        f"{result.ignored.get(entity.name, 0)} already present"
                    )

                if self.store.dialect == "postgresql":
                    self._sync_sequences(connection, order)
        except SQLAlchemyError as e:
            # an error outside any single record, e.g. at commit
            raise SeedInsertError(None, cause=e) from e

        logger.info(
            f"Seed complete: {result.total_inserted} inserted, "
            f"{result.total_ignored} already present"
        )
        return result

    def _seed_entity(
        self,
        connection: Connection,
        entity: EntityDef,
        records: Sequence[Dict[str, Any]],
        result: SeedResult,
    ) -> None:
        table = self.tables[entity.name]
        for record in records:
            outcome = self.insert_if_absent(connection, entity, table, record)
            result.record(entity.name, outcome)

    def insert_if_absent(
        self,
        connection: Connection,
        entity: EntityDef,
        table: Table,
        record: Dict[str, Any],
    ) -> SeedOutcome:
        """
        Insert one record unless it collides on a unique key.

        Raises:
            SeedInsertError for any failure other than a key conflict
        """
        dialect = connection.dialect.name

        try:
            if dialect in self.NATIVE_CONFLICT_DIALECTS:
                module = postgresql if dialect == "postgresql" else sqlite
                stmt = module.insert(table).values(**record).on_conflict_do_nothing()
                inserted = connection.execute(stmt).rowcount
                return SeedOutcome.INSERTED if inserted else SeedOutcome.CONFLICT_IGNORED

            if self._exists(connection, entity, table, record):
                return SeedOutcome.CONFLICT_IGNORED
            try:
                with connection.begin_nested():
                    connection.execute(insert(table).values(**record))
            except IntegrityError:
                if self._exists(connection, entity, table, record):
                    return SeedOutcome.CONFLICT_IGNORED
                raise
            return SeedOutcome.INSERTED

        except SQLAlchemyError as e:
            logger.error(f"  [!!] Seeding {entity.name} id={record.get('id')} failed: {e}")
            raise SeedInsertError(entity.name, record=record, cause=e) from e

    def _exists(self, connection: Connection, entity: EntityDef, table: Table, record: Dict[str, Any]) -> bool:
        clauses = []
        for key in entity.unique_keys():
            if all(record.get(column) is not None for column in key):
                clauses.append(and_(*[table.c[column] == record[column] for column in key]))
        if not clauses:
            return False
        stmt = select(func.count()).select_from(table).where(or_(*clauses))
        return connection.execute(stmt).scalar() > 0

    def _sync_sequences(self, connection: Connection, order: List[EntityDef]) -> None:
        """Advance id sequences past explicitly inserted ids."""
        for entity in order:
            if not self.dataset.get(entity.name):
                continue
            connection.execute(
                text(
                    f"SELECT setval(pg_get_serial_sequence('{entity.name}', 'id'), "
                    f"COALESCE((SELECT MAX(id) FROM {entity.name}), 1))"
                )
            )
