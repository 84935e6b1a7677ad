"""
Tests for Seed Loading.

============================================================
PURPOSE
============================================================
1. Seed fixture exactness
2. Idempotent re-seeding
3. Unique-key conflicts are ignored, never duplicated
4. Non-conflict failures roll back the seed phase
5. Referential actions on the seeded store

============================================================
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError

from core.exceptions import CatalogError, SeedInsertError
from database.catalog import get_entity
from database.config import DatabaseConfig
from database.engine import StoreHandle
from database.materializer import SchemaMaterializer
from database.schema import build_tables
from database.seeds import SEED_PASSWORD_HASH, SeedLoader, SeedOutcome


TABLES = build_tables()


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def store(tmp_path):
    """Connected store with every table created, no rows."""
    handle = StoreHandle(DatabaseConfig(url=f"sqlite:///{tmp_path / 'eventhive.db'}"))
    handle.connect()
    handle.ensure_database()
    SchemaMaterializer(handle).materialize()
    yield handle
    handle.close()


@pytest.fixture
def seeded(store):
    SeedLoader(store).load()
    return store


def count(store, table):
    value = store.connection.execute(select(func.count()).select_from(TABLES[table])).scalar()
    store.connection.rollback()
    return value


def rows(store, table, *columns):
    t = TABLES[table]
    result = store.connection.execute(select(*[t.c[c] for c in columns]).order_by(t.c.id)).all()
    store.connection.rollback()
    return [tuple(r) for r in result]


def user(id, username, email, phone):
    return {
        "id": id,
        "username": username,
        "email": email,
        "phone": phone,
        "password_hash": SEED_PASSWORD_HASH,
        "role": "user",
        "is_verified": False,
    }


# ============================================================
# FIXTURE EXACTNESS TESTS
# ============================================================

class TestSeedDataset:
    """Tests for the baseline records."""

    def test_users(self, seeded):
        assert rows(seeded, "users", "id", "username", "role") == [
            (1, "admin", "admin"),
            (2, "john_organizer", "organizer"),
            (3, "jane_user", "user"),
        ]

    def test_users_share_password_hash(self, seeded):
        assert {r[0] for r in rows(seeded, "users", "password_hash")} == {SEED_PASSWORD_HASH}

    def test_events_belong_to_organizer(self, seeded):
        events = rows(seeded, "events", "name", "category", "organizer_id")

        assert events == [
            ("Tech Conference 2024", "technology", 2),
            ("Summer Music Festival", "music", 2),
            ("Food & Wine Tasting", "food", 2),
        ]

    def test_tickets(self, seeded):
        tickets = rows(seeded, "tickets", "event_id", "type_name", "max_total", "sold_count")

        assert [t[0] for t in tickets] == [1, 1, 2, 2, 3]
        assert tickets[1] == (1, "VIP Access", 50, 0)
        assert {Decimal(str(p[0])) for p in rows(seeded, "tickets", "price")} == {Decimal("0.00")}

    def test_event_dates(self, seeded):
        (start, end), = rows(seeded, "events", "event_start", "event_end")[:1]

        assert start == datetime(2024, 12, 15, 9, 0, 0)
        assert end == datetime(2024, 12, 15, 18, 0, 0)

    def test_defaults_filled(self, seeded):
        (created_at, updated_at), = rows(seeded, "users", "created_at", "updated_at")[:1]

        assert created_at is not None
        assert updated_at is not None

    def test_unseeded_tables_empty(self, seeded):
        for table in ("organizer_profiles", "transactions", "attendees", "event_reviews"):
            assert count(seeded, table) == 0


# ============================================================
# IDEMPOTENCY TESTS
# ============================================================

class TestIdempotency:
    """Tests for insert-if-absent."""

    def test_first_load_inserts(self, store):
        result = SeedLoader(store).load()

        assert result.inserted == {"users": 3, "events": 3, "tickets": 5}
        assert result.total_ignored == 0

    def test_second_load_ignores(self, seeded):
        result = SeedLoader(seeded).load()

        assert result.total_inserted == 0
        assert result.ignored == {"users": 3, "events": 3, "tickets": 5}
        assert count(seeded, "users") == 3
        assert count(seeded, "events") == 3
        assert count(seeded, "tickets") == 5

    def test_conflicting_email_ignored(self, seeded):
        duplicate = user(10, "someone_else", "admin@eventhive.com", "+1999999999")

        result = SeedLoader(seeded, dataset={"users": [duplicate]}).load()

        assert result.ignored == {"users": 1}
        assert count(seeded, "users") == 3

    def test_new_record_inserted_alongside(self, seeded):
        new = user(4, "new_user", "new@eventhive.com", "+1234567899")

        result = SeedLoader(seeded, dataset={"users": [new]}).load()

        assert result.inserted == {"users": 1}
        assert count(seeded, "users") == 4

    def test_plain_insert_duplicate_rejected(self, seeded):
        """The store itself refuses a second row with the same username."""
        duplicate = user(11, "admin", "other@eventhive.com", "+1888888888")

        with pytest.raises(IntegrityError):
            seeded.connection.execute(insert(TABLES["users"]).values(**duplicate))
        seeded.connection.rollback()

        assert count(seeded, "users") == 3

    def test_unique_key_lookup_conflict(self, seeded):
        """Dialects without ON CONFLICT look up the unique keys first."""
        loader = SeedLoader(seeded)
        loader.NATIVE_CONFLICT_DIALECTS = ()
        entity = get_entity("users")
        duplicate = user(12, "jane_user", "jane2@eventhive.com", "+1777777777")

        outcome = loader.insert_if_absent(seeded.connection, entity, TABLES["users"], duplicate)
        seeded.connection.rollback()

        assert outcome == SeedOutcome.CONFLICT_IGNORED
        assert count(seeded, "users") == 3


# ============================================================
# CONCURRENT INSERT TESTS
# ============================================================

class TestConcurrentInsert:
    """A row inserted by another run between lookup and insert."""

    @pytest.fixture
    def mysql_connection(self):
        connection = MagicMock()
        connection.dialect.name = "mysql"
        connection.begin_nested.return_value.__exit__.return_value = False
        connection.execute.side_effect = IntegrityError(
            "INSERT INTO users", {}, Exception("Duplicate entry 'jane_user'")
        )
        return connection

    def test_lost_race_counts_as_conflict(self, store, mysql_connection):
        loader = SeedLoader(store)
        record = user(3, "jane_user", "jane@eventhive.com", "+1234567892")

        with patch.object(SeedLoader, "_exists", side_effect=[False, True]) as mock_exists:
            outcome = loader.insert_if_absent(
                mysql_connection, get_entity("users"), TABLES["users"], record
            )

        assert outcome == SeedOutcome.CONFLICT_IGNORED
        assert mock_exists.call_count == 2
        mysql_connection.begin_nested.assert_called_once()
        mysql_connection.execute.assert_called_once()

    def test_integrity_error_without_conflict_raises(self, store, mysql_connection):
        loader = SeedLoader(store)
        record = user(3, "jane_user", "jane@eventhive.com", "+1234567892")

        with patch.object(SeedLoader, "_exists", side_effect=[False, False]):
            with pytest.raises(SeedInsertError) as exc_info:
                loader.insert_if_absent(
                    mysql_connection, get_entity("users"), TABLES["users"], record
                )

        assert exc_info.value.entity == "users"
        assert isinstance(exc_info.value.cause, IntegrityError)


# ============================================================
# FAILURE TESTS
# ============================================================

class TestSeedFailure:
    """Tests for non-conflict failures."""

    def test_foreign_key_violation_rolls_back(self, store):
        dataset = {
            "users": [user(1, "solo", "solo@eventhive.com", "+1000000000")],
            "tickets": [{"id": 1, "event_id": 99, "type_name": "Ghost", "price": Decimal("1.00")}],
        }

        with pytest.raises(SeedInsertError) as exc_info:
            SeedLoader(store, dataset=dataset).load()

        error = exc_info.value
        assert error.entity == "tickets"
        assert error.context["record_id"] == 1
        assert isinstance(error.cause, IntegrityError)
        assert count(store, "users") == 0

    def test_unknown_entity_in_dataset(self, store):
        with pytest.raises(CatalogError):
            SeedLoader(store, dataset={"venues": [{"id": 1}]})

    def test_requires_schema(self, tmp_path):
        handle = StoreHandle(DatabaseConfig(url=f"sqlite:///{tmp_path / 'empty.db'}"))
        handle.connect()
        try:
            with pytest.raises(SeedInsertError) as exc_info:
                SeedLoader(handle).load()
            assert exc_info.value.entity == "users"
        finally:
            handle.close()


# ============================================================
# REFERENTIAL ACTION TESTS
# ============================================================

class TestReferentialActions:
    """Tests for ON DELETE behavior on the seeded store."""

    @pytest.fixture
    def booked(self, seeded):
        """jane_user holds a ticket to event 1 and reviewed it."""
        connection = seeded.connection
        with connection.begin():
            connection.execute(insert(TABLES["transactions"]).values(
                id=1, booking_id="BK-0001", user_id=3, event_id=1, ticket_id=1,
            ))
            connection.execute(insert(TABLES["attendees"]).values(
                id=1, transaction_id=1, name="Jane", email="jane@eventhive.com", qr_code="QR-0001",
            ))
            connection.execute(insert(TABLES["event_reviews"]).values(
                id=1, event_id=1, user_id=3, transaction_id=1, rating=5,
            ))
        return seeded

    def test_deleting_organizer_cascades(self, booked):
        connection = booked.connection
        with connection.begin():
            connection.execute(delete(TABLES["users"]).where(TABLES["users"].c.id == 2))

        for table in ("events", "tickets", "transactions", "attendees", "event_reviews"):
            assert count(booked, table) == 0
        assert count(booked, "users") == 2

    def test_deleting_transaction_nulls_review(self, booked):
        connection = booked.connection
        with connection.begin():
            connection.execute(delete(TABLES["transactions"]).where(TABLES["transactions"].c.id == 1))

        assert rows(booked, "event_reviews", "id", "transaction_id") == [(1, None)]
        assert count(booked, "attendees") == 0

    def test_rating_out_of_range_rejected(self, booked):
        connection = booked.connection
        with pytest.raises(IntegrityError):
            with connection.begin():
                connection.execute(insert(TABLES["event_reviews"]).values(
                    event_id=2, user_id=3, rating=6,
                ))

    def test_second_review_rejected(self, booked):
        connection = booked.connection
        with pytest.raises(IntegrityError):
            with connection.begin():
                connection.execute(insert(TABLES["event_reviews"]).values(
                    event_id=1, user_id=3, rating=4,
                ))
