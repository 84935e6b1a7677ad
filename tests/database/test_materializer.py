"""
Tests for the Schema Materializer.

============================================================
PURPOSE
============================================================
1. All tables and indexes are created in a fresh store
2. Re-running is a no-op
3. The first failing entity aborts with SchemaCreationError
4. drop_all removes every table

============================================================
"""

from unittest.mock import patch

import pytest
from sqlalchemy import Table, inspect
from sqlalchemy.exc import OperationalError

from core.exceptions import CyclicDependencyError, SchemaCreationError
from database.catalog import REQUIRED_TABLES, EntityDef, foreign_key
from database.config import DatabaseConfig
from database.engine import StoreHandle
from database.materializer import SchemaMaterializer


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def store(tmp_path):
    handle = StoreHandle(DatabaseConfig(url=f"sqlite:///{tmp_path / 'eventhive.db'}"))
    handle.connect()
    handle.ensure_database()
    yield handle
    handle.close()


def table_names(store):
    return set(inspect(store.connection).get_table_names())


# ============================================================
# MATERIALIZE TESTS
# ============================================================

class TestMaterialize:
    """Tests for create-if-absent materialization."""

    def test_fresh_store(self, store):
        result = SchemaMaterializer(store).materialize()

        assert result.order == REQUIRED_TABLES
        assert result.created == REQUIRED_TABLES
        assert result.existing == []
        assert table_names(store) == set(REQUIRED_TABLES)
        assert "idx_users_email" in result.indexes_created

    def test_indexes_exist(self, store):
        SchemaMaterializer(store).materialize()

        indexes = {idx["name"] for idx in inspect(store.connection).get_indexes("tickets")}

        assert {"idx_tickets_event", "idx_tickets_active", "idx_tickets_sale_period", "idx_tickets_price"} <= indexes

    def test_idempotent(self, store):
        SchemaMaterializer(store).materialize()

        result = SchemaMaterializer(store).materialize()

        assert result.created == []
        assert result.existing == REQUIRED_TABLES
        assert result.indexes_created == []
        assert table_names(store) == set(REQUIRED_TABLES)

    def test_missing_index_recreated(self, store):
        materializer = SchemaMaterializer(store)
        materializer.materialize()
        store.connection.exec_driver_sql("DROP INDEX idx_users_role")
        store.connection.commit()

        result = materializer.materialize()

        assert result.indexes_created == ["idx_users_role"]

    def test_single_entity(self, store):
        materializer = SchemaMaterializer(store)

        assert materializer.materialize_entity(materializer.catalog[0]) is True
        assert materializer.materialize_entity(materializer.catalog[0]) is False

    def test_cycle_creates_nothing(self, store):
        catalog = [
            EntityDef(name="a", label="A", fields=(foreign_key("b_id", "b"),)),
            EntityDef(name="b", label="B", fields=(foreign_key("a_id", "a"),)),
        ]

        with pytest.raises(CyclicDependencyError):
            SchemaMaterializer(store, catalog).materialize()

        assert table_names(store) == set()


# ============================================================
# FAILURE TESTS
# ============================================================

class TestMaterializeFailure:
    """Tests for fail-fast behavior."""

    def test_first_failure_aborts(self, store):
        original_create = Table.create

        def failing_create(table, bind=None, checkfirst=False):
            if table.name == "tickets":
                raise OperationalError("CREATE TABLE tickets", {}, Exception("disk I/O error"))
            return original_create(table, bind=bind, checkfirst=checkfirst)

        with patch.object(Table, "create", autospec=True, side_effect=failing_create):
            with pytest.raises(SchemaCreationError) as exc_info:
                SchemaMaterializer(store).materialize()

        error = exc_info.value
        assert error.entity == "tickets"
        assert error.phase == "materialize_schema"
        assert isinstance(error.cause, OperationalError)
        assert table_names(store) == {"users", "organizer_profiles", "events"}

    def test_rerun_after_failure_completes(self, store):
        original_create = Table.create

        def failing_create(table, bind=None, checkfirst=False):
            if table.name == "attendees":
                raise OperationalError("CREATE TABLE attendees", {}, Exception("locked"))
            return original_create(table, bind=bind, checkfirst=checkfirst)

        with patch.object(Table, "create", autospec=True, side_effect=failing_create):
            with pytest.raises(SchemaCreationError):
                SchemaMaterializer(store).materialize()

        result = SchemaMaterializer(store).materialize()

        assert result.created == ["attendees", "promotions", "user_sessions", "event_reviews", "event_templates"]
        assert table_names(store) == set(REQUIRED_TABLES)


# ============================================================
# DROP TESTS
# ============================================================

class TestDropAll:
    """Tests for drop_all."""

    def test_drop_all(self, store):
        materializer = SchemaMaterializer(store)
        materializer.materialize()

        dropped = materializer.drop_all()

        assert dropped == list(reversed(REQUIRED_TABLES))
        assert table_names(store) == set()

    def test_drop_all_empty_store(self, store):
        assert SchemaMaterializer(store).drop_all() == []

    def test_drop_all_follows_dependencies(self, store):
        """Catalog position does not matter: dependents go first."""
        catalog = [
            EntityDef(name="child", label="Child", fields=(foreign_key("parent_id", "parent"),)),
            EntityDef(name="parent", label="Parent", fields=()),
        ]
        materializer = SchemaMaterializer(store, catalog)
        materializer.materialize()

        assert materializer.drop_all() == ["child", "parent"]
        assert table_names(store) == set()

    def test_drop_all_cyclic_catalog_drops_nothing(self, store):
        SchemaMaterializer(store).materialize()
        catalog = [
            EntityDef(name="a", label="A", fields=(foreign_key("b_id", "b"),)),
            EntityDef(name="b", label="B", fields=(foreign_key("a_id", "a"),)),
        ]

        with pytest.raises(CyclicDependencyError):
            SchemaMaterializer(store, catalog).drop_all()

        assert table_names(store) == set(REQUIRED_TABLES)
