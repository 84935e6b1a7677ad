"""
Database Package Initialization.

============================================================
EVENTHIVE STORE SCHEMA AND BOOTSTRAP STEPS
============================================================

This package holds everything the bootstrap does to the
store. The orchestrator package sequences these steps.

- catalog: the 10 entity definitions (single source of truth)
- resolver: dependency-ordered creation order
- materializer: create-if-absent for each entity
- seeds: baseline records, insert-if-absent
- verification: read-only post-bootstrap probe
- engine: the scoped store connection

============================================================
"""

from .config import DatabaseConfig, DEFAULT_DATABASE_NAME, validate_database_name

from .engine import StoreHandle, create_store_engine, open_store

from .catalog import (
    ENTITY_CATALOG,
    REQUIRED_TABLES,
    EntityDef,
    FieldDef,
    FieldType,
    OnDelete,
    Reference,
    UniqueDef,
    CheckDef,
    IndexDef,
    get_entity,
)

from .schema import build_metadata, build_table, build_tables

from .resolver import DependencyGraph, build_graph, resolve_creation_order

from .materializer import MaterializationResult, SchemaMaterializer

from .seeds import (
    SEED_DATASET,
    SEED_PASSWORD_HASH,
    SeedLoader,
    SeedOutcome,
    SeedResult,
)

from .verification import (
    DEFAULT_SAMPLE_LIMIT,
    VerificationProbe,
    VerificationReport,
    describe_table,
)
