"""
Database - Table Generation.

Translates the entity catalog into SQLAlchemy Core tables.
Nothing here touches a connection; the materializer decides
when and in which order tables are created.
"""

from typing import Dict, Iterable, List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    false,
    func,
    text,
    true,
)

from .catalog import ENTITY_CATALOG, EntityDef, FieldDef, FieldType


# =============================================================
# COLUMN TYPES
# =============================================================

def column_type(table: str, f: FieldDef):
    """SQLAlchemy type for a semantic field type."""
    if f.type == FieldType.STRING:
        return String(f.length)
    if f.type == FieldType.TEXT:
        return Text()
    if f.type == FieldType.INTEGER:
        return Integer()
    if f.type == FieldType.DECIMAL:
        return Numeric(f.precision, f.scale)
    if f.type == FieldType.BOOLEAN:
        return Boolean()
    if f.type == FieldType.TIMESTAMP:
        return DateTime()
    if f.type == FieldType.ENUM:
        # PostgreSQL enum type names share one namespace
        return SQLEnum(*f.choices, name=f"{table}_{f.name}")
    if f.type == FieldType.JSON:
        return JSON(none_as_null=True)
    raise ValueError(f"Unsupported field type: {f.type}")


def server_default(f: FieldDef):
    """DDL DEFAULT clause for a field, or None."""
    if f.default is None:
        return None
    if f.type == FieldType.BOOLEAN:
        return true() if f.default else false()
    if f.type in (FieldType.INTEGER, FieldType.DECIMAL):
        return text(str(f.default))
    return str(f.default)


def build_column(table: str, f: FieldDef) -> Column:
    args = [column_type(table, f)]
    if f.references is not None:
        ref = f.references
        args.append(
            ForeignKey(f"{ref.entity}.{ref.column}", ondelete=ref.on_delete.value)
        )
    return Column(
        f.name,
        *args,
        nullable=f.nullable,
        server_default=server_default(f),
    )


# =============================================================
# TABLES
# =============================================================

def build_table(entity: EntityDef, metadata: MetaData) -> Table:
    """Build the Table for one entity onto `metadata`."""
    columns: List = [Column("id", Integer, primary_key=True, autoincrement=True)]
    columns.extend(build_column(entity.name, f) for f in entity.fields)
    columns.append(
        Column("created_at", DateTime, nullable=False, server_default=func.now())
    )
    columns.append(
        Column(
            "updated_at",
            DateTime,
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
        )
    )

    constraints: List = []
    for f in entity.fields:
        if f.unique:
            constraints.append(UniqueConstraint(f.name, name=f"uq_{entity.name}_{f.name}"))
    for u in entity.uniques:
        constraints.append(UniqueConstraint(*u.columns, name=u.name))
    for c in entity.checks:
        constraints.append(CheckConstraint(c.expression, name=c.name))

    table = Table(entity.name, metadata, *columns, *constraints)

    for idx in entity.indexes:
        Index(idx.name, *[table.c[name] for name in idx.columns])

    return table


def build_metadata(catalog: Iterable[EntityDef] = ENTITY_CATALOG) -> MetaData:
    """Build a MetaData holding one Table per catalog entity."""
    metadata = MetaData()
    for entity in catalog:
        build_table(entity, metadata)
    return metadata


def build_tables(catalog: Iterable[EntityDef] = ENTITY_CATALOG) -> Dict[str, Table]:
    """Tables keyed by entity name."""
    metadata = build_metadata(catalog)
    return dict(metadata.tables)
