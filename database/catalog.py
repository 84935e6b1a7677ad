"""
Database - Entity Catalog.

============================================================
EVENTHIVE SCHEMA DEFINITIONS
============================================================

Declarative definitions of all 10 entities:
- Fields with semantic types, nullability and defaults
- Unique constraints (single- and multi-column)
- Foreign keys with ON DELETE policy
- Check constraints
- Named secondary indexes

This catalog is the single source of truth. The resolver,
the materializer and the seed loader read it; nothing
writes it.

INVENTORY INVARIANTS (declared, NOT enforced here):
- tickets.sold_count <= tickets.max_total
- promotions.used_count <= promotions.usage_limit
- events.registration_end <= events.event_start
Writers must enforce these with a transactional
read-check-write.

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from core.exceptions import CatalogError


# =============================================================
# FIELD TYPES
# =============================================================

class FieldType(Enum):
    """Semantic column types."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    JSON = "json"


class OnDelete(Enum):
    """Foreign key delete policy."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"


# =============================================================
# DEFINITION DATACLASSES
# =============================================================

@dataclass(frozen=True)
class Reference:
    """Foreign key target."""

    entity: str
    """Referenced entity (table) name."""

    column: str = "id"
    on_delete: OnDelete = OnDelete.CASCADE


@dataclass(frozen=True)
class FieldDef:
    """A single column."""

    name: str
    type: FieldType
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    choices: Tuple[str, ...] = ()
    nullable: bool = True
    default: Any = None
    unique: bool = False
    references: Optional[Reference] = None


@dataclass(frozen=True)
class UniqueDef:
    """Multi-column uniqueness."""

    name: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class CheckDef:
    """Row-level check constraint."""

    name: str
    expression: str


@dataclass(frozen=True)
class IndexDef:
    """Named secondary lookup index."""

    name: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class EntityDef:
    """
    One entity (table).

    Every entity implicitly gets an integer `id` primary key and
    `created_at` / `updated_at` timestamps; `fields` lists the rest.
    """

    name: str
    """Table name."""

    label: str
    """Display name."""

    fields: Tuple[FieldDef, ...]
    uniques: Tuple[UniqueDef, ...] = ()
    checks: Tuple[CheckDef, ...] = ()
    indexes: Tuple[IndexDef, ...] = ()

    seed_after: Tuple[str, ...] = ()
    """Entities whose seed rows must exist first, beyond foreign keys."""

    def field(self, name: str) -> FieldDef:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(f"{self.name} has no field {name!r}")

    def references(self) -> List[Tuple[FieldDef, Reference]]:
        """All foreign keys declared by this entity."""
        return [(f, f.references) for f in self.fields if f.references is not None]

    def dependencies(self) -> List[str]:
        """Entities that must exist before this one, in declaration order."""
        deps: List[str] = []
        for _, ref in self.references():
            if ref.entity != self.name and ref.entity not in deps:
                deps.append(ref.entity)
        for name in self.seed_after:
            if name != self.name and name not in deps:
                deps.append(name)
        return deps

    def unique_keys(self) -> List[Tuple[str, ...]]:
        """Every column set a conflicting row can collide on, primary key first."""
        keys: List[Tuple[str, ...]] = [("id",)]
        keys.extend((f.name,) for f in self.fields if f.unique)
        keys.extend(u.columns for u in self.uniques)
        return keys


# =============================================================
# FIELD HELPERS
# =============================================================

def string(name: str, length: int, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.STRING, length=length, **kwargs)


def text(name: str, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.TEXT, **kwargs)


def integer(name: str, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.INTEGER, **kwargs)


def decimal(name: str, precision: int, scale: int, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.DECIMAL, precision=precision, scale=scale, **kwargs)


def boolean(name: str, default: bool, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.BOOLEAN, default=default, **kwargs)


def timestamp(name: str, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.TIMESTAMP, **kwargs)


def enum(name: str, choices: Sequence[str], **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.ENUM, choices=tuple(choices), **kwargs)


def json(name: str, **kwargs) -> FieldDef:
    return FieldDef(name, FieldType.JSON, **kwargs)


def foreign_key(
    name: str,
    entity: str,
    on_delete: OnDelete = OnDelete.CASCADE,
    nullable: bool = False,
) -> FieldDef:
    return FieldDef(
        name,
        FieldType.INTEGER,
        nullable=nullable,
        references=Reference(entity, on_delete=on_delete),
    )


def index(table: str, purpose: str, *columns: str) -> IndexDef:
    return IndexDef(f"idx_{table}_{purpose}", tuple(columns))


# =============================================================
# 1. USERS
# =============================================================

USERS = EntityDef(
    name="users",
    label="User",
    fields=(
        string("username", 50, nullable=False, unique=True),
        string("email", 100, nullable=False, unique=True),
        string("phone", 15, nullable=False, unique=True),
        string("password_hash", 255, nullable=False),
        enum("role", ("user", "organizer", "admin"), default="user"),
        boolean("is_verified", False),
        string("profile_image_url", 500),
    ),
    indexes=(
        index("users", "email", "email"),
        index("users", "phone", "phone"),
        index("users", "role", "role"),
        index("users", "username", "username"),
    ),
)


# =============================================================
# 2. ORGANIZER PROFILES
# =============================================================

ORGANIZER_PROFILES = EntityDef(
    name="organizer_profiles",
    label="OrganizerProfile",
    fields=(
        foreign_key("user_id", "users"),
        string("company_name", 200),
        text("bio"),
        string("website", 500),
        json("social_links"),
        string("business_email", 100),
        string("business_phone", 15),
        text("address"),
        enum("verification_status", ("pending", "verified", "rejected"), default="pending"),
        json("verification_documents"),
        # 0.00 - 5.00, not check-enforced
        decimal("rating", 3, 2, default="0.00"),
        integer("total_events", default=0),
        decimal("total_revenue", 12, 2, default="0.00"),
    ),
    uniques=(
        UniqueDef("uq_organizer_profiles_user", ("user_id",)),
    ),
    indexes=(
        index("organizer_profiles", "verification", "verification_status"),
        index("organizer_profiles", "rating", "rating"),
    ),
)


# =============================================================
# 3. EVENTS
# =============================================================

EVENTS = EntityDef(
    name="events",
    label="Event",
    fields=(
        string("name", 200, nullable=False),
        text("description"),
        string("category", 50, nullable=False),
        timestamp("event_start", nullable=False),
        timestamp("event_end", nullable=False),
        timestamp("registration_start", nullable=False),
        timestamp("registration_end", nullable=False),
        string("location", 300, nullable=False),
        decimal("latitude", 10, 8),
        decimal("longitude", 11, 8),
        string("poster_url", 500),
        json("additional_images"),
        foreign_key("organizer_id", "users"),
        boolean("is_published", False),
    ),
    indexes=(
        index("events", "category", "category"),
        index("events", "event_start", "event_start"),
        index("events", "location", "latitude", "longitude"),
        index("events", "organizer", "organizer_id"),
        index("events", "published", "is_published"),
        index("events", "registration_period", "registration_start", "registration_end"),
    ),
    # seed-time data dependency, ordered as if it were a foreign key
    seed_after=("organizer_profiles",),
)


# =============================================================
# 4. TICKETS
# =============================================================

TICKETS = EntityDef(
    name="tickets",
    label="Ticket",
    fields=(
        foreign_key("event_id", "events"),
        string("type_name", 100, nullable=False),
        decimal("price", 10, 2, nullable=False, default="0.00"),
        integer("max_per_user", default=1),
        integer("max_total", default=100),
        integer("sold_count", default=0),
        timestamp("sale_start"),
        timestamp("sale_end"),
        boolean("is_active", True),
        json("metadata"),
    ),
    indexes=(
        index("tickets", "event", "event_id"),
        index("tickets", "active", "is_active"),
        index("tickets", "sale_period", "sale_start", "sale_end"),
        index("tickets", "price", "price"),
    ),
)


# =============================================================
# 5. TRANSACTIONS
# =============================================================

TRANSACTIONS = EntityDef(
    name="transactions",
    label="Transaction",
    fields=(
        string("booking_id", 50, nullable=False, unique=True),
        foreign_key("user_id", "users"),
        foreign_key("event_id", "events"),
        foreign_key("ticket_id", "tickets"),
        integer("quantity", nullable=False, default=1),
        decimal("amount", 10, 2, nullable=False, default="0.00"),
        enum("payment_status", ("pending", "completed", "failed", "refunded"), default="completed"),
        string("payment_method", 50, default="free"),
        string("payment_gateway_id", 100),
        json("payment_metadata"),
    ),
    indexes=(
        index("transactions", "user", "user_id"),
        index("transactions", "event", "event_id"),
        index("transactions", "ticket", "ticket_id"),
        index("transactions", "booking_id", "booking_id"),
        index("transactions", "status", "payment_status"),
        index("transactions", "created_at", "created_at"),
    ),
)


# =============================================================
# 6. ATTENDEES
# =============================================================

ATTENDEES = EntityDef(
    name="attendees",
    label="Attendee",
    fields=(
        foreign_key("transaction_id", "transactions"),
        string("name", 100, nullable=False),
        string("email", 100, nullable=False),
        string("phone", 15),
        enum("gender", ("male", "female", "other")),
        json("additional_info"),
        boolean("has_attended", False),
        timestamp("check_in_time"),
        # check-in idempotency guard
        string("qr_code", 255, unique=True),
    ),
    indexes=(
        index("attendees", "transaction", "transaction_id"),
        index("attendees", "email", "email"),
        index("attendees", "qr_code", "qr_code"),
        index("attendees", "attendance", "has_attended"),
        index("attendees", "check_in", "check_in_time"),
    ),
)


# =============================================================
# 7. PROMOTIONS
# =============================================================

PROMOTIONS = EntityDef(
    name="promotions",
    label="Promotion",
    fields=(
        foreign_key("event_id", "events"),
        string("code", 50, nullable=False, unique=True),
        enum("type", ("percentage", "fixed", "early_bird"), default="percentage"),
        decimal("discount_value", 10, 2, nullable=False),
        integer("usage_limit", default=1),
        integer("used_count", default=0),
        timestamp("valid_from", nullable=False),
        timestamp("valid_until", nullable=False),
        boolean("is_active", True),
    ),
    indexes=(
        index("promotions", "event", "event_id"),
        index("promotions", "code", "code"),
        index("promotions", "active", "is_active"),
        index("promotions", "validity_period", "valid_from", "valid_until"),
        index("promotions", "usage", "used_count", "usage_limit"),
    ),
)


# =============================================================
# 8. USER SESSIONS
# =============================================================

USER_SESSIONS = EntityDef(
    name="user_sessions",
    label="UserSession",
    fields=(
        foreign_key("user_id", "users"),
        string("session_token", 255, nullable=False, unique=True),
        timestamp("expires_at", nullable=False),
        text("device_info"),
        string("ip_address", 45),
        boolean("is_active", True),
    ),
    indexes=(
        index("user_sessions", "user", "user_id"),
        index("user_sessions", "token", "session_token"),
        index("user_sessions", "expires", "expires_at"),
        index("user_sessions", "active", "is_active"),
    ),
)


# =============================================================
# 9. EVENT REVIEWS
# =============================================================

EVENT_REVIEWS = EntityDef(
    name="event_reviews",
    label="EventReview",
    fields=(
        foreign_key("event_id", "events"),
        foreign_key("user_id", "users"),
        foreign_key("transaction_id", "transactions", on_delete=OnDelete.SET_NULL, nullable=True),
        integer("rating", nullable=False),
        text("review_text"),
        boolean("is_verified_attendee", False),
        integer("helpful_count", default=0),
        boolean("is_flagged", False),
        text("admin_response"),
    ),
    uniques=(
        UniqueDef("uq_event_reviews_event_user", ("event_id", "user_id")),
    ),
    checks=(
        CheckDef("ck_event_reviews_rating", "rating >= 1 AND rating <= 5"),
    ),
    indexes=(
        index("event_reviews", "event_rating", "event_id", "rating"),
        index("event_reviews", "user", "user_id"),
        index("event_reviews", "verified", "is_verified_attendee"),
        index("event_reviews", "created_at", "created_at"),
    ),
)


# =============================================================
# 10. EVENT TEMPLATES
# =============================================================

EVENT_TEMPLATES = EntityDef(
    name="event_templates",
    label="EventTemplate",
    fields=(
        foreign_key("organizer_id", "users"),
        string("template_name", 200, nullable=False),
        text("description"),
        string("category", 50, nullable=False),
        integer("default_duration_hours", default=2),
        string("default_location", 300),
        json("default_ticket_types"),
        json("default_settings"),
        integer("usage_count", default=0),
        boolean("is_public", False),
    ),
    indexes=(
        index("event_templates", "organizer", "organizer_id"),
        index("event_templates", "category", "category"),
        index("event_templates", "public", "is_public"),
        index("event_templates", "usage", "usage_count"),
    ),
)


# =============================================================
# CATALOG
# =============================================================

ENTITY_CATALOG: Tuple[EntityDef, ...] = (
    USERS,
    ORGANIZER_PROFILES,
    EVENTS,
    TICKETS,
    TRANSACTIONS,
    ATTENDEES,
    PROMOTIONS,
    USER_SESSIONS,
    EVENT_REVIEWS,
    EVENT_TEMPLATES,
)

REQUIRED_TABLES: List[str] = [entity.name for entity in ENTITY_CATALOG]


def get_entity(name: str, catalog: Iterable[EntityDef] = ENTITY_CATALOG) -> EntityDef:
    """Look up an entity by table name."""
    for entity in catalog:
        if entity.name == name:
            return entity
    raise CatalogError(f"Unknown entity: {name}", entity=name)


__all__ = [
    "FieldType",
    "OnDelete",
    "Reference",
    "FieldDef",
    "UniqueDef",
    "CheckDef",
    "IndexDef",
    "EntityDef",
    "ENTITY_CATALOG",
    "REQUIRED_TABLES",
    "get_entity",
]
