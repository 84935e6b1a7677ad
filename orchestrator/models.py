"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the bootstrap orchestrator.

- Bootstrap states and the legal transitions between them
- Bootstrap phases with strict ordering
- Phase and run results
- Configuration dataclass

============================================================
STATE MACHINE
============================================================

    DISCONNECTED
         │  connect
         ▼
     CONNECTED
         │  ensure_database
         ▼
  DATABASE_ENSURED
         │  materialize_schema
         ▼
    SCHEMA_READY
         │  seed
         ▼
       SEEDED
         │  verify
         ▼
      VERIFIED

    Any non-terminal state can transition to FAILED.

INVARIANTS:
- Transitions occur strictly in this order, none skipped
- VERIFIED and FAILED are terminal

============================================================
"""

import os
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

from core.exceptions import EventHiveException
from database.config import DatabaseConfig, env_int
from database.materializer import MaterializationResult
from database.seeds import SeedResult
from database.verification import DEFAULT_SAMPLE_LIMIT, VerificationReport


# ============================================================
# BOOTSTRAP STATES
# ============================================================

class BootstrapState(Enum):
    """Orchestrator lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    DATABASE_ENSURED = "database_ensured"
    SCHEMA_READY = "schema_ready"
    SEEDED = "seeded"
    VERIFIED = "verified"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no transition leaves this state."""
        return self in (BootstrapState.VERIFIED, BootstrapState.FAILED)


VALID_TRANSITIONS: Dict[BootstrapState, Set[BootstrapState]] = {
    BootstrapState.DISCONNECTED: {
        BootstrapState.CONNECTED,
        BootstrapState.FAILED,
    },
    BootstrapState.CONNECTED: {
        BootstrapState.DATABASE_ENSURED,
        BootstrapState.FAILED,
    },
    BootstrapState.DATABASE_ENSURED: {
        BootstrapState.SCHEMA_READY,
        BootstrapState.FAILED,
    },
    BootstrapState.SCHEMA_READY: {
        BootstrapState.SEEDED,
        BootstrapState.FAILED,
    },
    BootstrapState.SEEDED: {
        BootstrapState.VERIFIED,
        BootstrapState.FAILED,
    },
    # Terminal states - no transitions out
    BootstrapState.VERIFIED: set(),
    BootstrapState.FAILED: set(),
}


def can_transition(from_state: BootstrapState, to_state: BootstrapState) -> bool:
    """Check if a transition is allowed."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


# ============================================================
# BOOTSTRAP PHASES
# ============================================================

class BootstrapPhase(Enum):
    """
    Bootstrap phases in strict order.

    Each phase moves the orchestrator into its target state.
    Failure short-circuits everything downstream.
    """

    CONNECT = (1, "connect", "Connect to the store", BootstrapState.CONNECTED)
    ENSURE_DATABASE = (2, "ensure_database", "Create or select the target database", BootstrapState.DATABASE_ENSURED)
    MATERIALIZE_SCHEMA = (3, "materialize_schema", "Create entity structures in dependency order", BootstrapState.SCHEMA_READY)
    SEED = (4, "seed", "Insert baseline records", BootstrapState.SEEDED)
    VERIFY = (5, "verify", "Run read-only verification probe", BootstrapState.VERIFIED)

    def __init__(self, order: int, phase_id: str, description: str, target_state: BootstrapState):
        self._order = order
        self._phase_id = phase_id
        self._description = description
        self._target_state = target_state

    @property
    def order(self) -> int:
        """Get execution order."""
        return self._order

    @property
    def phase_id(self) -> str:
        """Get phase identifier."""
        return self._phase_id

    @property
    def description(self) -> str:
        """Get phase description."""
        return self._description

    @property
    def target_state(self) -> BootstrapState:
        """State entered when the phase succeeds."""
        return self._target_state

    @classmethod
    def get_ordered_phases(cls) -> List["BootstrapPhase"]:
        """Get all phases in execution order."""
        return sorted(cls, key=lambda p: p.order)


# ============================================================
# PHASE RESULT
# ============================================================

@dataclass
class PhaseResult:
    """Result of executing a phase."""

    phase: BootstrapPhase
    success: bool
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    error: Optional[str] = None
    error_type: Optional[str] = None
    entity: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        """Get duration as timedelta."""
        return timedelta(seconds=self.duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "phase": self.phase.phase_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "error_type": self.error_type,
            "entity": self.entity,
            "context": self.context,
        }


# ============================================================
# BOOTSTRAP RESULT
# ============================================================

@dataclass
class BootstrapResult:
    """
    Structured outcome of one bootstrap run.

    On failure, `failed_phase`, `error` and `exception` identify
    what went wrong; the exception's context names the entity
    and the underlying cause.
    """

    run_id: str
    database: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    state: BootstrapState = BootstrapState.DISCONNECTED
    state_history: List[BootstrapState] = field(default_factory=lambda: [BootstrapState.DISCONNECTED])
    phase_results: List[PhaseResult] = field(default_factory=list)
    failed_phase: Optional[BootstrapPhase] = None
    error: Optional[str] = None
    exception: Optional[BaseException] = None
    creation_order: List[str] = field(default_factory=list)
    materialization: Optional[MaterializationResult] = None
    seed_result: Optional[SeedResult] = None
    verification: Optional[VerificationReport] = None

    @property
    def success(self) -> bool:
        return self.state == BootstrapState.VERIFIED

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def phases_completed(self) -> int:
        """Get number of completed phases."""
        return len([r for r in self.phase_results if r.success])

    def add_phase_result(self, result: PhaseResult) -> None:
        """Add a phase result."""
        self.phase_results.append(result)
        if not result.success:
            self.failed_phase = result.phase
            self.error = result.error

    def raise_for_failure(self) -> None:
        """Re-raise the captured error of a failed run."""
        if self.exception is not None:
            raise self.exception

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        error_detail = None
        if isinstance(self.exception, EventHiveException):
            error_detail = self.exception.to_dict()
        return {
            "run_id": self.run_id,
            "database": self.database,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "state": self.state.value,
            "state_history": [s.value for s in self.state_history],
            "duration_seconds": self.duration_seconds,
            "phases_completed": self.phases_completed,
            "failed_phase": self.failed_phase.phase_id if self.failed_phase else None,
            "error": self.error,
            "error_detail": error_detail,
            "creation_order": self.creation_order,
            "phase_results": [r.to_dict() for r in self.phase_results],
            "materialization": self.materialization.to_dict() if self.materialization else None,
            "seed": self.seed_result.to_dict() if self.seed_result else None,
            "verification": self.verification.to_dict() if self.verification else None,
        }


# ============================================================
# BOOTSTRAP CONFIGURATION
# ============================================================

@dataclass
class BootstrapConfig:
    """Configuration for the bootstrap orchestrator."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    """Store connection settings."""

    sample_limit: int = DEFAULT_SAMPLE_LIMIT
    """Rows fetched per sampled table during verification."""

    drop_existing: bool = False
    """Drop every catalog table before materializing (DANGEROUS)."""

    log_level: str = "INFO"
    """Logging level."""

    @classmethod
    def from_env(cls) -> "BootstrapConfig":
        """Load configuration from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            sample_limit=env_int("BOOTSTRAP_SAMPLE_LIMIT", DEFAULT_SAMPLE_LIMIT),
            drop_existing=os.getenv("BOOTSTRAP_DROP_EXISTING", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = self.database.validate()

        if self.sample_limit < 1:
            errors.append("sample_limit must be at least 1")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"log_level is not a logging level: {self.log_level}")

        return errors
