"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Sequences the store bootstrap, start to finish.

- Single entrypoint: bootstrap()
- Runs phases strictly in order, one at a time
- Enforces the state machine on every transition
- Short-circuits on the first failure
- Releases the store handle on every exit path

============================================================
ARCHITECTURAL POSITION
============================================================
- This orchestrator has NO schema or data knowledge
- The database package does the work
- It ONLY coordinates execution and records outcomes
- No automatic retry: a failed run is re-run from the top

============================================================
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .models import (
    BootstrapConfig,
    BootstrapPhase,
    BootstrapResult,
    BootstrapState,
    PhaseResult,
    can_transition,
)
from core.exceptions import (
    BootstrapError,
    ConfigurationError,
    EventHiveException,
    StateTransitionError,
    VerificationWarning,
    classify_exception,
)
from database.catalog import ENTITY_CATALOG, EntityDef
from database.config import DatabaseConfig
from database.engine import StoreHandle
from database.materializer import SchemaMaterializer
from database.resolver import resolve_creation_order
from database.seeds import SeedLoader
from database.verification import VerificationProbe, VerificationReport


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

StoreFactory = Callable[[DatabaseConfig], StoreHandle]
PhaseHandler = Callable[[], Optional[Dict[str, Any]]]


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
) -> logging.Logger:
    """
    Set up process-wide logging.

    Args:
        level: Log level
        log_format: Output format (text or json)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        fmt = json.dumps({
            "timestamp": "%(asctime)s",
            "level": "%(levelname)s",
            "logger": "%(name)s",
            "message": "%(message)s",
        })
    else:
        fmt = LOG_FORMAT

    logging.basicConfig(
        level=log_level,
        format=fmt,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    return logging.getLogger("orchestrator")


# ============================================================
# BOOTSTRAP ORCHESTRATOR
# ============================================================

class BootstrapOrchestrator:
    """
    Runs connect -> ensure_database -> materialize_schema -> seed -> verify.

    Each orchestrator instance performs exactly one run.

    Usage:
        orchestrator = BootstrapOrchestrator(BootstrapConfig.from_env())
        result = orchestrator.run()
        result.raise_for_failure()
    """

    def __init__(
        self,
        config: BootstrapConfig,
        catalog: Iterable[EntityDef] = ENTITY_CATALOG,
        seed_dataset: Optional[Mapping[str, Sequence[Dict[str, Any]]]] = None,
        store_factory: Optional[StoreFactory] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Bootstrap configuration
            catalog: Entity definitions to materialize
            seed_dataset: Records per entity (defaults to the baseline dataset)
            store_factory: Builds the store handle from database settings

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError(
                message=f"Invalid configuration: {', '.join(errors)}",
            )

        self._config = config
        self._catalog = tuple(catalog)
        self._seed_dataset = seed_dataset
        self._store_factory = store_factory or StoreHandle
        self._logger = logging.getLogger(__name__)

        self._store: Optional[StoreHandle] = None
        self._order: List[EntityDef] = []
        self._state = BootstrapState.DISCONNECTED
        self._result: Optional[BootstrapResult] = None

        self._handlers: Dict[BootstrapPhase, PhaseHandler] = {
            BootstrapPhase.CONNECT: self._connect,
            BootstrapPhase.ENSURE_DATABASE: self._ensure_database,
            BootstrapPhase.MATERIALIZE_SCHEMA: self._materialize_schema,
            BootstrapPhase.SEED: self._seed,
            BootstrapPhase.VERIFY: self._verify,
        }

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> BootstrapConfig:
        """Get configuration."""
        return self._config

    @property
    def state(self) -> BootstrapState:
        """Get current bootstrap state."""
        return self._state

    # --------------------------------------------------------
    # State Machine
    # --------------------------------------------------------

    def _transition(self, to_state: BootstrapState) -> None:
        """
        Move to a new state.

        Raises:
            StateTransitionError: If the move is not in the transition table
        """
        from_state = self._state
        if not can_transition(from_state, to_state):
            raise StateTransitionError(
                message=f"Invalid transition: {from_state.value} -> {to_state.value}",
                from_state=from_state.value,
                to_state=to_state.value,
            )

        self._state = to_state
        if self._result is not None:
            self._result.state = to_state
            self._result.state_history.append(to_state)

        self._logger.debug(f"State: {from_state.value} -> {to_state.value}")

    # --------------------------------------------------------
    # Run
    # --------------------------------------------------------

    def _generate_run_id(self) -> str:
        """Generate a unique run ID."""
        return f"bootstrap_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"

    def run(self) -> BootstrapResult:
        """
        Execute the full bootstrap.

        Returns:
            BootstrapResult; on failure it names the phase, the
            entity (where known) and the underlying cause
        """
        if self._result is not None:
            raise StateTransitionError(
                message="Orchestrator has already run",
                from_state=self._state.value,
            )

        result = BootstrapResult(
            run_id=self._generate_run_id(),
            database=self._config.database.database,
            started_at=datetime.now(timezone.utc),
        )
        self._result = result

        self._logger.info(
            f"=== BOOTSTRAP START: {result.run_id} | "
            f"target={self._config.database.safe_url()} | database={result.database} ==="
        )

        self._store = self._store_factory(self._config.database)
        try:
            for phase in BootstrapPhase.get_ordered_phases():
                phase_result = self._execute_phase(phase)
                result.add_phase_result(phase_result)

                if not phase_result.success:
                    self._transition(BootstrapState.FAILED)
                    break

                self._transition(phase.target_state)
        finally:
            self._store.close()
            result.completed_at = datetime.now(timezone.utc)

        if result.success:
            self._logger.info(
                f"=== BOOTSTRAP COMPLETE: {result.run_id} | "
                f"duration={result.duration_seconds:.2f}s | "
                f"phases_completed={result.phases_completed} ==="
            )
        else:
            self._logger.error(
                f"=== BOOTSTRAP ABORTED: {result.run_id} | "
                f"failed_phase={result.failed_phase.phase_id} | error={result.error} ==="
            )

        return result

    def _execute_phase(self, phase: BootstrapPhase) -> PhaseResult:
        """Execute one phase with timing and error capture."""
        handler = self._handlers[phase]
        started_at = datetime.now(timezone.utc)

        self._logger.info(f"Phase [{phase.order:02d}] START: {phase.description}")

        try:
            context = handler() or {}

            completed_at = datetime.now(timezone.utc)
            duration = (completed_at - started_at).total_seconds()

            self._logger.info(
                f"Phase [{phase.order:02d}] COMPLETE: {phase.description} ({duration:.2f}s)"
            )

            return PhaseResult(
                phase=phase,
                success=True,
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=duration,
                context=context,
            )

        except EventHiveException as e:
            error = e
            self._logger.error(
                f"Phase [{phase.order:02d}] FAILED: {phase.description} - {e.to_log_format()}"
            )

        except Exception as e:
            error = BootstrapError(
                message=f"Unexpected error during {phase.phase_id}: {type(e).__name__}: {e}",
                phase=phase.phase_id,
                classification=classify_exception(e),
                cause=e,
            )
            self._logger.error(
                f"Phase [{phase.order:02d}] ERROR: {phase.description} - {type(e).__name__}: {e}",
                exc_info=True,
            )

        completed_at = datetime.now(timezone.utc)
        self._result.exception = error

        return PhaseResult(
            phase=phase,
            success=False,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            error=error.message,
            error_type=type(error).__name__,
            entity=getattr(error, "entity", None),
            context=dict(error.context),
        )

    # --------------------------------------------------------
    # Phase Handlers
    # --------------------------------------------------------

    def _connect(self) -> Dict[str, Any]:
        self._store.connect()
        return {"target": self._config.database.safe_url()}

    def _ensure_database(self) -> Dict[str, Any]:
        name = self._store.ensure_database(self._config.database.database)
        return {"database": name}

    def _materialize_schema(self) -> Dict[str, Any]:
        # resolve before touching the store: a cyclic catalog creates nothing
        self._order = resolve_creation_order(self._catalog)
        self._result.creation_order = [entity.name for entity in self._order]
        self._logger.info(f"Creation order: {' -> '.join(self._result.creation_order)}")

        materializer = SchemaMaterializer(self._store, self._catalog)

        dropped: List[str] = []
        if self._config.drop_existing:
            self._logger.warning("drop_existing is set, dropping catalog tables")
            dropped = materializer.drop_all()

        materialization = materializer.materialize(self._order)
        self._result.materialization = materialization

        context = materialization.to_dict()
        context["dropped"] = dropped
        return context

    def _seed(self) -> Dict[str, Any]:
        loader = SeedLoader(self._store, self._catalog, self._seed_dataset)
        seed_result = loader.load(self._order)
        self._result.seed_result = seed_result
        return seed_result.to_dict()

    def _verify(self) -> Dict[str, Any]:
        probe = VerificationProbe(
            self._store,
            self._catalog,
            sample_limit=self._config.sample_limit,
        )
        try:
            report = probe.run()
        except (EventHiveException, SQLAlchemyError) as e:
            # verification never changes the outcome
            warning = VerificationWarning("Verification probe aborted", check="probe", cause=e)
            self._logger.warning(warning.to_log_format())
            report = VerificationReport(warnings=[warning])

        self._result.verification = report
        return {
            "ok": report.ok,
            "row_counts": report.row_counts,
            "warnings": len(report.warnings),
        }


# ============================================================
# ENTRY POINT
# ============================================================

def bootstrap(
    config: Optional[BootstrapConfig] = None,
    catalog: Iterable[EntityDef] = ENTITY_CATALOG,
    seed_dataset: Optional[Mapping[str, Sequence[Dict[str, Any]]]] = None,
    store_factory: Optional[StoreFactory] = None,
) -> BootstrapResult:
    """
    Bootstrap the EventHive store.

    With no arguments, configuration comes from the environment
    (and `.env`). Failures are captured in the returned result;
    call `result.raise_for_failure()` to turn them into exceptions.
    """
    orchestrator = BootstrapOrchestrator(
        config or BootstrapConfig.from_env(),
        catalog=catalog,
        seed_dataset=seed_dataset,
        store_factory=store_factory,
    )
    return orchestrator.run()
