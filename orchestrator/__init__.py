"""
Orchestrator Package - Bootstrap Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
This package sequences the EventHive store bootstrap.
It is the SINGLE ENTRYPOINT for provisioning a store.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO schema or data knowledge
2. Phases run strictly in order, one at a time
3. The first failure stops the run
4. The store connection is always released
5. Verification never changes the outcome

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                BootstrapOrchestrator                |
    |-----------------------------------------------------|
    |  BootstrapState  |  7 states, transition table      |
    |  BootstrapPhase  |  5 phases in strict order        |
    |  BootstrapResult |  Per-phase outcome and error     |
    |  CLI             |  Command-line interface          |
    +-----------------------------------------------------+

============================================================
PHASES (5 in strict order)
============================================================
 1. CONNECT            - Connect to the store server
 2. ENSURE_DATABASE    - Create or select the target database
 3. MATERIALIZE_SCHEMA - Create entity tables in dependency order
 4. SEED               - Insert baseline records
 5. VERIFY             - Read-only verification probe

============================================================
QUICK START
============================================================
Command line usage::

    # Bootstrap using DATABASE_URL / DB_* settings
    python -m orchestrator.cli

    # Local SQLite file
    python -m orchestrator.cli --url sqlite:///eventhive.db

    # Show entity creation order
    python -m orchestrator.cli --show-order

Programmatic usage::

    from orchestrator import bootstrap

    result = bootstrap()
    result.raise_for_failure()

============================================================
"""

from .models import (
    BootstrapState,
    BootstrapPhase,
    BootstrapConfig,
    BootstrapResult,
    PhaseResult,
    VALID_TRANSITIONS,
    can_transition,
)

from .core import (
    BootstrapOrchestrator,
    bootstrap,
    setup_logging,
)

from .cli import (
    create_parser,
    main,
)

__all__ = [
    # Models
    "BootstrapState",
    "BootstrapPhase",
    "BootstrapConfig",
    "BootstrapResult",
    "PhaseResult",
    "VALID_TRANSITIONS",
    "can_transition",
    # Core
    "BootstrapOrchestrator",
    "bootstrap",
    "setup_logging",
    # CLI
    "create_parser",
    "main",
]
