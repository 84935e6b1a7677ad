"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the store bootstrap.

- Provides clear exception hierarchy
- Carries phase/entity context for diagnosis
- Supports error categorization for logging
- Wraps driver errors with their cause

============================================================
EXCEPTION HIERARCHY
============================================================
EventHiveException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── CatalogError
│   └── CyclicDependencyError
├── BootstrapError
│   ├── ConnectionError
│   ├── DatabaseEnsureError
│   ├── SchemaCreationError
│   ├── SeedInsertError
│   └── StateTransitionError
└── VerificationWarning

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, bootstrap cannot continue."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error does not affect the outcome."""

    TRANSIENT = "transient"
    """Temporary error, re-running may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class EventHiveException(Exception):
    """
    Base exception for all bootstrap errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    @property
    def is_fatal(self) -> bool:
        """Check if error must abort the bootstrap."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/reporting."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(EventHiveException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# CATALOG ERRORS
# ============================================================

class CatalogError(EventHiveException):
    """The entity catalog is malformed."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if entity:
            context["entity"] = entity

        super().__init__(message, context=context, **kwargs)
        self.entity = entity


class CyclicDependencyError(CatalogError):
    """The catalog contains a reference cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        path = " -> ".join(self.cycle)
        super().__init__(
            message=f"Circular dependency detected: {path}",
            entity=self.cycle[0] if self.cycle else None,
            context={"cycle": path},
        )


# ============================================================
# BOOTSTRAP ERRORS
# ============================================================

class BootstrapError(EventHiveException):
    """
    Base class for fatal bootstrap errors.

    Carries the phase and (where known) entity name so a failure
    can be diagnosed without re-running with extra instrumentation.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        phase: Optional[str] = None,
        entity: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if phase:
            context["phase"] = phase
        if entity:
            context["entity"] = entity

        super().__init__(message, context=context, **kwargs)
        self.phase = phase
        self.entity = entity


class ConnectionError(BootstrapError):
    """Cannot reach the store."""

    def __init__(self, message: str, target: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if target:
            context["target"] = target
        super().__init__(message, phase="connect", context=context, **kwargs)


class DatabaseEnsureError(BootstrapError):
    """Cannot create or select the target database."""

    def __init__(self, message: str, database: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if database:
            context["database"] = database
        super().__init__(message, phase="ensure_database", context=context, **kwargs)
        self.database = database


class SchemaCreationError(BootstrapError):
    """An entity's structure could not be created."""

    def __init__(self, entity: str, cause: Optional[BaseException] = None):
        super().__init__(
            message=f"Failed to create structure for entity '{entity}'",
            phase="materialize_schema",
            entity=entity,
            cause=cause,
        )


class SeedInsertError(BootstrapError):
    """A seed record failed to insert for a reason other than a key conflict."""

    def __init__(
        self,
        entity: Optional[str],
        record: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        context = {}
        if record and "id" in record:
            context["record_id"] = record["id"]
        message = f"Failed to seed entity '{entity}'" if entity else "Seed phase failed"
        super().__init__(
            message=message,
            phase="seed",
            entity=entity,
            context=context,
            cause=cause,
        )


class StateTransitionError(BootstrapError):
    """Invalid orchestrator state transition."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


# ============================================================
# VERIFICATION
# ============================================================

class VerificationWarning(EventHiveException):
    """
    A verification probe failed or returned an unexpected shape.

    Never raised out of the probe; collected into the report
    and logged. Does not affect the bootstrap result.
    """

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        check: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if check:
            context["check"] = check
        if table:
            context["table"] = table

        super().__init__(message, context=context, **kwargs)
        self.check = check
        self.table = table


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def classify_exception(exc: BaseException) -> ErrorClassification:
    """Classify an exception for error handling."""
    if isinstance(exc, EventHiveException):
        return exc.classification

    if isinstance(exc, (TimeoutError, OSError)):
        return ErrorClassification.TRANSIENT

    return ErrorClassification.NON_RECOVERABLE


__all__ = [
    "Severity",
    "ErrorClassification",
    "EventHiveException",
    "ConfigurationError",
    "InvalidConfigError",
    "CatalogError",
    "CyclicDependencyError",
    "BootstrapError",
    "ConnectionError",
    "DatabaseEnsureError",
    "SchemaCreationError",
    "SeedInsertError",
    "StateTransitionError",
    "VerificationWarning",
    "classify_exception",
]
