"""
Core Module Package.

This package contains the infrastructure shared by the
database and orchestrator packages.

Components:
- exceptions: Custom exception hierarchy
"""

from .exceptions import (
    Severity,
    ErrorClassification,
    EventHiveException,
    ConfigurationError,
    InvalidConfigError,
    CatalogError,
    CyclicDependencyError,
    BootstrapError,
    ConnectionError,
    DatabaseEnsureError,
    SchemaCreationError,
    SeedInsertError,
    StateTransitionError,
    VerificationWarning,
    classify_exception,
)
