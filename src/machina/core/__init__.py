"""machina.core -- shared primitives for the machine pipeline.

Architecture::

    errors.py       Structured error hierarchy (MachineError, HashError, ...)
    outcome.py      Outcome envelope (Success / Failure / Exit)
    hashing.py      Canonical JSON + SHA-256 input hashing
    timestamps.py   UTC helpers + ULID generation (stdlib-only)
    logging.py      structlog configuration
    settings.py     MACHINA_* environment defaults (pydantic-settings)
"""

from machina.core.errors import (
    CacheLookupError,
    CacheStoreError,
    CacheWriteError,
    ConfigError,
    DependencyError,
    DependencyNotFoundError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    GarbageCollectionError,
    HashError,
    InvalidConfigError,
    MachineDefinitionError,
    MachineError,
    MachineNotFoundError,
    MachineTimeoutError,
    UndeclaredExitError,
)
from machina.core.hashing import canonical_json, hash_inputs
from machina.core.outcome import Exit, Failure, Outcome, Success, outcome_for

__all__ = [
    "CacheLookupError",
    "CacheStoreError",
    "CacheWriteError",
    "ConfigError",
    "DependencyError",
    "DependencyNotFoundError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "GarbageCollectionError",
    "HashError",
    "InvalidConfigError",
    "MachineDefinitionError",
    "MachineError",
    "MachineNotFoundError",
    "MachineTimeoutError",
    "UndeclaredExitError",
    "canonical_json",
    "hash_inputs",
    "Exit",
    "Failure",
    "Outcome",
    "Success",
    "outcome_for",
]
