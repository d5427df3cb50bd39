"""
Structured error types for machina.

Every failure the execution-and-caching pipeline can produce is a
``MachineError`` carrying a category, a structured context (machine id,
input hash, exit name) and an optional chained cause. The pipeline uses
the category to decide what happens next: cache and store failures are
downgraded to warnings, unit failures are delivered on the ``error``
exit, and only definition/dependency failures reach the fatal handler.

Manifesto:
    - **Typed hierarchy:** One subclass per place the pipeline can fail
    - **Warnings are errors too:** A cache warning is a real exception
      object, so sinks can log ``to_dict()`` or re-raise it in tests
    - **Error chaining:** The store's original exception is kept as cause

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        MachineError                           │
        │            (category, context, cause, retryable)              │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigError            ValidationError     CacheStoreError  │
        │  (CONFIG)               (VALIDATION)        (STORAGE)        │
        │     │                        │                   │           │
        │  InvalidConfigError      HashError          CacheLookupError │
        │  MachineDefinitionError                     CacheWriteError  │
        │                                        GarbageCollectionError│
        │                                                              │
        │  DependencyError        ExecutionError                       │
        │  (DEPENDENCY)           (EXECUTION)                          │
        │     │                        │                               │
        │  DependencyNotFoundError MachineTimeoutError                 │
        │  MachineNotFoundError    UndeclaredExitError                 │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = CacheLookupError("find() failed").with_context(machine="add", hash="ab12")
    >>> err.category
    <ErrorCategory.STORAGE: 'STORAGE'>
    >>> err.to_dict()["context"]
    {'machine': 'add', 'hash': 'ab12'}

Tags:
    error-handling, exception-hierarchy, error-context, machina

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories map onto the pipeline's propagation policy:
    - **CONFIG:** bad definitions or cache options, caught before running
    - **VALIDATION:** inputs that cannot be hashed
    - **STORAGE:** cache store I/O (find/create/count/destroy)
    - **DEPENDENCY:** dependency or registry lookups
    - **EXECUTION:** failures raised while running the unit itself
    - **INTERNAL / UNKNOWN:** everything else
    """

    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    STORAGE = "STORAGE"
    DEPENDENCY = "DEPENDENCY"
    EXECUTION = "EXECUTION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a ``MachineError``.

    Attributes:
        machine: Id of the machine definition involved
        hash: Input hash of the run, when one was derived
        exit: Exit name involved (cacheable exit, undeclared exit, ...)
        operation: Store operation that failed (find/create/count/destroy)
        metadata: Additional key-value pairs
    """

    machine: str | None = None
    hash: str | None = None
    exit: str | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["machine", "hash", "exit", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class MachineError(Exception):
    """
    Base exception for all machina errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass a message and, when wrapping, the original ``cause``.

    Examples:
        >>> error = MachineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> try:
        ...     raise ConnectionError("store offline")
        ... except ConnectionError as e:
        ...     error = CacheWriteError("create() failed", cause=e)
        >>> error.cause
        ConnectionError('store offline')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> MachineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise CacheLookupError("find() failed", cause=exc).with_context(
                machine="add", hash=run_hash, operation="find"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(MachineError):
    """
    Configuration error.

    Never retryable - the definition or options must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """A configuration value has the wrong type or range."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        super().__init__(message or f"Invalid value for {key!r}: {value!r}")
        self.key = key
        self.value = value


class MachineDefinitionError(ConfigError):
    """The machine definition cannot be run (e.g. it has no ``fn``)."""


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(MachineError):
    """Input validation error. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class HashError(ValidationError):
    """
    The configured inputs cannot be turned into a stable hash.

    Raised for functions, sets, cyclic structures, NaN/infinity and any
    other value without a canonical JSON form.
    """

    def __init__(self, message: str, *, path: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.path:
            result["path"] = self.path
        return result


# =============================================================================
# CACHE STORE ERRORS
# =============================================================================


class CacheStoreError(MachineError):
    """
    Failure of a cache store operation.

    Store errors are recoverable by definition: the pipeline reports them
    as warnings and keeps going.
    """

    default_category = ErrorCategory.STORAGE
    default_retryable = True


class CacheLookupError(CacheStoreError):
    """``find()`` failed; the run falls back to executing the function."""


class CacheWriteError(CacheStoreError):
    """``create()`` failed; the result is still delivered."""


class GarbageCollectionError(CacheStoreError):
    """``count()`` or ``destroy()`` failed; the next miss retries."""


# =============================================================================
# DEPENDENCY ERRORS
# =============================================================================


class DependencyError(MachineError):
    """Dependency resolution failure."""

    default_category = ErrorCategory.DEPENDENCY
    default_retryable = False


class DependencyNotFoundError(DependencyError):
    """A declared dependency could not be imported or found in the registry."""

    def __init__(self, name: str, machine: str | None = None, *, cause: Exception | None = None):
        super().__init__(
            f"Cannot find module {name!r}, a dependency of machine {machine!r}",
            cause=cause,
        )
        self.name = name
        self.with_context(machine=machine, dependency=name)


class MachineNotFoundError(DependencyError):
    """No machine is registered under the requested name."""

    def __init__(self, name: str, available: list[str] | None = None):
        listing = ", ".join(available or []) or "none"
        super().__init__(f"Machine {name!r} not found. Available: {listing}")
        self.name = name


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(MachineError):
    """Failure while running the unit itself."""

    default_category = ErrorCategory.EXECUTION


class MachineTimeoutError(ExecutionError):
    """The unit did not reach an exit before its deadline."""

    default_retryable = True

    def __init__(self, timeout: float, machine: str | None = None):
        super().__init__(f"Machine {machine!r} did not exit within {timeout}s")
        self.timeout = timeout
        self.with_context(machine=machine)


class UndeclaredExitError(ExecutionError):
    """The unit traversed an exit its definition does not declare."""

    def __init__(self, exit_name: str, machine: str | None = None):
        super().__init__(f"Machine {machine!r} traversed undeclared exit {exit_name!r}")
        self.with_context(machine=machine, exit=exit_name)


def categorize_error(error: Exception) -> ErrorCategory:
    """Return the category of *error* (``UNKNOWN`` for foreign exceptions)."""
    if isinstance(error, MachineError):
        return error.category
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MachineError",
    "ConfigError",
    "InvalidConfigError",
    "MachineDefinitionError",
    "ValidationError",
    "HashError",
    "CacheStoreError",
    "CacheLookupError",
    "CacheWriteError",
    "GarbageCollectionError",
    "DependencyError",
    "DependencyNotFoundError",
    "MachineNotFoundError",
    "ExecutionError",
    "MachineTimeoutError",
    "UndeclaredExitError",
    "categorize_error",
]
