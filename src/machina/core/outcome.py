"""
Outcome envelope: which exit a machine took, and with what value.

A machine run ends by traversing exactly one exit. Instead of handing the
unit a bag of callbacks, the run produces an ``Outcome`` value that names
the exit and carries its payload. Callers consume it with ``match``:

    >>> outcome = Success(42)
    >>> match outcome:
    ...     case Success(value):
    ...         print(f"ok: {value}")
    ...     case Failure(error):
    ...         print(f"failed: {error}")
    ...     case Exit(name, value):
    ...         print(f"{name}: {value}")
    ok: 42

Manifesto:
    - **Explicit exits:** The exit name travels with the value
    - **Exhaustive handling:** Three variants, one ``match``
    - **Immutability:** Frozen dataclasses, the payload is never copied

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       Outcome                                │
        ├────────────────┬──────────────────┬─────────────────────────┤
        │  Success       │  Failure         │  Exit                   │
        │  exit="success"│  exit="error"    │  exit=<custom name>     │
        │  value: T      │  error: Exception│  value: T               │
        └────────────────┴──────────────────┴─────────────────────────┘

Tags:
    outcome, exits, tagged-union, pattern-matching, machina

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")

SUCCESS_EXIT = "success"
ERROR_EXIT = "error"


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """
    The unit traversed its ``success`` exit.

    Examples:
        >>> Success(10).map(lambda x: x * 2).unwrap()
        20
        >>> Success("x").exit
        'success'
    """

    value: T

    @property
    def exit(self) -> str:
        return SUCCESS_EXIT

    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Get the value. Safe for Success."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Success[U]:
        """Transform the value."""
        return Success(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"exit": SUCCESS_EXIT, "value": self.value}

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True, slots=True)
class Failure:
    """
    The unit traversed its ``error`` exit.

    Raised exceptions inside the unit end up here too, so ``error`` is
    always an exception instance.

    Examples:
        >>> Failure(ValueError("bad")).unwrap_or(0)
        0
    """

    error: Exception

    @property
    def exit(self) -> str:
        return ERROR_EXIT

    @property
    def value(self) -> Exception:
        return self.error

    def is_success(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Raise the carried error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[Any], Any]) -> Failure:
        """No-op for Failure."""
        return self

    def to_dict(self) -> dict[str, Any]:
        error = self.error
        if hasattr(error, "to_dict"):
            return {"exit": ERROR_EXIT, "error": error.to_dict()}
        return {
            "exit": ERROR_EXIT,
            "error": {"error_type": type(error).__name__, "message": str(error)},
        }

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"


@dataclass(frozen=True, slots=True)
class Exit(Generic[T]):
    """
    The unit traversed a custom exit such as ``not_found``.

    Examples:
        >>> Exit("not_found", {"id": 7}).exit
        'not_found'
    """

    name: str
    value: T = None

    @property
    def exit(self) -> str:
        return self.name

    def is_success(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Exit[U]:
        return Exit(self.name, f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"exit": self.name, "value": self.value}

    def __repr__(self) -> str:
        return f"Exit({self.name!r}, {self.value!r})"


Outcome = Union[Success[Any], Failure, Exit[Any]]


def is_outcome(value: Any) -> bool:
    """Return True if *value* is one of the three outcome variants."""
    return isinstance(value, (Success, Failure, Exit))


def outcome_for(exit_name: str, value: Any = None) -> Outcome:
    """Build the outcome variant matching *exit_name*.

    ``success`` and ``error`` map onto their dedicated variants; any other
    name becomes an ``Exit``. A non-exception value on the ``error`` exit
    is wrapped in ``RuntimeError`` so ``Failure.error`` stays raisable.
    """
    if exit_name == SUCCESS_EXIT:
        return Success(value)
    if exit_name == ERROR_EXIT:
        if not isinstance(value, Exception):
            value = RuntimeError(value if value is not None else "Machine traversed its error exit")
        return Failure(value)
    return Exit(exit_name, value)


__all__ = [
    "SUCCESS_EXIT",
    "ERROR_EXIT",
    "Success",
    "Failure",
    "Exit",
    "Outcome",
    "is_outcome",
    "outcome_for",
]
