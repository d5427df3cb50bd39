"""Exit sets and exit handlers.

A unit's function receives an ``ExitSet`` and ends by returning one of
its outcomes::

    async def fn(inputs, exits, deps):
        user = await deps["db"].get(inputs["id"])
        if user is None:
            return exits.not_found(inputs["id"])
        return exits.success(user)

Callers may additionally configure *exit handlers*: plain or async
callables keyed by exit name that receive the value when that exit is
traversed. Handlers are optional; the run also returns the ``Outcome``.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Union

from machina.core.outcome import ERROR_EXIT, SUCCESS_EXIT, Exit, Failure, Outcome, Success, outcome_for

ExitHandler = Callable[[Any], Union[Any, Awaitable[Any]]]
ExitHandlers = Mapping[str, ExitHandler]

DEFAULT_EXITS = (SUCCESS_EXIT, ERROR_EXIT)


class ExitSet:
    """Outcome builders for the exits a machine declares.

    ``exits.success(v)`` and ``exits.error(e)`` always exist. Declared
    custom exits are reachable as attributes (``exits.not_found(v)``) or by
    name (``exits.exit("not_found", v)`` / ``exits("not_found", v)``).
    """

    def __init__(self, names: Iterable[str] = DEFAULT_EXITS) -> None:
        declared = list(names)
        for name in DEFAULT_EXITS:
            if name not in declared:
                declared.append(name)
        self._names = tuple(declared)

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def success(self, value: Any = None) -> Success[Any]:
        return Success(value)

    def error(self, error: Any = None) -> Failure:
        return outcome_for(ERROR_EXIT, error)  # type: ignore[return-value]

    def exit(self, name: str, value: Any = None) -> Outcome:
        return outcome_for(name, value)

    __call__ = exit

    def __getattr__(self, name: str) -> Callable[[Any], Outcome]:
        # Only reached for names that are not regular attributes
        if name.startswith("_") or name not in self._names:
            raise AttributeError(f"Machine declares no exit named {name!r}")
        return lambda value=None: Exit(name, value)

    def __repr__(self) -> str:
        return f"ExitSet({', '.join(self._names)})"


async def call_exit_handler(handler: ExitHandler | None, value: Any) -> Any:
    """Call *handler* with *value*, awaiting it if it is async."""
    if handler is None:
        return None
    result = handler(value)
    if inspect.isawaitable(result):
        result = await result
    return result


async def dispatch(outcome: Outcome, handlers: ExitHandlers) -> Any:
    """Deliver *outcome* to the handler configured for its exit."""
    return await call_exit_handler(handlers.get(outcome.exit), outcome.value)


def coerce_outcome(returned: Any) -> Outcome:
    """A bare return value from a unit function is a success."""
    if isinstance(returned, (Success, Failure, Exit)):
        return returned
    return Success(returned)


__all__ = [
    "DEFAULT_EXITS",
    "ExitHandler",
    "ExitHandlers",
    "ExitSet",
    "call_exit_handler",
    "coerce_outcome",
    "dispatch",
]
