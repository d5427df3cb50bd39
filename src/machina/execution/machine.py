"""
Machine: a configurable, runnable unit of work.

A machine wraps one unit function together with the inputs it was
configured with, the handlers for its exits and the dependencies it
declared. Running it goes through the cache pipeline in
``machina.execution.runner``.

Manifesto:
    - **Configure, then run:** ``configure``/``set_inputs``/``set_exits``
      may be called any number of times before ``run``
    - **One outcome:** every run ends on exactly one exit
    - **Fatal only when unrunnable:** a definition without a function or
      with a missing dependency goes to ``on_error``; everything else is
      a warning at most

Architecture:
    ::

        MachineDefinition ──► Machine(definition)
                                 │  resolve_dependencies()
                                 │
              configure(inputs, exits, cache=...)   (chainable)
                                 │
                        await run(exits, cache=..., timeout=...)
                                 │
                                 ▼
                     runner.execute() ──► Outcome

Examples:
    >>> async def add(inputs, exits, deps):
    ...     return exits.success(inputs["a"] + inputs["b"])
    >>> machine = Machine(MachineDefinition(id="add", fn=add))
    >>> outcome = await machine.configure({"a": 1, "b": 2}).run()  # doctest: +SKIP
    >>> outcome  # doctest: +SKIP
    Success(3)

Tags:
    machine, unit-of-work, exits, execution, machina

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from machina.cache.config import CacheOptions, merge_options
from machina.cache.gc import GarbageCollector
from machina.core.errors import MachineDefinitionError, MachineError
from machina.core.exits import DEFAULT_EXITS, ExitHandler
from machina.core.logging import LogContext, get_logger
from machina.core.outcome import Failure, Outcome
from machina.core.settings import MachinaSettings
from machina.core.timestamps import Clock
from machina.execution.registry import get_machine_definition, resolve_dependencies
from machina.execution.runner import RunState, execute

logger = get_logger(__name__)

ErrorHandler = Callable[[Exception], Any]

_EXIT_DESCRIPTIONS = {
    "success": "Normal outcome.",
    "error": "Unexpected error occurred.",
}


def _normalize_exits(exits: Mapping[str, Any] | Iterable[str] | None) -> dict[str, Any]:
    if exits is None:
        declared: dict[str, Any] = {}
    elif isinstance(exits, Mapping):
        declared = dict(exits)
    else:
        declared = {name: None for name in exits}
    for name in DEFAULT_EXITS:
        declared.setdefault(name, _EXIT_DESCRIPTIONS[name])
    return declared


@dataclass
class MachineDefinition:
    """Static description of a unit.

    Attributes:
        id: Machine identifier (also part of every input hash)
        fn: Unit function ``fn(inputs, exits, deps)``, sync or async
        inputs: Input declarations, name -> description (not enforced)
        exits: Exit declarations, name -> description; ``success`` and
            ``error`` are always added
        dependencies: name -> registered machine name, import path, or an
            object to inject as is
        description: Human readable summary
        cache: Default cache options for every machine built from this
        on_warn: Default warning sink
        on_error: Default fatal error sink
    """

    id: str = "anonymous"
    fn: Callable[..., Any] | None = None
    inputs: dict[str, Any] = field(default_factory=dict)
    exits: dict[str, Any] = field(default_factory=dict)
    dependencies: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    cache: CacheOptions | None = None
    on_warn: ErrorHandler | None = None
    on_error: ErrorHandler | None = None

    def __post_init__(self) -> None:
        self.exits = _normalize_exits(self.exits)
        self.inputs = dict(self.inputs or {})
        self.dependencies = dict(self.dependencies or {})

    @property
    def exit_names(self) -> tuple[str, ...]:
        return tuple(self.exits)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MachineDefinition:
        """Build a definition from a plain mapping (unknown keys are ignored)."""
        cache = data.get("cache")
        if isinstance(cache, Mapping):
            cache = CacheOptions(**cache)
        return cls(
            id=data.get("id", "anonymous"),
            fn=data.get("fn"),
            inputs=data.get("inputs") or {},
            exits=data.get("exits") or {},
            dependencies=data.get("dependencies") or {},
            description=data.get("description", ""),
            cache=cache,
            on_warn=data.get("on_warn"),
            on_error=data.get("on_error"),
        )


def _noop(inputs: dict[str, Any], exits: Any, deps: Mapping[str, Any]) -> Outcome:
    return exits.success(None)


class Machine:
    """A unit instance: definition plus its configured inputs and exits."""

    def __init__(
        self,
        definition: MachineDefinition | Mapping[str, Any] | None = None,
        *,
        on_warn: ErrorHandler | None = None,
        on_error: ErrorHandler | None = None,
        settings: MachinaSettings | None = None,
        clock: Clock | None = None,
        collector: GarbageCollector | None = None,
    ):
        if definition is None:
            definition = MachineDefinition(id="noop", fn=_noop, description="Does nothing but exit successfully.")
        elif isinstance(definition, Mapping):
            definition = MachineDefinition.from_dict(definition)

        self.definition = definition
        self._on_warn = on_warn if on_warn is not None else definition.on_warn
        self._on_error = on_error if on_error is not None else definition.on_error
        self._settings = settings
        self._clock = clock
        self._collector = collector

        self._inputs: dict[str, Any] = {}
        self._exits: dict[str, ExitHandler] = {}
        self._cache: CacheOptions | None = None
        self.dependencies: dict[str, Any] = {}
        self.last_run: RunState | None = None

        if not callable(definition.fn):
            self.error(self._definition_error())
            return

        self.dependencies = resolve_dependencies(
            definition.dependencies, machine=definition.id, on_error=self.error
        )

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @classmethod
    def build(cls, definition: MachineDefinition | Mapping[str, Any] | None = None, **kwargs: Any) -> Machine:
        return cls(definition, **kwargs)

    @classmethod
    def noop(cls, **kwargs: Any) -> Machine:
        """A machine that traverses ``success`` with ``None``."""
        return cls(None, **kwargs)

    @classmethod
    def halt(cls, error: Exception | None = None, **kwargs: Any) -> Machine:
        """A machine that traverses ``error`` (with *error* if given)."""
        reason = error if error is not None else RuntimeError("Halted")

        def _halt(inputs: dict[str, Any], exits: Any, deps: Mapping[str, Any]) -> Outcome:
            return exits.error(reason)

        return cls(MachineDefinition(id="halt", fn=_halt, description="Always exits with an error."), **kwargs)

    @classmethod
    def load(cls, name: str, **kwargs: Any) -> Machine:
        """Instantiate the machine registered under *name*."""
        return cls(get_machine_definition(name), **kwargs)

    # ------------------------------------------------------------------
    # Configuration (chainable)
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def inputs(self) -> dict[str, Any]:
        return self._inputs

    @property
    def exits(self) -> dict[str, ExitHandler]:
        return self._exits

    @property
    def cache(self) -> CacheOptions | None:
        return self._cache

    def set_inputs(self, inputs: Mapping[str, Any]) -> Machine:
        """Merge a deep copy of *inputs* into the configured inputs."""
        self._inputs.update(copy.deepcopy(dict(inputs)))
        return self

    def set_exits(self, exits: Mapping[str, ExitHandler]) -> Machine:
        """Merge exit handlers (exit name -> callable)."""
        self._exits.update(exits)
        return self

    def set_cache(self, cache: CacheOptions | None) -> Machine:
        """Set this machine's cache options (layered over the definition's)."""
        self._cache = self._cache.merged_with(cache) if self._cache is not None else cache
        return self

    def configure(
        self,
        inputs: Mapping[str, Any] | None = None,
        exits: Mapping[str, ExitHandler] | None = None,
        *,
        cache: CacheOptions | None = None,
    ) -> Machine:
        if exits:
            self.set_exits(exits)
        if inputs:
            self.set_inputs(inputs)
        if cache is not None:
            self.set_cache(cache)
        return self

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        exits: Mapping[str, ExitHandler] | None = None,
        *,
        cache: CacheOptions | None = None,
        timeout: float | None = None,
    ) -> Outcome:
        """Run the unit once and return the outcome it exited with.

        The configured handler for that exit (if any) has been called by
        the time this returns. *cache* overrides the cache options for this
        run only.
        """
        if exits:
            self.set_exits(exits)

        if not callable(self.definition.fn):
            error = self._definition_error()
            self.error(error)
            return Failure(error)

        options = merge_options(self.definition.cache, self._cache, cache)

        async with LogContext(machine=self.id):
            state = await execute(
                self.definition.fn,
                self._inputs,
                self._exits,
                self.dependencies,
                machine=self.id,
                warn=self.warn,
                declared_exits=self.definition.exit_names,
                cache_options=options,
                settings=self._settings,
                clock=self._clock,
                timeout=timeout,
                collector=self._collector,
            )

        self.last_run = state
        return state.outcome

    # ------------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------------

    def warn(self, error: Exception) -> None:
        """Report a non-fatal problem (defaults to a structlog warning)."""
        if self._on_warn is not None:
            self._on_warn(error)
            return
        if isinstance(error, MachineError):
            logger.warning("machine.warning", machine=self.id, **error.to_dict())
        else:
            logger.warning("machine.warning", machine=self.id, error=str(error), error_type=type(error).__name__)

    def error(self, error: Exception) -> None:
        """Report a fatal problem (defaults to raising it)."""
        if self._on_error is not None:
            self._on_error(error)
            return
        raise error

    def _definition_error(self) -> MachineDefinitionError:
        return MachineDefinitionError(
            f"Machine {self.definition.id!r} has no callable fn; a definition needs id, inputs, exits and fn"
        ).with_context(machine=self.definition.id)

    def __repr__(self) -> str:
        return f"Machine(id={self.id!r}, inputs={sorted(self._inputs)}, exits={sorted(self._exits)})"


__all__ = ["ErrorHandler", "Machine", "MachineDefinition"]
