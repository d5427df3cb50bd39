"""Execution core: one machine run, cache-aware.

WHY
───
The run is where every cache guarantee meets the unit's function. The
ordering is fixed: the lookup finishes before the function may start, and
the cache write finishes before the caller's handler sees the value.
Everything cache-related that fails along the way is a warning.

ARCHITECTURE
────────────
::

    execute(fn, inputs, handlers, deps, cache_options=...)
      │
      ├── normalize_cache_config()      once, before any await
      ├── await lookup()                hash + one find()
      │     ├── hit  ──► dispatch(<cacheable exit>, entry.data) ──► done
      │     └── miss / disabled / hash or find failure
      │
      ├── collector.schedule()          background GC (miss or failed find)
      ├── intercept_exits()             wrap the cacheable exit
      ├── await invoke(fn, ...)         Outcome (timeout optional)
      └── await dispatch(outcome, intercepted)

There is no coalescing: two concurrent misses for the same hash both run
the function and both write an entry. The store tolerates several
entries per hash and lookup always takes the newest.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from machina.cache.config import CacheOptions, normalize_cache_config
from machina.cache.gc import GarbageCollector, default_collector
from machina.cache.interceptor import intercept_exits
from machina.cache.lookup import Fallback, WarnHandler, lookup
from machina.core.errors import MachineTimeoutError, UndeclaredExitError
from machina.core.exits import DEFAULT_EXITS, ExitHandlers, ExitSet, coerce_outcome, dispatch
from machina.core.logging import get_logger
from machina.core.outcome import Failure, Outcome, outcome_for
from machina.core.settings import MachinaSettings
from machina.core.timestamps import Clock

logger = get_logger(__name__)

UnitFunction = Callable[[dict[str, Any], ExitSet, Mapping[str, Any]], Any]


@dataclass
class RunState:
    """What happened during one run.

    Attributes:
        machine: Id of the machine that ran
        hash: Input hash (``None`` if caching was off or hashing failed)
        cached: True if the outcome came from the cache
        fallback: Why the function ran (``None`` on a hit)
        outcome: The delivered outcome
        gc_task: Background garbage collection started by this run, if any
    """

    machine: str
    hash: str | None = None
    cached: bool = False
    fallback: Fallback | None = None
    outcome: Outcome | None = None
    gc_task: asyncio.Task[int] | None = None


async def invoke(
    fn: UnitFunction,
    inputs: dict[str, Any],
    exits: ExitSet,
    dependencies: Mapping[str, Any],
    *,
    machine: str,
    timeout: float | None = None,
) -> Outcome:
    """Run the unit's function and turn whatever it does into an ``Outcome``.

    Returned outcomes pass through, bare values become ``Success`` and
    raised exceptions become ``Failure``. With *timeout* the call is
    bounded by ``asyncio.timeout``; a synchronous function cannot be
    interrupted, so the bound only applies while it awaits.
    """

    async def _call() -> Any:
        returned = fn(inputs, exits, dependencies)
        if inspect.isawaitable(returned):
            returned = await returned
        return returned

    if timeout is None:
        try:
            return coerce_outcome(await _call())
        except Exception as exc:
            return Failure(exc)

    try:
        async with asyncio.timeout(timeout) as deadline:
            returned = await _call()
    except TimeoutError as exc:
        if deadline.expired():
            return Failure(MachineTimeoutError(timeout, machine=machine))
        return Failure(exc)
    except Exception as exc:
        return Failure(exc)
    return coerce_outcome(returned)


async def execute(
    fn: UnitFunction,
    inputs: dict[str, Any],
    handlers: ExitHandlers,
    dependencies: Mapping[str, Any],
    *,
    machine: str,
    warn: WarnHandler,
    declared_exits: Iterable[str] = DEFAULT_EXITS,
    cache_options: CacheOptions | None = None,
    settings: MachinaSettings | None = None,
    clock: Clock | None = None,
    timeout: float | None = None,
    collector: GarbageCollector | None = None,
) -> RunState:
    """Run *fn* once through the cache pipeline and deliver its outcome."""
    started = time.perf_counter()
    config = normalize_cache_config(cache_options, settings=settings, clock=clock)
    state = RunState(machine=machine)

    found = await lookup(config, inputs, machine=machine, warn=warn)
    state.hash = found.hash

    if found.hit:
        state.cached = True
        state.outcome = outcome_for(config.exit, found.entry.data)
        await dispatch(state.outcome, handlers)
        logger.info(
            "machine.run.completed",
            machine=machine,
            exit=state.outcome.exit,
            cached=True,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return state

    state.fallback = found.fallback
    if config is not None and found.fallback in ("miss", "lookup_failed"):
        state.gc_task = (collector or default_collector).schedule(
            config, found.hash, machine=machine, warn=warn
        )

    intercepted = intercept_exits(handlers, config, found.hash, machine=machine, warn=warn)
    exit_set = ExitSet(declared_exits)
    outcome = await invoke(fn, inputs, exit_set, dependencies, machine=machine, timeout=timeout)

    if outcome.exit not in exit_set:
        warn(UndeclaredExitError(outcome.exit, machine=machine))

    state.outcome = outcome
    await dispatch(outcome, intercepted)

    logger.info(
        "machine.run.completed",
        machine=machine,
        exit=outcome.exit,
        cached=False,
        fallback=state.fallback,
        duration_ms=round((time.perf_counter() - started) * 1000, 3),
    )
    return state


__all__ = ["RunState", "UnitFunction", "execute", "invoke"]
