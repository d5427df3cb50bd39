"""Cache lookup: derive the run's hash and ask the store for a fresh entry.

Lookup never blocks a run. A hashing failure or a failing ``find()``
becomes a warning and the run falls back to executing the function.
Cache infrastructure trading consistency for availability is the point:
an unreachable store costs latency, never a result.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from machina.cache.config import CacheConfig
from machina.cache.store import CacheEntry
from machina.core.errors import CacheLookupError, HashError
from machina.core.hashing import hash_inputs
from machina.core.logging import get_logger
from machina.core.timestamps import ensure_utc

logger = get_logger(__name__)

WarnHandler = Callable[[Exception], Any]

Fallback = Literal["disabled", "hash_failed", "lookup_failed", "miss"]


@dataclass(frozen=True)
class LookupResult:
    """What the lookup decided.

    ``entry`` is set on a hit. Otherwise ``fallback`` says why the function
    has to run: caching ``disabled``, ``hash_failed``, ``lookup_failed``
    or a plain ``miss``. ``hash`` is set whenever one was derived.
    """

    hash: str | None
    entry: CacheEntry | None = None
    fallback: Fallback | None = None

    @property
    def hit(self) -> bool:
        return self.entry is not None


def derive_hash(inputs: Mapping[str, Any], *, machine: str | None, warn: WarnHandler) -> str | None:
    """Hash *inputs*, or warn and return ``None`` if they cannot be hashed."""
    try:
        return hash_inputs(inputs, machine=machine)
    except HashError as exc:
        warn(exc.with_context(machine=machine))
        return None


def _is_hit(config: CacheConfig, entry: Any) -> bool:
    if not isinstance(entry, CacheEntry) or not entry.has_data:
        return False
    # A store may ignore created_after
    return config.is_fresh(ensure_utc(entry.created_at))


async def lookup(
    config: CacheConfig | None,
    inputs: Mapping[str, Any],
    *,
    machine: str | None,
    warn: WarnHandler,
) -> LookupResult:
    """Look for the newest fresh entry for this run's inputs.

    Issues exactly one ``find()`` when caching is enabled and the inputs
    hash. The newest entry counts as a hit only if it is a fresh
    ``CacheEntry`` with defined ``data``; anything else the store returns
    is a miss.
    """
    if config is None:
        return LookupResult(hash=None, fallback="disabled")

    run_hash = derive_hash(inputs, machine=machine, warn=warn)
    if run_hash is None:
        return LookupResult(hash=None, fallback="hash_failed")

    try:
        found = await config.store.find(config.lookup_query(run_hash))
        newest = next(iter(found or ()), None)
        hit = _is_hit(config, newest)
    except Exception as exc:
        warn(
            CacheLookupError(f"Cache lookup failed: {exc}", cause=exc).with_context(
                machine=machine, hash=run_hash, operation="find"
            )
        )
        return LookupResult(hash=run_hash, fallback="lookup_failed")

    if hit:
        logger.debug("machine.cache.hit", machine=machine, hash=run_hash, created_at=str(newest.created_at))
        return LookupResult(hash=run_hash, entry=newest)

    logger.debug("machine.cache.miss", machine=machine, hash=run_hash)
    return LookupResult(hash=run_hash, fallback="miss")


__all__ = ["Fallback", "LookupResult", "WarnHandler", "derive_hash", "lookup"]
