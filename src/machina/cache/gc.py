"""Background eviction of stale cache entries.

After a cache miss with a valid hash, the run schedules
``collect_garbage`` as a fire-and-forget ``asyncio.Task`` and goes on to
execute the function. The run never awaits it.

Algorithm (one hash, one cutoff)::

    n = count(hash, created_at <= cutoff)
    if n > buffer:
        destroy(hash, created_at <= cutoff, newest first, skip=buffer)

The ``buffer`` newest stale entries survive, so a hash whose entries
expire slowly does not pay for a delete on every miss. Failures are
warnings and are not retried: the next miss for the hash tries again.

``GarbageCollector`` keeps a strong reference to every task it starts
until the task finishes, and ``drain()`` waits for all of them (tests,
graceful shutdown).
"""

from __future__ import annotations

import asyncio
from typing import Any

from machina.cache.config import CacheConfig
from machina.cache.lookup import WarnHandler
from machina.cache.store import supports_gc
from machina.core.errors import GarbageCollectionError
from machina.core.logging import get_logger

logger = get_logger(__name__)


async def collect_garbage(
    config: CacheConfig,
    run_hash: str,
    *,
    machine: str | None = None,
    warn: WarnHandler,
) -> int:
    """Delete stale entries for *run_hash* beyond the retention buffer.

    Returns:
        Number of entries deleted (0 when nothing was due or on failure).
    """
    store = config.store
    if not supports_gc(store):
        logger.debug("machine.gc.unsupported", machine=machine, store=type(store).__name__)
        return 0

    buffer = config.max_old_entries_buffer

    try:
        stale = await store.count(config.stale_query(run_hash))
    except Exception as exc:
        warn(
            GarbageCollectionError(f"Counting stale cache entries failed: {exc}", cause=exc).with_context(
                machine=machine, hash=run_hash, operation="count"
            )
        )
        return 0

    if stale <= buffer:
        return 0

    try:
        deleted = await store.destroy(config.stale_query(run_hash, skip=buffer))
    except Exception as exc:
        warn(
            GarbageCollectionError(f"Deleting stale cache entries failed: {exc}", cause=exc).with_context(
                machine=machine, hash=run_hash, operation="destroy"
            )
        )
        return 0

    deleted = deleted if isinstance(deleted, int) else stale - buffer
    logger.info("machine.gc.deleted", machine=machine, hash=run_hash, deleted=deleted, kept=buffer)
    return deleted


class GarbageCollector:
    """Launches and tracks background ``collect_garbage`` tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def schedule(
        self,
        config: CacheConfig,
        run_hash: str,
        *,
        machine: str | None = None,
        warn: WarnHandler,
    ) -> asyncio.Task[int]:
        """Start collection in the background and return the task."""
        task = asyncio.create_task(
            collect_garbage(config, run_hash, machine=machine, warn=warn),
            name=f"machina-gc-{run_hash[:12]}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Wait until every scheduled collection has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


default_collector = GarbageCollector()


__all__ = ["GarbageCollector", "collect_garbage", "default_collector"]
