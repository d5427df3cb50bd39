"""Exit interception: persist the cacheable exit's value before delivering it.

``intercept_exits`` returns a new handler mapping. Every exit other than
the cacheable one passes through untouched. The cacheable exit is wrapped
so that traversing it first awaits ``store.create(hash, value)`` and then
forwards the value to the caller's original handler. A failing write is a
warning; the caller still gets the value.
"""

from __future__ import annotations

from typing import Any

from machina.cache.config import CacheConfig
from machina.cache.lookup import WarnHandler
from machina.core.errors import CacheWriteError
from machina.core.logging import get_logger
from machina.core.exits import ExitHandler, ExitHandlers, call_exit_handler

logger = get_logger(__name__)


def intercept_exits(
    handlers: ExitHandlers,
    config: CacheConfig | None,
    run_hash: str | None,
    *,
    machine: str | None,
    warn: WarnHandler,
) -> dict[str, ExitHandler]:
    """Wrap the cacheable exit of *handlers* with a cache write.

    Without a config or a hash there is nothing to key the entry by, so the
    handlers come back unchanged.
    """
    intercepted: dict[str, ExitHandler] = dict(handlers)
    if config is None or run_hash is None:
        return intercepted

    original = handlers.get(config.exit)

    async def _cache_then_forward(value: Any) -> Any:
        try:
            entry = await config.store.create(run_hash, value)
        except Exception as exc:
            warn(
                CacheWriteError(f"Cache write failed: {exc}", cause=exc).with_context(
                    machine=machine, hash=run_hash, exit=config.exit, operation="create"
                )
            )
        else:
            logger.debug(
                "machine.cache.written",
                machine=machine,
                hash=run_hash,
                entry_id=getattr(entry, "id", None),
            )
        return await call_exit_handler(original, value)

    intercepted[config.exit] = _cache_then_forward
    return intercepted


__all__ = ["intercept_exits"]
