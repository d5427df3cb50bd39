"""
Cache options and the per-run cache configuration.

Callers describe caching with ``CacheOptions``: every field optional, set
on the definition, on the machine, or per run. Right before a run starts,
the options are merged and normalized into a ``CacheConfig``: an
immutable value with every default applied and the freshness cutoff
computed once. All asynchronous cache work of that run (lookup, write,
garbage collection) reads the same cutoff.

Architecture:
    ::

        CacheOptions (run)  ─┐
        CacheOptions (machine)├─ merge_options() ─► normalize_cache_config()
        CacheOptions (definition)┘                      │
        MachinaSettings defaults ───────────────────────┤
                                                        ▼
                                  CacheConfig | None (caching disabled)
                                  ├── store
                                  ├── ttl                  (default 3h)
                                  ├── max_old_entries_buffer (default 0)
                                  ├── exit                 (default "success")
                                  └── expiration_cutoff = now - ttl

Examples:
    >>> from machina.cache.store import InMemoryCacheStore
    >>> config = normalize_cache_config(CacheOptions(store=InMemoryCacheStore(), ttl=60))
    >>> config.ttl
    datetime.timedelta(seconds=60)
    >>> normalize_cache_config(CacheOptions(store=object())) is None
    True

Tags:
    cache, configuration, ttl, freshness, machina
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timedelta
from typing import Any

from machina.cache.store import CacheQuery, is_store_eligible
from machina.core.errors import InvalidConfigError
from machina.core.settings import MachinaSettings, get_settings
from machina.core.timestamps import Clock, utc_now


def _coerce_ttl(value: timedelta | float | int) -> timedelta:
    if isinstance(value, bool):
        raise InvalidConfigError("ttl", value, "ttl must be a timedelta or a number of seconds")
    if isinstance(value, timedelta):
        ttl = value
    elif isinstance(value, (int, float)):
        ttl = timedelta(seconds=value)
    else:
        raise InvalidConfigError("ttl", value, "ttl must be a timedelta or a number of seconds")
    if ttl < timedelta(0):
        raise InvalidConfigError("ttl", value, "ttl must not be negative")
    return ttl


@dataclass(frozen=True)
class CacheOptions:
    """Caller-supplied cache settings. ``None`` means "not set here".

    Attributes:
        store: Object implementing the ``CacheStore`` contract
        ttl: Maximum age of a usable entry (``timedelta`` or seconds)
        max_old_entries_buffer: Stale entries kept per hash by the GC
        exit: Name of the exit whose value is memoized
    """

    store: Any = None
    ttl: timedelta | float | None = None
    max_old_entries_buffer: int | None = None
    exit: str | None = None

    def __post_init__(self) -> None:
        if self.ttl is not None:
            object.__setattr__(self, "ttl", _coerce_ttl(self.ttl))
        if self.max_old_entries_buffer is not None:
            buffer = self.max_old_entries_buffer
            if isinstance(buffer, bool) or not isinstance(buffer, int) or buffer < 0:
                raise InvalidConfigError(
                    "max_old_entries_buffer", buffer, "max_old_entries_buffer must be an integer >= 0"
                )
        if self.exit is not None and (not isinstance(self.exit, str) or not self.exit):
            raise InvalidConfigError("exit", self.exit, "exit must be a non-empty exit name")

    def merged_with(self, override: CacheOptions | None) -> CacheOptions:
        """Return a copy where every field set on *override* wins."""
        if override is None:
            return self
        values = {}
        for f in fields(self):
            mine, theirs = getattr(self, f.name), getattr(override, f.name)
            values[f.name] = theirs if theirs is not None else mine
        return CacheOptions(**values)


def merge_options(*layers: CacheOptions | None) -> CacheOptions:
    """Merge option layers, later layers taking precedence."""
    merged = CacheOptions()
    for layer in layers:
        merged = merged.merged_with(layer)
    return merged


@dataclass(frozen=True)
class CacheConfig:
    """Normalized cache configuration for exactly one run."""

    store: Any
    ttl: timedelta
    max_old_entries_buffer: int
    exit: str
    expiration_cutoff: datetime

    def is_fresh(self, created_at: datetime) -> bool:
        """An entry is fresh when created strictly after the cutoff."""
        return created_at > self.expiration_cutoff

    def lookup_query(self, hash: str) -> CacheQuery:
        """Newest fresh entry for *hash*."""
        return CacheQuery(hash=hash, created_after=self.expiration_cutoff, newest_first=True, limit=1)

    def stale_query(self, hash: str, *, skip: int = 0) -> CacheQuery:
        """Stale entries for *hash*, newest first, after *skip* of them."""
        return CacheQuery(
            hash=hash,
            created_at_or_before=self.expiration_cutoff,
            newest_first=True,
            skip=skip,
        )


def normalize_cache_config(
    options: CacheOptions | None,
    *,
    settings: MachinaSettings | None = None,
    clock: Clock | None = None,
) -> CacheConfig | None:
    """Turn merged options into a ``CacheConfig``, or ``None`` if caching is off.

    Caching is eligible only when ``options.store`` exposes callable
    ``find`` and ``create``; anything else disables caching silently.
    Defaults from *settings* fill the fields the caller left unset.
    """
    if options is None or not is_store_eligible(options.store):
        return None

    settings = settings or get_settings()
    now = (clock or utc_now)()

    ttl = options.ttl if options.ttl is not None else settings.cache_ttl
    buffer = (
        options.max_old_entries_buffer
        if options.max_old_entries_buffer is not None
        else settings.cache_max_old_entries_buffer
    )
    exit_name = options.exit if options.exit is not None else settings.cache_exit

    return CacheConfig(
        store=options.store,
        ttl=ttl,
        max_old_entries_buffer=buffer,
        exit=exit_name,
        expiration_cutoff=now - ttl,
    )


__all__ = ["CacheOptions", "CacheConfig", "merge_options", "normalize_cache_config"]
