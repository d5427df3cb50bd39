"""
Cache store contract and the in-memory implementation.

The pipeline never owns the store. It only issues four asynchronous
operations against whatever object the caller hands it, and it assumes
the store may be shared with other machine types and other processes.
Entries are partitioned solely by ``hash``.

Architecture:
    ::

        CacheStore (Protocol)
        ├── InMemoryCacheStore    single process, keeps data objects as-is
        └── SQLAlchemyCacheStore  any SQLAlchemy database (machina.cache.sql)

        API: await find(query)        → Sequence[CacheEntry]
             await create(hash, data) → CacheEntry
             await count(query)       → int
             await destroy(query)     → int (rows deleted)

    CacheQuery carries every filter the pipeline needs::

        lookup:  CacheQuery(hash, created_after=cutoff, limit=1)
        gc:      CacheQuery(hash, created_at_or_before=cutoff, skip=buffer)

Guardrails:
    ❌ DON'T: Mutate a CacheEntry after creation
    ✅ DO: Create a new entry; the newest fresh one wins

    ❌ DON'T: Rely on the store being the only writer for a hash
    ✅ DO: Tolerate several entries per hash

Tags:
    cache, store, protocol, in-memory, machina

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from machina.core.timestamps import Clock, generate_ulid, utc_now


class _Missing:
    """Marker for an entry whose ``data`` was never set."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A persisted result.

    Attributes:
        hash: Input hash the entry was created for
        data: The value that traversed the cacheable exit (``None`` is a
            valid cached value; ``MISSING`` means no data)
        created_at: Timezone-aware UTC creation time
        id: Store-assigned identifier
    """

    hash: str
    data: Any
    created_at: datetime
    id: str | None = None

    @property
    def has_data(self) -> bool:
        return self.data is not MISSING


@dataclass(frozen=True, slots=True)
class CacheQuery:
    """Criteria for find/count/destroy.

    Attributes:
        hash: Equality filter on the entry hash
        created_after: Keep entries with ``created_at > created_after``
        created_at_or_before: Keep entries with ``created_at <= created_at_or_before``
        newest_first: Sort by ``created_at`` descending (ascending if False)
        limit: Maximum number of entries to return or delete
        skip: Number of leading entries (in sort order) to leave untouched
    """

    hash: str
    created_after: datetime | None = None
    created_at_or_before: datetime | None = None
    newest_first: bool = True
    limit: int | None = None
    skip: int = 0

    def matches(self, entry: CacheEntry) -> bool:
        if entry.hash != self.hash:
            return False
        if self.created_after is not None and not entry.created_at > self.created_after:
            return False
        if self.created_at_or_before is not None and not entry.created_at <= self.created_at_or_before:
            return False
        return True


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache stores.

    All operations are coroutines and may fail independently; the pipeline
    downgrades every failure to a warning.
    """

    async def find(self, query: CacheQuery) -> Sequence[CacheEntry]:
        """Return entries matching *query*, sorted and windowed."""
        ...

    async def create(self, hash: str, data: Any) -> CacheEntry:
        """Persist a new entry stamped with the store's current time."""
        ...

    async def count(self, query: CacheQuery) -> int:
        """Count entries matching the filters of *query* (sort/skip ignored)."""
        ...

    async def destroy(self, query: CacheQuery) -> int:
        """Delete matching entries after skipping ``query.skip`` of them."""
        ...


def is_store_eligible(store: Any) -> bool:
    """Return True if *store* can back a cache (callable ``find`` and ``create``)."""
    if store is None:
        return False
    return callable(getattr(store, "find", None)) and callable(getattr(store, "create", None))


def supports_gc(store: Any) -> bool:
    """Return True if *store* also exposes callable ``count`` and ``destroy``."""
    return callable(getattr(store, "count", None)) and callable(getattr(store, "destroy", None))


# ------------------------------------------------------------------ #
# In-Memory Store
# ------------------------------------------------------------------ #


class InMemoryCacheStore:
    """Process-local cache store.

    Data objects are stored by reference, so a cache hit hands back the
    exact object that was written. Entries with equal ``created_at`` keep
    their insertion order.

    Example:
        store = InMemoryCacheStore()
        machine = Machine(definition).configure(inputs, cache=CacheOptions(store=store))
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._entries: dict[str, list[tuple[int, CacheEntry]]] = {}
        self._sequence = itertools.count()
        self._clock = clock or utc_now

    def _select(self, query: CacheQuery) -> list[CacheEntry]:
        rows = [row for row in self._entries.get(query.hash, []) if query.matches(row[1])]
        rows.sort(key=lambda row: (row[1].created_at, row[0]), reverse=query.newest_first)
        selected = [entry for _, entry in rows[query.skip :]]
        if query.limit is not None:
            selected = selected[: query.limit]
        return selected

    async def find(self, query: CacheQuery) -> list[CacheEntry]:
        return self._select(query)

    async def create(self, hash: str, data: Any, *, created_at: datetime | None = None) -> CacheEntry:
        entry = CacheEntry(
            hash=hash,
            data=data,
            created_at=created_at or self._clock(),
            id=generate_ulid(),
        )
        self._entries.setdefault(hash, []).append((next(self._sequence), entry))
        return entry

    async def count(self, query: CacheQuery) -> int:
        return sum(1 for _, entry in self._entries.get(query.hash, []) if query.matches(entry))

    async def destroy(self, query: CacheQuery) -> int:
        doomed = {id(entry) for entry in self._select(query)}
        if not doomed:
            return 0
        rows = self._entries.get(query.hash, [])
        self._entries[query.hash] = [row for row in rows if id(row[1]) not in doomed]
        if not self._entries[query.hash]:
            del self._entries[query.hash]
        return len(doomed)

    # ── Inspection helpers ─────────────────────────────────────────

    def entries(self, hash: str) -> list[CacheEntry]:
        """All entries for *hash*, newest first."""
        return self._select(CacheQuery(hash=hash))

    def hashes(self) -> list[str]:
        return sorted(self._entries)

    def size(self) -> int:
        """Total number of entries across all hashes."""
        return sum(len(rows) for rows in self._entries.values())

    def clear(self) -> None:
        self._entries.clear()


__all__ = [
    "MISSING",
    "CacheEntry",
    "CacheQuery",
    "CacheStore",
    "InMemoryCacheStore",
    "is_store_eligible",
    "supports_gc",
]
