"""machina.cache -- memoization of machine exits.

Architecture::

    store.py        CacheStore protocol, CacheEntry, CacheQuery, InMemoryCacheStore
    sql.py          SQLAlchemyCacheStore (+ engine factory, maintenance helpers)
    config.py       CacheOptions -> CacheConfig normalization (TTL, cutoff)
    lookup.py       Hash derivation + single fresh-entry query
    interceptor.py  Cache write on the cacheable exit, before delivery
    gc.py           Background eviction of stale entries

``machina.cache.sql`` imports SQLAlchemy and is not re-exported here.
"""

from machina.cache.config import CacheConfig, CacheOptions, merge_options, normalize_cache_config
from machina.cache.gc import GarbageCollector, collect_garbage, default_collector
from machina.cache.interceptor import intercept_exits
from machina.cache.lookup import LookupResult, derive_hash, lookup
from machina.cache.store import (
    MISSING,
    CacheEntry,
    CacheQuery,
    CacheStore,
    InMemoryCacheStore,
    is_store_eligible,
    supports_gc,
)

__all__ = [
    "CacheConfig",
    "CacheOptions",
    "merge_options",
    "normalize_cache_config",
    "GarbageCollector",
    "collect_garbage",
    "default_collector",
    "intercept_exits",
    "LookupResult",
    "derive_hash",
    "lookup",
    "MISSING",
    "CacheEntry",
    "CacheQuery",
    "CacheStore",
    "InMemoryCacheStore",
    "is_store_eligible",
    "supports_gc",
]
