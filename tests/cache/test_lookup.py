"""
Tests for machina.cache.lookup.

Covers:
- Exactly one find() per enabled lookup
- Fallbacks: disabled, hash_failed, lookup_failed, miss
- Hit semantics (data defined, identity preserved)
"""

from datetime import timedelta

import pytest

from machina.cache.config import CacheOptions, normalize_cache_config
from machina.cache.lookup import derive_hash, lookup
from machina.cache.store import MISSING, CacheEntry
from machina.core.errors import CacheLookupError, HashError
from machina.core.hashing import hash_inputs
from tests._support.stores import FailingStore


def _config(store, settings, clock, **kwargs):
    return normalize_cache_config(CacheOptions(store=store, **kwargs), settings=settings, clock=clock)


class TestDeriveHash:
    def test_hashes(self, warn_sink):
        assert derive_hash({"a": 1}, machine="m", warn=warn_sink) == hash_inputs({"a": 1}, machine="m")
        assert warn_sink == []

    def test_failure_warns(self, warn_sink):
        assert derive_hash({"a": {1, 2}}, machine="m", warn=warn_sink) is None
        [warning] = warn_sink
        assert isinstance(warning, HashError)
        assert warning.context.machine == "m"


class TestLookup:
    @pytest.mark.asyncio
    async def test_disabled(self, warn_sink):
        result = await lookup(None, {"a": 1}, machine="m", warn=warn_sink)
        assert result.fallback == "disabled"
        assert result.hash is None
        assert not result.hit

    @pytest.mark.asyncio
    async def test_hash_failed_skips_store(self, recording_store, settings, clock, warn_sink):
        config = _config(recording_store, settings, clock)
        result = await lookup(config, {"fn": print}, machine="m", warn=warn_sink)
        assert result.fallback == "hash_failed"
        assert recording_store.calls == []
        assert len(warn_sink.of_type(HashError)) == 1

    @pytest.mark.asyncio
    async def test_miss_issues_one_find(self, recording_store, settings, clock, warn_sink):
        config = _config(recording_store, settings, clock)
        result = await lookup(config, {"a": 1}, machine="m", warn=warn_sink)
        assert result.fallback == "miss"
        assert result.hash == hash_inputs({"a": 1}, machine="m")
        assert recording_store.operations() == ["find"]
        [(_, query)] = recording_store.calls
        assert query == config.lookup_query(result.hash)
        assert warn_sink == []

    @pytest.mark.asyncio
    async def test_hit_returns_newest_fresh(self, recording_store, settings, clock, warn_sink):
        run_hash = hash_inputs({"a": 1}, machine="m")
        old, new = {"v": "old"}, {"v": "new"}
        await recording_store.create(run_hash, old)
        clock.advance(seconds=1)
        await recording_store.create(run_hash, new)
        clock.advance(seconds=1)

        result = await lookup(_config(recording_store, settings, clock), {"a": 1}, machine="m", warn=warn_sink)
        assert result.hit
        assert result.fallback is None
        assert result.entry.data is new

    @pytest.mark.asyncio
    async def test_stale_entry_is_a_miss(self, store, settings, clock, warn_sink):
        run_hash = hash_inputs({"a": 1}, machine="m")
        await store.create(run_hash, "stale")
        clock.advance(seconds=61)
        result = await lookup(_config(store, settings, clock, ttl=60), {"a": 1}, machine="m", warn=warn_sink)
        assert result.fallback == "miss"

    @pytest.mark.asyncio
    async def test_entry_at_exact_cutoff_is_stale(self, store, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        await store.create(run_hash, "edge")
        clock.advance(seconds=60)
        result = await lookup(_config(store, settings, clock, ttl=60), {}, machine="m", warn=warn_sink)
        assert not result.hit

    @pytest.mark.asyncio
    async def test_entry_just_after_cutoff_is_fresh(self, store, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        await store.create(run_hash, "edge")
        clock.advance(seconds=60)
        config = _config(store, settings, clock, ttl=timedelta(seconds=60) + timedelta(microseconds=1))
        result = await lookup(config, {}, machine="m", warn=warn_sink)
        assert result.hit

    @pytest.mark.asyncio
    async def test_entry_without_data_is_a_miss(self, store, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        await store.create(run_hash, MISSING)
        result = await lookup(_config(store, settings, clock), {}, machine="m", warn=warn_sink)
        assert result.fallback == "miss"

    @pytest.mark.asyncio
    async def test_cached_none_is_a_hit(self, store, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        await store.create(run_hash, None)
        result = await lookup(_config(store, settings, clock), {}, machine="m", warn=warn_sink)
        assert result.hit
        assert result.entry.data is None

    @pytest.mark.asyncio
    async def test_find_failure_warns(self, settings, clock, warn_sink):
        store = FailingStore({"find"}, clock=clock)
        result = await lookup(_config(store, settings, clock), {"a": 1}, machine="m", warn=warn_sink)
        assert result.fallback == "lookup_failed"
        assert result.hash is not None
        [warning] = warn_sink
        assert isinstance(warning, CacheLookupError)
        assert isinstance(warning.cause, ConnectionError)
        assert warning.context.operation == "find"


class StaticStore:
    """Store whose find() ignores the query and returns fixed records."""

    def __init__(self, records):
        self.records = records

    async def find(self, query):
        return self.records

    async def create(self, hash, data):
        raise AssertionError("not expected")


class TestUntrustedStore:
    @pytest.mark.asyncio
    async def test_foreign_record_is_a_miss(self, settings, clock, warn_sink):
        store = StaticStore([{"data": "x"}])
        result = await lookup(_config(store, settings, clock), {}, machine="m", warn=warn_sink)
        assert result.fallback == "miss"
        assert warn_sink == []

    @pytest.mark.asyncio
    async def test_stale_record_is_a_miss(self, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        old = CacheEntry(hash=run_hash, data="old", created_at=clock() - timedelta(days=1))
        result = await lookup(_config(StaticStore([old]), settings, clock), {}, machine="m", warn=warn_sink)
        assert result.fallback == "miss"

    @pytest.mark.asyncio
    async def test_unusable_created_at_is_a_lookup_failure(self, settings, clock, warn_sink):
        run_hash = hash_inputs({}, machine="m")
        broken = CacheEntry(hash=run_hash, data="x", created_at=None)  # type: ignore[arg-type]
        result = await lookup(_config(StaticStore([broken]), settings, clock), {}, machine="m", warn=warn_sink)
        assert result.fallback == "lookup_failed"
        assert len(warn_sink.of_type(CacheLookupError)) == 1
