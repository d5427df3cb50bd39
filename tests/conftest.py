"""
Shared pytest fixtures and configuration for machina tests.

This module provides:
- Registry cleanup fixtures for test isolation
- A manual clock and stores bound to it
- Warning/error sinks that record instead of logging or raising
- Settings that ignore the developer's environment and ``.env``
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure machina package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from machina.cache.gc import GarbageCollector
from machina.cache.store import InMemoryCacheStore
from machina.core.settings import MachinaSettings
from machina.execution.registry import clear_registry
from tests._support.stores import ManualClock, RecordingStore


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_machine_registry_fixture() -> Generator[None, None, None]:
    """Clear the machine registry before and after each test."""
    clear_registry()
    yield
    clear_registry()


# =============================================================================
# Clock, Stores, Settings
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Clock frozen at 2026-01-01T12:00:00Z until advanced."""
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def recording_store(clock: ManualClock) -> RecordingStore:
    return RecordingStore(clock=clock)


@pytest.fixture
def settings() -> MachinaSettings:
    """Library defaults, isolated from ``MACHINA_*`` variables and ``.env``."""
    return MachinaSettings(
        _env_file=None,
        cache_ttl_seconds=3 * 60 * 60,
        cache_max_old_entries_buffer=0,
        cache_exit="success",
        cache_database_url="sqlite://",
    )


@pytest.fixture
def collector() -> GarbageCollector:
    return GarbageCollector()


# =============================================================================
# Sinks
# =============================================================================


class Sink(list):
    """Callable list: records every exception it is called with."""

    def __call__(self, error: Exception) -> None:
        self.append(error)

    def of_type(self, cls: type) -> list:
        return [e for e in self if isinstance(e, cls)]


@pytest.fixture
def warn_sink() -> Sink:
    return Sink()


@pytest.fixture
def error_sink() -> Sink:
    return Sink()
