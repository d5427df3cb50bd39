"""SQLAlchemy-backed cache store.

``SQLAlchemyCacheStore`` implements the ``CacheStore`` contract on top of
any database SQLAlchemy 2.0 can talk to. The blocking session work runs
in ``asyncio.to_thread`` so the event loop keeps serving other runs while
a query is in flight.

Timestamps are stored as naive UTC in a plain ``DateTime`` column and
converted back to aware UTC on read. Values go into a ``JSON`` column, so
only JSON-serializable results can be cached here; a non-serializable
result makes ``create()`` fail, which the pipeline reports as a warning.

This module provides:

* ``create_cache_engine``  -- Engine factory with SQLite tweaks.
* ``CacheEntryTable``      -- Declarative table ``machine_cache_entries``.
* ``SQLAlchemyCacheStore`` -- The store itself, plus ``stats()`` and
  ``purge_expired()`` used by the CLI.

Tags:
    cache, store, orm, sqlalchemy, machina

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Select, Text, delete, func, select
from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from machina.cache.store import CacheEntry, CacheQuery
from machina.core.logging import get_logger
from machina.core.timestamps import Clock, ensure_utc, generate_ulid, utc_now

logger = get_logger(__name__)


class MachinaBase(DeclarativeBase):
    """Declarative base for machina tables."""

    type_annotation_map = {
        str: Text,
        datetime.datetime: DateTime,
    }


class CacheEntryTable(MachinaBase):
    __tablename__ = "machine_cache_entries"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_machine_cache_entries_hash_created_at", "hash", "created_at"),)


def create_cache_engine(url: str = "sqlite:///machina_cache.db", *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    In-memory SQLite gets a ``StaticPool`` so every worker thread sees the
    same database.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs.setdefault("poolclass", StaticPool)
    return _sa_create_engine(url, echo=echo, **kwargs)


def _to_db(dt: datetime.datetime) -> datetime.datetime:
    return ensure_utc(dt).replace(tzinfo=None)


def _to_entry(row: CacheEntryTable) -> CacheEntry:
    return CacheEntry(hash=row.hash, data=row.data, created_at=ensure_utc(row.created_at), id=row.id)


@dataclass
class HashStats:
    """Per-hash summary returned by :meth:`SQLAlchemyCacheStore.stats`."""

    hash: str
    entries: int
    oldest: datetime.datetime
    newest: datetime.datetime


class SQLAlchemyCacheStore:
    """Cache store persisted through SQLAlchemy.

    Parameters
    ----------
    engine:
        Engine to use. Tables are created on construction unless
        ``create_tables`` is False.
    clock:
        Source of ``created_at`` for new entries (defaults to ``utc_now``).

    Example::

        store = SQLAlchemyCacheStore(create_cache_engine("sqlite:///cache.db"))
        machine.configure(inputs, cache=CacheOptions(store=store))
    """

    def __init__(self, engine: Engine, *, clock: Clock | None = None, create_tables: bool = True) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        self._clock = clock or utc_now
        if create_tables:
            MachinaBase.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> SQLAlchemyCacheStore:
        return cls(create_cache_engine(url), **kwargs)

    @property
    def engine(self) -> Engine:
        return self._engine

    # ── Query building ───────────────────────────────────────────────

    @staticmethod
    def _filtered(stmt: Select[Any], query: CacheQuery) -> Select[Any]:
        stmt = stmt.where(CacheEntryTable.hash == query.hash)
        if query.created_after is not None:
            stmt = stmt.where(CacheEntryTable.created_at > _to_db(query.created_after))
        if query.created_at_or_before is not None:
            stmt = stmt.where(CacheEntryTable.created_at <= _to_db(query.created_at_or_before))
        return stmt

    @classmethod
    def _windowed(cls, stmt: Select[Any], query: CacheQuery) -> Select[Any]:
        stmt = cls._filtered(stmt, query)
        if query.newest_first:
            stmt = stmt.order_by(CacheEntryTable.created_at.desc(), CacheEntryTable.id.desc())
        else:
            stmt = stmt.order_by(CacheEntryTable.created_at.asc(), CacheEntryTable.id.asc())
        if query.skip:
            stmt = stmt.offset(query.skip)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        return stmt

    # ── Sync implementations ─────────────────────────────────────────

    def _find(self, query: CacheQuery) -> list[CacheEntry]:
        with self._sessions() as session:
            rows = session.scalars(self._windowed(select(CacheEntryTable), query)).all()
            return [_to_entry(row) for row in rows]

    def _create(self, hash: str, data: Any, created_at: datetime.datetime | None) -> CacheEntry:
        row = CacheEntryTable(
            id=generate_ulid(),
            hash=hash,
            data=data,
            created_at=_to_db(created_at or self._clock()),
        )
        with self._sessions() as session, session.begin():
            session.add(row)
        # Hand back the caller's object, not the JSON round-trip
        return CacheEntry(hash=hash, data=data, created_at=ensure_utc(row.created_at), id=row.id)

    def _count(self, query: CacheQuery) -> int:
        with self._sessions() as session:
            stmt = self._filtered(select(func.count()).select_from(CacheEntryTable), query)
            return int(session.scalar(stmt) or 0)

    def _destroy(self, session: Session, query: CacheQuery) -> int:
        ids = session.scalars(self._windowed(select(CacheEntryTable.id), query)).all()
        if not ids:
            return 0
        session.execute(delete(CacheEntryTable).where(CacheEntryTable.id.in_(ids)))
        return len(ids)

    def _destroy_tx(self, query: CacheQuery) -> int:
        with self._sessions() as session, session.begin():
            return self._destroy(session, query)

    # ── CacheStore protocol ──────────────────────────────────────────

    async def find(self, query: CacheQuery) -> list[CacheEntry]:
        return await asyncio.to_thread(self._find, query)

    async def create(self, hash: str, data: Any, *, created_at: datetime.datetime | None = None) -> CacheEntry:
        return await asyncio.to_thread(self._create, hash, data, created_at)

    async def count(self, query: CacheQuery) -> int:
        return await asyncio.to_thread(self._count, query)

    async def destroy(self, query: CacheQuery) -> int:
        return await asyncio.to_thread(self._destroy_tx, query)

    # ── Maintenance (CLI) ────────────────────────────────────────────

    def _stats(self) -> list[HashStats]:
        stmt = (
            select(
                CacheEntryTable.hash,
                func.count(),
                func.min(CacheEntryTable.created_at),
                func.max(CacheEntryTable.created_at),
            )
            .group_by(CacheEntryTable.hash)
            .order_by(CacheEntryTable.hash)
        )
        with self._sessions() as session:
            return [
                HashStats(hash=h, entries=int(n), oldest=ensure_utc(lo), newest=ensure_utc(hi))
                for h, n, lo, hi in session.execute(stmt).all()
            ]

    def _purge_expired(self, cutoff: datetime.datetime, keep: int) -> dict[str, int]:
        deleted: dict[str, int] = {}
        with self._sessions() as session, session.begin():
            hashes = session.scalars(
                select(CacheEntryTable.hash)
                .where(CacheEntryTable.created_at <= _to_db(cutoff))
                .distinct()
            ).all()
            for h in hashes:
                n = self._destroy(session, CacheQuery(hash=h, created_at_or_before=cutoff, skip=keep))
                if n:
                    deleted[h] = n
        logger.info("cache.purged", hashes=len(deleted), deleted=sum(deleted.values()), keep=keep)
        return deleted

    async def stats(self) -> list[HashStats]:
        """Entry counts and age range for every hash."""
        return await asyncio.to_thread(self._stats)

    async def purge_expired(self, cutoff: datetime.datetime, *, keep: int = 0) -> dict[str, int]:
        """Delete entries created at or before *cutoff* for every hash.

        The ``keep`` newest stale entries of each hash survive, matching the
        garbage collector's retention buffer. Returns ``{hash: deleted}``.
        """
        return await asyncio.to_thread(self._purge_expired, cutoff, keep)


__all__ = [
    "CacheEntryTable",
    "HashStats",
    "MachinaBase",
    "SQLAlchemyCacheStore",
    "create_cache_engine",
]
