"""
CLI: ``machina cache`` -- inspect and maintain the SQL cache store.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import typer

from machina.cache.store import CacheQuery
from machina.cli.utils import console, fail, open_store, output_json, output_table
from machina.core.settings import get_settings
from machina.core.timestamps import utc_now

app = typer.Typer(no_args_is_help=True)


@app.command()
def stats(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show entry counts and age range per hash."""
    store = open_store(database)
    rows = asyncio.run(store.stats())
    if json_out:
        output_json(rows)
        return
    output_table(rows, title="Cache Entries")
    console.print(f"\n[dim]{sum(r.entries for r in rows)} entries across {len(rows)} hashes[/dim]")


@app.command()
def show(
    hash: str = typer.Argument(..., help="Input hash"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum entries to show"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List the entries stored for one hash, newest first."""
    store = open_store(database)
    entries = asyncio.run(store.find(CacheQuery(hash=hash, limit=limit)))
    if not entries:
        fail(f"No cache entries for hash {hash!r}")
    if json_out:
        output_json(entries)
        return
    output_table(
        [{"id": e.id, "created_at": e.created_at.isoformat(), "data": e.data} for e in entries],
        title=f"Entries for {hash[:16]}",
    )


@app.command()
def purge(
    ttl: float | None = typer.Option(
        None, "--ttl", min=0, help="Entries older than this many seconds are expired (default: MACHINA_CACHE_TTL_SECONDS)"
    ),
    keep: int | None = typer.Option(
        None, "--keep", min=0, help="Expired entries to keep per hash (default: MACHINA_CACHE_MAX_OLD_ENTRIES_BUFFER)"
    ),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Delete expired entries of every hash."""
    settings = get_settings()
    ttl_seconds = ttl if ttl is not None else settings.cache_ttl_seconds
    buffer = keep if keep is not None else settings.cache_max_old_entries_buffer

    store = open_store(database)
    cutoff = utc_now() - timedelta(seconds=ttl_seconds)
    deleted = asyncio.run(store.purge_expired(cutoff, keep=buffer))

    if json_out:
        output_json({"cutoff": cutoff.isoformat(), "keep": buffer, "deleted": deleted})
        return
    if not deleted:
        console.print("[dim]Nothing to purge.[/dim]")
        return
    output_table([{"hash": h, "deleted": n} for h, n in sorted(deleted.items())], title="Purged")
    console.print(f"\n[green]Deleted {sum(deleted.values())} expired entries[/green]")
