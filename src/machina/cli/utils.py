"""
CLI utility helpers: output formatting and store access.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from machina.cache.sql import SQLAlchemyCacheStore
from machina.core.settings import get_settings

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


def resolve_database(database: str | None = None) -> str:
    """Database URL from ``--database`` or ``MACHINA_CACHE_DATABASE_URL``."""
    return database or get_settings().cache_database_url


def open_store(database: str | None = None) -> SQLAlchemyCacheStore:
    """Open the SQL cache store, creating its table if needed."""
    url = resolve_database(database)
    try:
        return SQLAlchemyCacheStore.from_url(url)
    except Exception as exc:
        fail(f"Cannot open cache database {url!r}: {exc}")


def fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / dict to plain dict."""
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_json(data: Any) -> None:
    payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
    console.print_json(json.dumps(payload, default=str))


def output_table(items: list[Any], *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)
