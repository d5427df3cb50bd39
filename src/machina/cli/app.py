"""
Root Typer application for the machina CLI.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

app = Typer(
    name="machina",
    help="machina: units of work with memoized exits.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("machina")
        except PackageNotFoundError:
            from machina import __version__ as v
        typer.echo(f"machina {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """machina CLI: inspect and maintain the machine result cache."""
    from machina.core.logging import configure_logging
    from machina.core.settings import get_settings

    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
        service="machina-cli",
        stream=sys.stderr,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from machina.cli.cache import app as cache_app  # noqa: E402

app.add_typer(cache_app, name="cache", help="Cache inspection and maintenance.")
