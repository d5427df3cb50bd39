"""
CLI layer for machina.

Provides a Typer application for inspecting and maintaining the SQL
cache store. Cache logic lives in ``machina.cache``; this package handles
only terminal transport: argument parsing, coloured output and tables.

Entry point::

    machina --help
"""

from machina.cli.app import app

__all__ = ["app"]
