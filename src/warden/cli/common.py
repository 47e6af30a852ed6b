"""Helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from warden.config import Settings

err_console = Console(stderr=True)


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, exiting with code 1 if they are invalid."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        err_console.print(f"[red]✗[/red] Invalid settings: {e.error_count()} validation error(s)")
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            err_console.print(f"  {field}: {error['msg']}")
        raise typer.Exit(code=1) from e


def invalid_store_url(error: ValueError) -> typer.Exit:
    """Report a store URL the client rejected and return the exit to raise."""
    err_console.print(f"[red]✗[/red] Invalid store URL: {error}")
    return typer.Exit(code=1)
