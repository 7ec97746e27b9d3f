"""
CLI utility helpers - settings resolution and error output.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from interlock.config import InterlockSettings, LockVendor, get_settings
from interlock.errors import ConfigError, InterlockError

console = Console()
err_console = Console(stderr=True)


def resolve_vendor(vendor: str | None, settings: InterlockSettings) -> LockVendor | None:
    """``--vendor`` wins over ``INTERLOCK_LOCK_VENDOR``."""
    if vendor is None:
        return settings.lock_vendor
    try:
        return LockVendor.parse(vendor)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--vendor") from e


def load_settings() -> InterlockSettings:
    try:
        return get_settings()
    except (ConfigError, ValueError) as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=2) from e


def fail(error: InterlockError, code: int = 1) -> typer.Exit:
    """Print an interlock error and return the exit to raise."""
    err_console.print(f"[red]{error.__class__.__name__}:[/red] {error.message}")
    context = error.context.to_dict()
    if context:
        err_console.print(f"  context: {context}")
    return typer.Exit(code=code)
