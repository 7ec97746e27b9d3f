"""
CLI: ``interlock locks`` - operator commands for leases.

Table-backed vendors (DynamoDB, PostgreSQL, SQLite) never expire a lease,
so a replica that dies mid-tick leaves it behind.  ``release`` is the
remedy; ``acquire`` fences a job, e.g. during maintenance.
"""

from __future__ import annotations

import typer

from interlock.cli.utils import console, err_console, fail, load_settings, resolve_vendor
from interlock.config import InterlockSettings, LockVendor
from interlock.errors import InterlockError
from interlock.locks import LockProvider, create_lock_provider, lease_key

app = typer.Typer(no_args_is_help=True)


def _open_provider(vendor: str | None, settings: InterlockSettings) -> LockProvider:
    resolved = resolve_vendor(vendor, settings)
    if resolved is None or resolved == LockVendor.NONE:
        err_console.print("[red]A distributed vendor is required (--vendor or INTERLOCK_LOCK_VENDOR).[/red]")
        raise typer.Exit(code=2)
    provider = create_lock_provider(resolved, settings)
    provider.prepare_connection()
    return provider


@app.command("release")
def release_lock(
    name: str = typer.Argument(..., help="Job name"),
    vendor: str | None = typer.Option(None, "--vendor", "-v"),
) -> None:
    """Delete the lease of job NAME (purges a stranded lease)."""
    settings = load_settings()
    key = lease_key(settings.key_prefix, name)
    try:
        provider = _open_provider(vendor, settings)
        try:
            provider.purge(key)
        finally:
            provider.close()
    except InterlockError as e:
        raise fail(e) from e
    console.print(f"released {key}")


@app.command("acquire")
def acquire_lock(
    name: str = typer.Argument(..., help="Job name"),
    ttl: float = typer.Option(60.0, "--ttl", help="Lease duration in seconds (Redis only)"),
    vendor: str | None = typer.Option(None, "--vendor", "-v"),
) -> None:
    """Take the lease of job NAME once; exits 1 if another holder has it."""
    settings = load_settings()
    key = lease_key(settings.key_prefix, name)
    try:
        provider = _open_provider(vendor, settings)
        try:
            granted = provider.acquire(key, ttl)
        finally:
            provider.close()
    except InterlockError as e:
        raise fail(e) from e

    if not granted:
        console.print(f"held {key}")
        raise typer.Exit(code=1)
    console.print(f"acquired {key}")
