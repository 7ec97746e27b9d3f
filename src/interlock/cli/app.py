"""
Root Typer application for the interlock CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="interlock",
    help="interlock - run a job once per interval across a fleet of replicas.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from interlock import __version__

        typer.echo(f"interlock {__version__}")
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
    """interlock CLI - run interval jobs and manage their leases."""


# ── Sub-command registration ─────────────────────────────────────────────

from interlock.cli.locks import app as locks_app  # noqa: E402
from interlock.cli.run import run_command  # noqa: E402

app.command("run")(run_command)
app.add_typer(locks_app, name="locks", help="Inspect and purge leases.")


if __name__ == "__main__":
    app()
