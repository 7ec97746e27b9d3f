"""
CLI: ``interlock run`` - run a shell command on an interval under a lease.
"""

from __future__ import annotations

import signal
import subprocess
import threading

import typer

from interlock.cli.utils import console, fail, load_settings, resolve_vendor
from interlock.errors import InterlockError
from interlock.logging import configure_logging, get_logger
from interlock.scheduling import IntervalJob, IntervalScheduler

logger = get_logger(__name__)


def _command_action(command: list[str]):
    def _action() -> None:
        result = subprocess.run(command, check=False)
        if result.returncode != 0:
            logger.warning("command_failed", command=command[0], returncode=result.returncode)

    return _action


def run_command(
    command: list[str] = typer.Argument(..., help="Command (and arguments) to run each tick"),
    interval: float = typer.Option(..., "--interval", "-i", help="Seconds between ticks"),
    name: str = typer.Option("", "--name", "-n", help="Job name, unique across the fleet"),
    vendor: str | None = typer.Option(None, "--vendor", "-v", help="none, redis, dynamodb, postgres, sqlite"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Run COMMAND every INTERVAL seconds; only one replica runs each tick."""
    settings = load_settings()
    json_format = {"json": True, "console": False}.get(settings.log_format)
    configure_logging(level=log_level or settings.log_level, json_format=json_format)

    job = IntervalJob(
        name=name,
        interval=interval,
        action=_command_action(command),
        lock_vendor=resolve_vendor(vendor, settings),
        settings=settings,
    )
    scheduler = IntervalScheduler(job)

    stop = threading.Event()
    previous = {
        sig: signal.signal(sig, lambda *_: stop.set())
        for sig in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        scheduler.run(stop)
    except InterlockError as e:
        raise fail(e) from e
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    console.print(f"stopped after {scheduler.stats.tick_count} tick(s)")
