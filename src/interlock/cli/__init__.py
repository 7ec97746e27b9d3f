"""Command line interface (``interlock``)."""

from interlock.cli.app import app

__all__ = ["app"]
