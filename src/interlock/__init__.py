"""interlock - run a periodic action once per interval across a fleet of replicas.

Quick start::

    from interlock import IntervalJob, IntervalScheduler

    job = IntervalJob(
        name="send-invoices",     # lease name, unique across the fleet
        interval=300,             # seconds
        action=send_invoices,
        lock_vendor="redis",      # none | redis | dynamodb | postgres | sqlite
    )
    IntervalScheduler(job).run()  # blocks until cancelled
"""

from interlock.config import InterlockSettings, LockVendor, get_settings
from interlock.errors import (
    BackendConnectionError,
    BackendError,
    ConfigError,
    InterlockError,
)
from interlock.locks import LockProvider, create_lock_provider
from interlock.scheduling import IntervalJob, IntervalScheduler

__version__ = "0.3.0"

__all__ = [
    "BackendConnectionError",
    "BackendError",
    "ConfigError",
    "InterlockError",
    "InterlockSettings",
    "IntervalJob",
    "IntervalScheduler",
    "LockProvider",
    "LockVendor",
    "create_lock_provider",
    "get_settings",
]
