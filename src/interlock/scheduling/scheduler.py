"""Interval scheduler - run an action once per interval across a fleet.

Manifesto:
    A job deployed on several replicas for availability must still behave
    like a single cron.  Each replica runs its own loop; on every tick the
    replicas race for the job's lease and only the winner runs the action.
    Losing the race is normal flow, not an error.

Tags:
    interlock, scheduling, interval, distributed-lock, singleton

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  INTERVAL SCHEDULER LOOP                                                      │
│                                                                               │
│   Initializing ── validate job, resolve provider, prepare_connection()       │
│        │                                                                      │
│        ▼                                                                      │
│   ┌─► Waiting ───── stop_event.wait(deadline - now) ──► set? ─► Terminated   │
│   │     │                                                                     │
│   │     ▼                                                                     │
│   │   Releasing ─── provider.release(key) of the lease held since the      │
│   │     │          previous tick  (failures logged, ignored)                 │
│   │     ▼                                                                     │
│   │   Acquiring ─── provider.acquire(key, ttl=interval)                      │
│   │     │  True                 │  False               │  raises           │
│   │     ▼                       ▼                      ▼                    │
│   │   Executing ── action()   Skipped               BackendError → fatal    │
│   │     │  (lease kept)          │                                            │
│   └─────┴──── deadline = next grid point (drops missed windows) ◄──┘        │
│                                                                               │
│  The winner keeps its lease for the whole window: a replica whose tick       │
│  lands later in the same window finds it held.  Release is owner-checked:   │
│  a lease that expired and passed to another replica is left alone.          │
│                                                                               │
│  Cancellation is observed only between ticks: an in-flight acquire,          │
│  action or release always completes.                                          │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from interlock.config.settings import get_settings
from interlock.locks.protocol import LockProvider
from interlock.locks.registry import create_lock_provider
from interlock.logging import get_logger

from .deadline import next_deadline
from .job import IntervalJob

logger = get_logger(__name__)


@dataclass
class SchedulerStats:
    """Statistics for one scheduler instance."""

    tick_count: int = 0
    executions: int = 0
    skipped: int = 0
    failures: int = 0
    missed_windows: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


class IntervalScheduler:
    """Runs one :class:`IntervalJob` on a fixed interval under its lease.

    Each scheduler owns the lock provider it builds and closes it on exit;
    a provider passed in through ``job.lock_provider`` is left open for its
    owner.  Nothing is shared with other schedulers in the same process.

    Example:
        >>> scheduler = IntervalScheduler(
        ...     IntervalJob(name="report", interval=60, action=build_report)
        ... )
        >>> scheduler.start()          # background thread
        >>> # ... later ...
        >>> scheduler.stop()

        Or block the calling thread until cancelled:

        >>> stop = threading.Event()
        >>> scheduler.run(stop)
    """

    def __init__(
        self,
        job: IntervalJob,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize scheduler.

        Args:
            job: The job to run
            clock: Monotonic clock used for deadlines
        """
        self.job = job
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._provider: LockProvider | None = None
        self._held: str | None = None
        self._stats = SchedulerStats()
        self._running = False
        self.error: BaseException | None = None

    # === Lifecycle ===

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Run the loop on the calling thread until ``stop_event`` is set.

        Returns ``None`` on cancellation.

        Raises:
            ConfigError: the job is not schedulable; the loop never starts
            BackendConnectionError: the lock backend could not be prepared
            BackendError: the lock backend failed during acquire
        """
        stop = stop_event or self._stop_event

        self.job.validate()
        vendor = self.job.resolve_vendor()
        settings = self.job.settings or get_settings()

        key = self.job.lease_key(settings.key_prefix) if self.job.name else ""
        owns_provider = self.job.lock_provider is None
        provider = self.job.lock_provider or create_lock_provider(
            vendor, settings, **dict(self.job.lock_options)
        )
        self._provider = provider
        interval = self.job.interval_seconds

        log = logger.bind(job=self.job.name or None, vendor=provider.name, key=key or None)

        try:
            provider.prepare_connection()
            log.info("scheduler_started", interval_seconds=interval)
            self._running = True

            deadline = self._clock() + interval
            while not stop.is_set():
                if stop.wait(max(0.0, deadline - self._clock())):
                    break

                self._tick(provider, key, interval, log)

                deadline, missed = next_deadline(deadline, interval, self._clock())
                if missed:
                    self._stats.missed_windows += missed
                    log.warning("missed_ticks_dropped", missed=missed)
        except Exception as e:
            self._stats.last_error = str(e)
            log.error("scheduler_failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            self._running = False
            self._release_held(provider, log)
            if owns_provider:
                provider.close()

        log.info("scheduler_terminated", ticks=self._stats.tick_count)

    def _tick(self, provider: LockProvider, key: str, interval: float, log: Any) -> None:
        """One Releasing → Acquiring → Executing pass."""
        self._release_held(provider, log)
        granted = provider.acquire(key, interval)

        self._stats.tick_count += 1
        self._stats.last_tick = datetime.now(UTC)

        if not granted:
            self._stats.skipped += 1
            log.debug("tick_skipped", reason="lease_held")
            return

        self._held = key
        try:
            self._stats.executions += 1
            self.job.action()
        except Exception as e:
            self._stats.failures += 1
            self._stats.last_error = str(e)
            log.exception("action_failed", error=str(e))

    def _release_held(self, provider: LockProvider, log: Any) -> None:
        """Give back the lease won on the previous tick, if any."""
        key, self._held = self._held, None
        if key is None:
            return
        try:
            provider.release(key)
        except Exception as e:
            # The lease self-expires on Redis; elsewhere it stays stranded
            log.warning("lock_release_failed", error=str(e))

    def start(self) -> None:
        """Run the loop in a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("scheduler_already_running", job=self.job.name)
            return

        self._stop_event.clear()
        self.error = None

        def _loop() -> None:
            try:
                self.run(self._stop_event)
            except Exception as e:
                self.error = e

        name = f"interlock-{self.job.name}" if self.job.name else "interlock"
        self._thread = threading.Thread(target=_loop, daemon=True, name=name)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Cancel the loop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("scheduler_thread_still_running", job=self.job.name)

    def join(self, timeout: float | None = None) -> None:
        """Wait for a background run to end."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    # === Status ===

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    @property
    def provider(self) -> LockProvider | None:
        """The lock provider resolved at start, ``None`` before the first run."""
        return self._provider

    def health(self) -> dict[str, Any]:
        """Return scheduler health status."""
        return {
            "healthy": self._running and self.error is None,
            "job": self.job.name,
            "vendor": self._provider.name if self._provider else None,
            "interval_seconds": self.job.interval_seconds,
            "tick_count": self._stats.tick_count,
            "executions": self._stats.executions,
            "skipped": self._stats.skipped,
            "failures": self._stats.failures,
            "missed_windows": self._stats.missed_windows,
            "last_tick": self._stats.last_tick.isoformat() if self._stats.last_tick else None,
            "last_error": self._stats.last_error,
        }
