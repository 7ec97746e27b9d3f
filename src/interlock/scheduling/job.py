"""Interval job definition."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from interlock.config.components import LockVendor
from interlock.config.settings import InterlockSettings
from interlock.errors import ConfigError, ErrorContext, InvalidConfigError, MissingConfigError
from interlock.locks.protocol import LockProvider, lease_key


@dataclass(frozen=True)
class IntervalJob:
    """A periodic action and how replicas coordinate around it.

    Attributes:
        action: Zero-argument callable run while holding the lease
        interval: Tick period, seconds or ``timedelta``; also the lease ttl
        name: Lease identifier, unique per logical job across the fleet.
            Required whenever the vendor is distributed.
        lock_vendor: Lock backend. When unset, a named job uses Redis and an
            unnamed job runs without coordination, unless ``settings``
            names a vendor.
        settings: Backend connection settings; process settings when omitted
        lock_options: Extra provider arguments (``client=``, ``connection=``)
        lock_provider: A ready-made provider, bypassing vendor resolution

    Example:
        >>> job = IntervalJob(
        ...     name="send-invoices",
        ...     interval=timedelta(minutes=5),
        ...     action=send_invoices,
        ...     lock_vendor="redis",
        ... )
    """

    action: Callable[[], Any]
    interval: float | timedelta
    name: str = ""
    lock_vendor: LockVendor | str | None = None
    settings: InterlockSettings | None = None
    lock_options: Mapping[str, Any] = field(default_factory=dict)
    lock_provider: LockProvider | None = None

    @property
    def interval_seconds(self) -> float:
        if isinstance(self.interval, timedelta):
            return self.interval.total_seconds()
        return float(self.interval)

    def resolve_vendor(self) -> LockVendor:
        """Decide which lock vendor this job uses."""
        if self.lock_vendor is not None:
            try:
                return LockVendor.parse(self.lock_vendor)
            except ValueError as e:
                raise InvalidConfigError("lock_vendor", self.lock_vendor, str(e)) from e
        if self.settings is not None and self.settings.lock_vendor is not None:
            return self.settings.lock_vendor
        # Naming a job has always meant "run it distributed"
        return LockVendor.REDIS if self.name else LockVendor.NONE

    def lease_key(self, prefix: str) -> str:
        return lease_key(prefix, self.name)

    def validate(self) -> None:
        """Fail fast on a job that cannot be scheduled.

        Raises:
            ConfigError: missing interval or action, or a distributed job
                without a name
        """
        if self.interval is None:
            raise MissingConfigError("interval", "Time interval is missing")
        try:
            seconds = self.interval_seconds
        except (TypeError, ValueError) as e:
            raise InvalidConfigError("interval", self.interval) from e
        if seconds <= 0:
            raise InvalidConfigError("interval", self.interval, "Time interval must be positive")

        if self.action is None:
            raise MissingConfigError("action", "What should this job run? No action given")
        if not callable(self.action):
            raise InvalidConfigError("action", self.action, "The job action must be callable")

        vendor = self.resolve_vendor()
        if (vendor.is_distributed or self.lock_provider is not None) and not self.name:
            raise ConfigError(
                "Distributed jobs should have a unique name",
                context=ErrorContext(vendor=vendor.value),
            )
