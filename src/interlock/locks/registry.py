"""Lock provider factory.

The vendor is resolved to a concrete provider exactly once, when a
scheduler starts.  The scheduler then talks to the provider through the
:class:`~interlock.locks.protocol.LockProvider` protocol and never
branches on the vendor again.
"""

from __future__ import annotations

from typing import Any

from interlock.config.components import LockVendor
from interlock.config.settings import InterlockSettings, get_settings
from interlock.errors import ConfigError, ErrorContext
from interlock.logging import get_logger

from .protocol import LockProvider

logger = get_logger(__name__)


def create_lock_provider(
    vendor: LockVendor | str,
    settings: InterlockSettings | None = None,
    **overrides: Any,
) -> LockProvider:
    """Build the provider for ``vendor``.

    Args:
        vendor: Lock vendor or one of its aliases
        settings: Connection settings; the cached process settings when omitted
        **overrides: Passed to the provider, e.g. ``client=`` for Redis and
            DynamoDB or ``connection=`` for relational stores

    Raises:
        ConfigError: unknown vendor, or settings insufficient for it
    """
    try:
        vendor = LockVendor.parse(vendor)
    except ValueError as e:
        raise ConfigError(str(e), cause=e) from e

    settings = settings or get_settings()

    if vendor == LockVendor.NONE:
        from .local import NullLockProvider

        return NullLockProvider()

    if not overrides:
        try:
            warnings = settings.check_vendor(vendor)
        except ValueError as e:
            raise ConfigError(str(e), context=ErrorContext(vendor=vendor.value), cause=e) from e
        for w in warnings:
            logger.info("lock_settings_notice", vendor=vendor.value, severity=w.severity, message=w.message)

    if vendor == LockVendor.REDIS:
        from .redis_lock import RedisLockProvider

        return RedisLockProvider(settings, **overrides)

    if vendor == LockVendor.DYNAMODB:
        from .dynamodb_lock import DynamoDBLockProvider

        return DynamoDBLockProvider(settings, **overrides)

    from .relational import RelationalLockProvider

    return RelationalLockProvider(settings, vendor=vendor, **overrides)
