"""Redis lock provider.

Manifesto:
    Redis is the reference backend: ``SET key value NX PX ttl`` is an
    atomic test-and-set with self-healing expiry.  A replica that crashes
    while holding the lease loses it after ``ttl`` without anyone having to
    clean up.  The other backends approximate these semantics.

The stored value is the lease token (``owner@acquired-at``), which makes
``GET <key>`` useful when debugging a stuck fleet.  Release deletes the key
only while it still holds this provider's token, so a lease that expired
and was taken over by another replica is left alone.

Requires: ``pip install redis``

Tags:
    interlock, locks, redis, set-nx, TTL

Doc-Types:
    api-reference
"""

from __future__ import annotations

import redis

from interlock.config.settings import InterlockSettings, get_settings
from interlock.errors import (
    BackendConnectionError,
    BackendError,
    ErrorContext,
    InvalidConfigError,
)
from interlock.logging import get_logger

from .protocol import Lease, new_owner_id, no_connection, require_key

logger = get_logger(__name__)


# Delete the key only while it holds the caller's token (atomic on the server)
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _split_host(host: str) -> tuple[str, int]:
    """Split ``host:port``; the port defaults to 6379.

    Raises:
        InvalidConfigError: the port is not a number in 1-65535
    """
    name, _, port = host.rpartition(":")
    if not name:
        return port, 6379
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise InvalidConfigError("redis_host", host, f"Invalid Redis port in {host!r}")
    return name, int(port)


class RedisLockProvider:
    """Key-value lock backend with native TTL.

    Example:
        >>> provider = RedisLockProvider(settings)
        >>> provider.prepare_connection()
        >>> if provider.acquire("Interlock_billing", ttl=60):
        ...     try:
        ...         run_billing()
        ...     finally:
        ...         provider.release("Interlock_billing")
    """

    name = "redis"

    def __init__(
        self,
        settings: InterlockSettings | None = None,
        *,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Connection settings (host, password, db or url)
            client: An existing client, for applications that already hold
                a configured Redis connection. It is not closed by ``close()``.
        """
        self.settings = settings or get_settings()
        self.owner = new_owner_id()
        self._client = client
        self._owns_client = client is None
        self._prepared = False
        self._leases: dict[str, Lease] = {}

    def _build_client(self) -> redis.Redis:
        if self.settings.redis_url:
            return redis.Redis.from_url(self.settings.redis_url)
        host, port = _split_host(self.settings.redis_host)
        return redis.Redis(
            host=host,
            port=port,
            password=self.settings.redis_password,
            db=self.settings.redis_db,
        )

    def prepare_connection(self) -> None:
        if self._prepared:
            return

        if self._client is None:
            self._client = self._build_client()
            self._owns_client = True

        try:
            self._client.ping()
        except redis.RedisError as e:
            raise BackendConnectionError(
                f"Redis connection failed: {e}",
                context=ErrorContext(vendor=self.name),
                cause=e,
            ) from e

        self._prepared = True
        logger.info("lock_backend_connected", vendor=self.name, owned=self._owns_client)

    def acquire(self, key: str, ttl: float) -> bool:
        require_key(key)
        if self._client is None:
            raise no_connection(self.name, key)

        lease = Lease.grant(key, self.owner, ttl)
        try:
            res = self._client.set(key, lease.token, nx=True, px=lease.ttl_ms)
        except redis.RedisError as e:
            raise BackendError(
                f"Redis SET NX failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

        if res:
            self._leases[key] = lease
        return bool(res)

    def release(self, key: str) -> None:
        lease = self._leases.pop(key, None)
        if lease is None or self._client is None:
            return
        try:
            deleted = self._client.eval(_RELEASE_SCRIPT, 1, key, lease.token)
        except redis.RedisError as e:
            raise BackendError(
                f"Redis release failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e
        if not deleted:
            logger.debug("lease_not_owned", vendor=self.name, key=key)

    def purge(self, key: str) -> None:
        if self._client is None:
            raise no_connection(self.name, key)
        self._leases.pop(key, None)
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise BackendError(
                f"Redis DEL failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self._prepared = False
        self._leases.clear()
