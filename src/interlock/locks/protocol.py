"""Lock provider protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  LOCK PROVIDER PROTOCOL                                                       │
│                                                                               │
│  Design Philosophy:                                                           │
│  The scheduler controls WHEN a tick happens; the lock provider decides       │
│  WHETHER this replica may run it.  Every backend answers the same question   │
│  ("may I become the sole holder of this lease for ttl?") with its own        │
│  native primitive.                                                            │
│                                                                               │
│  ┌─────────────────────────────────────────────────────────────────────┐     │
│  │                                                                     │     │
│  │   ┌─────────────────┐   acquire()   ┌──────────────────────────┐   │     │
│  │   │  Interval       │ ────────────► │  RedisLockProvider       │   │     │
│  │   │  Scheduler      │               │  SET NX PX (self-expires)│   │     │
│  │   │                 │               ├──────────────────────────┤   │     │
│  │   │  - wait         │               │  DynamoDBLockProvider    │   │     │
│  │   │  - acquire      │               │  conditional PutItem     │   │     │
│  │   │  - run action   │               ├──────────────────────────┤   │     │
│  │   │  - release      │ ────────────► │  RelationalLockProvider  │   │     │
│  │   └─────────────────┘   release()   │  INSERT + unique key     │   │     │
│  │                                     ├──────────────────────────┤   │     │
│  │                                     │  NullLockProvider        │   │     │
│  │                                     │  single app, always yes  │   │     │
│  │                                     └──────────────────────────┘   │     │
│  └─────────────────────────────────────────────────────────────────────┘     │
│                                                                               │
│  Outcomes of acquire():                                                       │
│  - True   → lease granted, run the action                                    │
│  - False  → another replica holds the lease, skip the tick (not an error)    │
│  - raises → BackendError, the store could not answer                         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import os
import socket
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from interlock.errors import BackendError, ConfigError, ErrorContext


@runtime_checkable
class LockProvider(Protocol):
    """Protocol for pluggable distributed lock backends.

    Implementations:
        - NullLockProvider: no coordination (single app)
        - RedisLockProvider: key-value store with native TTL
        - DynamoDBLockProvider: conditional-write table
        - RelationalLockProvider: unique-constraint table (PostgreSQL, SQLite)

    Example (custom provider):
        >>> class MyProvider:
        ...     name = "custom"
        ...
        ...     def prepare_connection(self) -> None:
        ...         self._client = connect()
        ...
        ...     def acquire(self, key: str, ttl: float) -> bool:
        ...         return self._client.create_if_absent(key, ttl)
        ...
        ...     def release(self, key: str) -> None:
        ...         self._client.delete_if_owner(key, self.owner)
        ...
        ...     def purge(self, key: str) -> None:
        ...         self._client.delete(key)
        ...
        ...     def close(self) -> None:
        ...         self._client.close()
    """

    name: str

    def prepare_connection(self) -> None:
        """Connect to the backend and run one-time setup.

        Idempotent: calling it again on a prepared provider is a no-op.

        Raises:
            BackendConnectionError: backend unreachable or mis-configured.
        """
        ...

    def acquire(self, key: str, ttl: float) -> bool:
        """Try to become the sole holder of ``key`` for ``ttl`` seconds.

        Returns:
            True if the lease was granted, False if another holder exists.

        Raises:
            BackendError: the store failed to answer.
        """
        ...

    def release(self, key: str) -> None:
        """Give up a lease this provider acquired.

        Only the holder's own lease is deleted: releasing a free key, a key
        this provider never acquired, or a lease that expired and was taken
        over by another replica is a no-op.

        Raises:
            BackendError: the store failed to delete the lease.
        """
        ...

    def purge(self, key: str) -> None:
        """Delete the lease whoever holds it (operator remedy for stranded leases).

        Raises:
            BackendError: the store failed to delete the lease.
        """
        ...

    def close(self) -> None:
        """Drop the connection owned by this provider."""
        ...


@dataclass(frozen=True)
class Lease:
    """The record a backend stores while a lease is held.

    ``owner`` identifies the provider that acquired the lease, so a release
    never deletes a lease another replica holds.  ``ttl`` is enforced by the
    key-value backend only; table-backed backends store it as an advisory
    value.

    Example:
        >>> lease = Lease.grant("Interlock_billing", owner="web-1-4242-1a2b3c4d", ttl=1.5)
        >>> lease.ttl_ms, lease.ttl_seconds
        (1500, 1)
    """

    key: str
    owner: str
    created_at: datetime
    ttl: float

    @classmethod
    def grant(cls, key: str, owner: str, ttl: float) -> Lease:
        """Build the record for a lease acquired now."""
        return cls(key=key, owner=owner, created_at=datetime.now(UTC), ttl=ttl)

    @property
    def ttl_ms(self) -> int:
        return max(1, int(self.ttl * 1000))

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl)

    @property
    def token(self) -> str:
        """Single-string form, stored as the value of a key-value lease."""
        return f"{self.owner}@{self.created_at.isoformat()}"


def new_owner_id() -> str:
    """Identifier unique to one provider instance: ``host-pid-random``."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


def lease_key(prefix: str, name: str) -> str:
    """Namespace a job name so it cannot collide with unrelated keys.

    >>> lease_key("Interlock", "billing")
    'Interlock_billing'
    """
    return f"{prefix}_{name}"


def require_key(key: str) -> None:
    """Reject an empty lease key."""
    if not key:
        raise ConfigError("Distributed jobs should have a unique name")


def no_connection(vendor: str, key: str) -> BackendError:
    """Error for an acquire attempted before ``prepare_connection``."""
    return BackendError(
        f"No {vendor} connection found",
        context=ErrorContext(vendor=vendor, key=key),
    )


__all__ = ["Lease", "LockProvider", "lease_key", "new_owner_id", "no_connection", "require_key"]
