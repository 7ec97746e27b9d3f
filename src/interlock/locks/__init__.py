"""Distributed lock providers.

Architecture::

    protocol.py       LockProvider protocol, Lease, lease_key()
    local.py          NullLockProvider (vendor "none")
    redis_lock.py     RedisLockProvider (SET NX PX)
    dynamodb_lock.py  DynamoDBLockProvider (conditional PutItem)
    relational.py     RelationalLockProvider (INSERT + primary key)
    dialect.py        SQLite / PostgreSQL SQL dialects
    registry.py       create_lock_provider(vendor, settings)

Driver-backed providers are imported lazily by the registry, so a job
using Redis never imports psycopg or boto3.
"""

from .local import NullLockProvider
from .protocol import Lease, LockProvider, lease_key
from .registry import create_lock_provider

__all__ = [
    "Lease",
    "LockProvider",
    "NullLockProvider",
    "create_lock_provider",
    "lease_key",
]
