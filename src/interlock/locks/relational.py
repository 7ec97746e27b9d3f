"""Relational lock provider.

Manifesto:
    A primary key is the oldest mutual-exclusion primitive a database
    has.  Acquiring is a plain ``INSERT``; the database rejects the second
    writer with a uniqueness violation, which this provider reports as a
    denied lock (``False``), not as a fault.  Every other database error is
    a genuine failure and propagates.

    Lock Table::

        ┌──────────────┬──────────────┬──────────────┬──────────────────────────┐
        │ id (PK)      │ owner        │ created_at   │ ttl (seconds, advisory)  │
        ├──────────────┼──────────────┼──────────────┼──────────────────────────┤
        │ Interlock_a  │ web-1-42-... │ 2026-01-...  │ 60                       │
        └──────────────┴──────────────┴──────────────┴──────────────────────────┘

Rows do not expire.  A replica that crashes between acquire and release
strands its row until an operator runs ``interlock locks release <name>``.
Release deletes by ``id`` and ``owner``, so it never removes a row another
replica inserted after an operator purge.

Backends:
    - PostgreSQL via ``psycopg`` (``INTERLOCK_DATABASE_URL``)
    - SQLite via ``sqlite3`` (``INTERLOCK_SQLITE_PATH``), for replicas on
      one host and for tests

Tags:
    interlock, locks, postgres, sqlite, unique-constraint

Doc-Types:
    api-reference
"""

from __future__ import annotations

import sqlite3
from typing import Any

import psycopg

from interlock.config.components import LockVendor
from interlock.config.settings import InterlockSettings, get_settings
from interlock.errors import BackendConnectionError, BackendError, ErrorContext
from interlock.logging import get_logger

from .dialect import Dialect, PostgreSQLDialect, SQLiteDialect, get_dialect
from .protocol import Lease, new_owner_id, no_connection, require_key

logger = get_logger(__name__)

DATABASE_ERRORS = (psycopg.Error, sqlite3.Error)


class RelationalLockProvider:
    """Unique-constraint table lock backend.

    Example:
        >>> provider = RelationalLockProvider(settings, vendor=LockVendor.POSTGRES)
        >>> provider.prepare_connection()   # CREATE TABLE IF NOT EXISTS
        >>> provider.acquire("Interlock_billing", ttl=60)
        True
        >>> provider.acquire("Interlock_billing", ttl=60)
        False
    """

    def __init__(
        self,
        settings: InterlockSettings | None = None,
        *,
        vendor: LockVendor = LockVendor.POSTGRES,
        connection: Any = None,
        dialect: Dialect | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Database location and lock table name
            vendor: ``POSTGRES`` or ``SQLITE``
            connection: An existing DB-API connection. It is not closed by
                ``close()``.
            dialect: SQL dialect; detected from the connection when omitted
        """
        if vendor not in (LockVendor.POSTGRES, LockVendor.SQLITE):
            raise ValueError(f"RelationalLockProvider does not support vendor {vendor.value!r}")

        self.settings = settings or get_settings()
        self.vendor = vendor
        self.name = vendor.value
        self.owner = new_owner_id()
        self.table = self.settings.lock_table
        self._conn = connection
        self._owns_conn = connection is None
        self._prepared = False
        self._leases: dict[str, Lease] = {}

        if dialect is not None:
            self.dialect = dialect
        elif connection is not None:
            self.dialect = get_dialect(connection)
        elif vendor == LockVendor.SQLITE:
            self.dialect = SQLiteDialect()
        else:
            self.dialect = PostgreSQLDialect()

    def _connect(self) -> Any:
        if self.vendor == LockVendor.SQLITE:
            return sqlite3.connect(
                self.settings.sqlite_path,
                timeout=10.0,
                isolation_level=None,
                check_same_thread=False,
            )
        return psycopg.connect(self.settings.database_url, autocommit=True)

    def prepare_connection(self) -> None:
        if self._prepared:
            return

        try:
            if self._conn is None:
                self._conn = self._connect()
                self._owns_conn = True
            self._conn.execute(self.dialect.create_lock_table(self.table))
            self._conn.commit()
        except DATABASE_ERRORS as e:
            raise BackendConnectionError(
                f"{self.name} lock table setup failed: {e}",
                context=ErrorContext(vendor=self.name, metadata={"table": self.table}),
                cause=e,
            ) from e

        self._prepared = True
        logger.info("lock_table_ready", vendor=self.name, table=self.table)

    def acquire(self, key: str, ttl: float) -> bool:
        require_key(key)
        if self._conn is None:
            raise no_connection(self.name, key)

        lease = Lease.grant(key, self.owner, ttl)
        sql = (
            f"INSERT INTO {self.table} (id, owner, created_at, ttl) "
            f"VALUES ({self.dialect.placeholders(4)})"
        )
        params = (
            lease.key,
            lease.owner,
            self.dialect.timestamp_param(lease.created_at),
            lease.ttl_seconds,
        )
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
        except DATABASE_ERRORS as e:
            self._rollback()
            if self.dialect.is_unique_violation(e):
                return False
            raise BackendError(
                f"{self.name} lock insert failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

        if cursor.rowcount is not None and cursor.rowcount == 0:
            raise BackendError(
                "Couldn't acquire lock: insert affected no rows",
                context=ErrorContext(vendor=self.name, key=key),
            )
        self._leases[key] = lease
        return True

    def release(self, key: str) -> None:
        lease = self._leases.pop(key, None)
        if lease is None or self._conn is None:
            return

        p = self.dialect.placeholders(1)
        self._delete(f"DELETE FROM {self.table} WHERE id = {p} AND owner = {p}", (key, lease.owner), key)

    def purge(self, key: str) -> None:
        if self._conn is None:
            raise no_connection(self.name, key)
        self._leases.pop(key, None)
        self._delete(f"DELETE FROM {self.table} WHERE id = {self.dialect.placeholders(1)}", (key,), key)

    def _delete(self, sql: str, params: tuple, key: str) -> None:
        try:
            self._conn.execute(sql, params)
            self._conn.commit()
        except DATABASE_ERRORS as e:
            self._rollback()
            raise BackendError(
                f"{self.name} lock delete failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except DATABASE_ERRORS as e:
            logger.debug("lock_rollback_failed", vendor=self.name, error=str(e))

    def close(self) -> None:
        if self._conn is not None and self._owns_conn:
            self._conn.close()
            self._conn = None
        self._prepared = False
        self._leases.clear()
