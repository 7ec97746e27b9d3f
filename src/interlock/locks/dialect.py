"""SQL dialect abstraction for the relational lock provider.

Manifesto:
    The unique-constraint lock must behave the same on PostgreSQL in
    production and SQLite on a laptop.  The dialect hides the three things
    that differ: placeholder style, DDL column types, and how the driver
    reports a duplicate key.

Architecture::

    RelationalLockProvider
        │  sql = f"INSERT INTO t (id, owner, created_at, ttl) VALUES ({d.placeholders(4)})"
        │  except Exception as e: d.is_unique_violation(e)
        ▼
    ┌──────────────────────────┐ ┌──────────────────────────────┐
    │ SQLiteDialect            │ │ PostgreSQLDialect            │
    │ ?, ?, ?                  │ │ %s, %s, %s                   │
    │ SQLITE_CONSTRAINT_PK     │ │ SQLSTATE 23505               │
    └──────────────────────────┘ └──────────────────────────────┘

Examples:
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'

Tags:
    dialect, sql, portability, interlock

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import psycopg

UNIQUE_VIOLATION_SQLSTATE = "23505"


@runtime_checkable
class Dialect(Protocol):
    """SQL generation and error classification for one database backend."""

    @property
    def name(self) -> str:
        """Dialect identifier (e.g. ``"sqlite"``, ``"postgresql"``)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated parameter placeholders."""
        ...

    def create_lock_table(self, table: str) -> str:
        """Idempotent DDL for the lock table."""
        ...

    def timestamp_param(self, value: datetime) -> Any:
        """Convert a timestamp into a driver parameter."""
        ...

    def is_unique_violation(self, error: BaseException) -> bool:
        """Whether ``error`` is the driver's duplicate-key error."""
        ...


class SQLiteDialect:
    """SQLite dialect - ``?`` placeholders, ISO text timestamps."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def create_lock_table(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "id TEXT NOT NULL PRIMARY KEY, "
            "owner TEXT NOT NULL, "
            "created_at TEXT NOT NULL, "
            "ttl INTEGER)"
        )

    def timestamp_param(self, value: datetime) -> Any:
        return value.isoformat()

    def is_unique_violation(self, error: BaseException) -> bool:
        if not isinstance(error, sqlite3.IntegrityError):
            return False
        if getattr(error, "sqlite_errorname", "") in (
            "SQLITE_CONSTRAINT_PRIMARYKEY",
            "SQLITE_CONSTRAINT_UNIQUE",
        ):
            return True
        return "UNIQUE constraint failed" in str(error)


class PostgreSQLDialect:
    """PostgreSQL dialect - ``%s`` placeholders (psycopg), native timestamps."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def create_lock_table(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "id text NOT NULL, "
            "owner text NOT NULL, "
            "created_at timestamp NOT NULL, "
            "ttl integer, "
            "PRIMARY KEY (id))"
        )

    def timestamp_param(self, value: datetime) -> Any:
        return value

    def is_unique_violation(self, error: BaseException) -> bool:
        if isinstance(error, psycopg.errors.UniqueViolation):
            return True
        return getattr(error, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE


def get_dialect(conn: Any) -> Dialect:
    """Pick the dialect matching a DB-API connection."""
    if isinstance(conn, sqlite3.Connection):
        return SQLiteDialect()
    return PostgreSQLDialect()


__all__ = [
    "Dialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "UNIQUE_VIOLATION_SQLSTATE",
    "get_dialect",
]
