"""
Shared pytest fixtures and configuration for interlock tests.

This module provides:
- In-process stand-ins for the Redis and DynamoDB clients, shared between
  providers the way replicas share one server
- Settings isolated from the developer's INTERLOCK_* environment
- A recording lock provider for scheduler tests
"""

from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import structlog
from botocore.exceptions import ClientError

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from interlock.config import InterlockSettings, clear_settings_cache  # noqa: E402


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Drop INTERLOCK_* variables and the settings cache around every test."""
    for key in list(os.environ):
        if key.startswith("INTERLOCK_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)  # no stray .env file
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()


@pytest.fixture
def sqlite_path(tmp_path) -> str:
    return str(tmp_path / "locks.db")


@pytest.fixture
def settings(sqlite_path) -> InterlockSettings:
    """Settings pointing the relational vendor at a temporary SQLite file."""
    return InterlockSettings(_env_file=None, sqlite_path=sqlite_path)


# =============================================================================
# Store fakes
# =============================================================================


class FakeRedis:
    """Thread-safe subset of ``redis.Redis``: PING, SET NX PX, GET, DEL and the release script."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None
        self.closed = False

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _expire(self, key: str) -> None:
        entry = self._data.get(key)
        if entry and entry[1] is not None and entry[1] <= time.monotonic():
            del self._data[key]

    def ping(self) -> bool:
        self._maybe_fail()
        return True

    def set(self, key: str, value: Any, nx: bool = False, px: int | None = None) -> bool | None:
        self._maybe_fail()
        with self._lock:
            self._expire(key)
            if nx and key in self._data:
                return None
            expires = time.monotonic() + px / 1000 if px else None
            self._data[key] = (value, expires)
            return True

    def get(self, key: str) -> Any:
        with self._lock:
            self._expire(key)
            entry = self._data.get(key)
            return entry[0] if entry else None

    def delete(self, *keys: str) -> int:
        self._maybe_fail()
        with self._lock:
            return sum(1 for key in keys if self._data.pop(key, None) is not None)

    def eval(self, script: str, numkeys: int, key: str, token: str) -> int:
        """Compare-and-delete, the only script the provider runs."""
        self._maybe_fail()
        with self._lock:
            self._expire(key)
            entry = self._data.get(key)
            if entry is None or entry[0] != token:
                return 0
            del self._data[key]
            return 1

    def close(self) -> None:
        self.closed = True


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeDynamoDB:
    """Thread-safe subset of the boto3 DynamoDB client used by the lock provider."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict]] = {}
        self.put_calls: list[dict] = []
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None

    def create_table(self, TableName: str, **kwargs: Any) -> dict:
        with self._lock:
            if TableName in self.tables:
                raise _client_error("ResourceInUseException", "CreateTable")
            self.tables[TableName] = {}
        return {"TableDescription": {"TableName": TableName, **kwargs}}

    def get_waiter(self, name: str) -> SimpleNamespace:
        return SimpleNamespace(wait=lambda **kwargs: None)

    def put_item(self, TableName: str, Item: dict, ConditionExpression: str | None = None) -> dict:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.put_calls.append({"Item": Item, "ConditionExpression": ConditionExpression})
            table = self.tables[TableName]
            key = Item["id"]["S"]
            if ConditionExpression == "attribute_not_exists(id)" and key in table:
                raise _client_error("ConditionalCheckFailedException", "PutItem")
            table[key] = Item
        return {}

    def delete_item(
        self,
        TableName: str,
        Key: dict,
        ConditionExpression: str | None = None,
        ExpressionAttributeNames: dict | None = None,
        ExpressionAttributeValues: dict | None = None,
    ) -> dict:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            table = self.tables[TableName]
            key = Key["id"]["S"]
            if ConditionExpression is not None:
                owner = ExpressionAttributeValues[":owner"]["S"]
                item = table.get(key)
                if item is None or item["owner"]["S"] != owner:
                    raise _client_error("ConditionalCheckFailedException", "DeleteItem")
            table.pop(key, None)
        return {}


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_dynamodb() -> FakeDynamoDB:
    return FakeDynamoDB()


@pytest.fixture
def client_error():
    return _client_error


# =============================================================================
# Recording provider
# =============================================================================


class RecordingProvider:
    """Lock provider that records calls and can be told to fail."""

    name = "recording"

    def __init__(
        self,
        *,
        grant: bool = True,
        acquire_error: Exception | None = None,
        release_error: Exception | None = None,
    ) -> None:
        self.grant = grant
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.prepared = 0
        self.acquired: list[tuple[str, float]] = []
        self.released: list[str] = []
        self.purged: list[str] = []
        self.closed = False

    def prepare_connection(self) -> None:
        self.prepared += 1

    def acquire(self, key: str, ttl: float) -> bool:
        self.acquired.append((key, ttl))
        if self.acquire_error is not None:
            raise self.acquire_error
        return self.grant

    def release(self, key: str) -> None:
        self.released.append(key)
        if self.release_error is not None:
            raise self.release_error

    def purge(self, key: str) -> None:
        self.purged.append(key)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def make_provider():
    """Factory for recording providers with custom outcomes."""
    return RecordingProvider


class Counter:
    """Thread-safe call counter usable as a job action."""

    def __init__(self, sleep: float = 0.0) -> None:
        self.count = 0
        self.sleep = sleep
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.count += 1
        if self.sleep:
            time.sleep(self.sleep)


@pytest.fixture
def counter() -> Counter:
    return Counter()


@pytest.fixture
def make_counter():
    """Factory for counters whose calls take ``sleep`` seconds."""
    return Counter
