"""Single-application lock provider.

Used when a job runs without distributed coordination: every acquire is
granted and nothing is stored.
"""

from __future__ import annotations


class NullLockProvider:
    """Lock provider for the ``none`` vendor."""

    name = "none"

    def prepare_connection(self) -> None:
        return None

    def acquire(self, key: str, ttl: float) -> bool:  # noqa: ARG002
        return True

    def release(self, key: str) -> None:  # noqa: ARG002
        return None

    def purge(self, key: str) -> None:  # noqa: ARG002
        return None

    def close(self) -> None:
        return None
