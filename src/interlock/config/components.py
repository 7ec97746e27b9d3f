"""
Lock vendor enumeration and settings compatibility validation.

The vendor is the single pluggable dimension of interlock: it decides
which store arbitrates the lease between replicas.  The
:func:`validate_lock_settings` function checks that the connection
settings are sufficient for the chosen vendor.

Example::

    from interlock.config.components import LockVendor, validate_lock_settings

    warnings = validate_lock_settings(
        LockVendor.POSTGRES,
        database_url="postgresql://localhost/jobs",
    )
    for w in warnings:
        print(w.severity, w.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# ── Vendor enumeration ───────────────────────────────────────────────────


class LockVendor(str, Enum):
    """Supported lock backends."""

    NONE = "none"
    REDIS = "redis"
    DYNAMODB = "dynamodb"
    POSTGRES = "postgres"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: str | LockVendor) -> LockVendor:
        """Parse a vendor name or one of its generic aliases.

        >>> LockVendor.parse("Key-Value")
        <LockVendor.REDIS: 'redis'>
        """
        if isinstance(value, LockVendor):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        if normalized in _ALIASES:
            return _ALIASES[normalized]
        try:
            return cls(normalized)
        except ValueError:
            choices = sorted({v.value for v in cls} | set(_ALIASES))
            raise ValueError(
                f"Unknown lock vendor {value!r}. Choose one of: {', '.join(choices)}"
            ) from None

    @property
    def is_distributed(self) -> bool:
        """Whether the vendor coordinates replicas through an external store."""
        return self is not LockVendor.NONE

    @property
    def has_native_expiry(self) -> bool:
        """Whether a lease held by a crashed replica frees itself."""
        return self is LockVendor.REDIS


_ALIASES: dict[str, LockVendor] = {
    "key-value": LockVendor.REDIS,
    "kv": LockVendor.REDIS,
    "conditional-table": LockVendor.DYNAMODB,
    "aws-dynamodb": LockVendor.DYNAMODB,
    "relational": LockVendor.POSTGRES,
    "postgresql": LockVendor.POSTGRES,
    "single-app": LockVendor.NONE,
    "local": LockVendor.NONE,
}


# ── Compatibility validation ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ComponentWarning:
    """A warning or error raised by settings validation."""

    severity: str  # "info", "warning", or "error"
    message: str
    suggestion: str


def validate_lock_settings(
    vendor: LockVendor,
    *,
    redis_url: str | None = None,
    redis_host: str = "localhost:6379",
    dynamodb_endpoint: str | None = None,
    dynamodb_region: str | None = None,
    database_url: str | None = None,
    sqlite_path: str | None = None,
) -> list[ComponentWarning]:
    """Return compatibility warnings for a vendor and its connection settings.

    Raises :class:`ValueError` for *error*-severity issues (combinations
    that cannot work at runtime).
    """
    warnings: list[ComponentWarning] = []

    # Rule 1 - PostgreSQL needs a DSN
    if vendor == LockVendor.POSTGRES and not database_url:
        raise ValueError(
            "The postgres lock vendor requires a connection string. "
            "Set INTERLOCK_DATABASE_URL when using lock_vendor='postgres'."
        )

    # Rule 2 - SQLite needs a file path shared by every replica
    if vendor == LockVendor.SQLITE and not sqlite_path:
        raise ValueError(
            "The sqlite lock vendor requires a database path. "
            "Set INTERLOCK_SQLITE_PATH when using lock_vendor='sqlite'."
        )

    # Rule 3 - An endpoint override switches DynamoDB to static credentials
    if vendor == LockVendor.DYNAMODB and dynamodb_endpoint and not dynamodb_region:
        raise ValueError(
            "An AWS region is required when a DynamoDB endpoint is configured. "
            "Set INTERLOCK_DYNAMODB_REGION alongside INTERLOCK_DYNAMODB_ENDPOINT."
        )

    # Rule 4 - redis_url wins over host
    if vendor == LockVendor.REDIS and redis_url and redis_host != "localhost:6379":
        warnings.append(
            ComponentWarning(
                severity="warning",
                message="Both redis_url and redis_host are set; redis_url takes precedence.",
                suggestion="Remove INTERLOCK_REDIS_HOST or INTERLOCK_REDIS_URL.",
            )
        )

    # Rule 5 - Table-backed leases have no expiry
    if vendor.is_distributed and not vendor.has_native_expiry:
        warnings.append(
            ComponentWarning(
                severity="info",
                message=(
                    f"Leases stored by the {vendor.value} vendor do not expire; a replica "
                    "that crashes while holding one strands it."
                ),
                suggestion="Purge stranded leases with `interlock locks release <name>`.",
            )
        )

    return warnings
