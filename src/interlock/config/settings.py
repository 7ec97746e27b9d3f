"""
Centralized settings for interlock.

Manifesto:
    Every replica of a job must agree on where the lease lives.  One
    validated, cached settings object read from ``INTERLOCK_*`` variables
    (or a ``.env`` file) keeps the fleet pointed at the same store.

The cache holds configuration values only.  Live connections belong to
the lock provider of each scheduler and are never cached here.

Tags:
    interlock, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from interlock.errors import ConfigError

from .components import ComponentWarning, LockVendor, validate_lock_settings


class InterlockSettings(BaseSettings):
    """Interlock configuration.

    All fields can be set via ``INTERLOCK_*`` environment variables (e.g.
    ``INTERLOCK_LOCK_VENDOR=redis``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="INTERLOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Lock ─────────────────────────────────────────────────────
    lock_vendor: LockVendor | None = Field(
        default=None,
        description="Lock backend; unset lets each job decide",
    )
    key_prefix: str = Field(default="Interlock", description="Namespace prefix for lease keys")

    # ── Redis ────────────────────────────────────────────────────
    redis_host: str = Field(default="localhost:6379")
    redis_password: str | None = Field(default=None)
    redis_db: int = Field(default=0)
    redis_url: str | None = Field(default=None, description="Overrides host/password/db")

    # ── DynamoDB ─────────────────────────────────────────────────
    dynamodb_table: str = Field(default="Interlock")
    dynamodb_region: str | None = Field(default=None)
    dynamodb_endpoint: str | None = Field(
        default=None,
        description="Endpoint override; leave empty to use the shared AWS profile",
    )
    dynamodb_access_key_id: str | None = Field(default=None)
    dynamodb_secret_access_key: str | None = Field(default=None)
    dynamodb_session_token: str | None = Field(default=None)
    dynamodb_read_capacity: int = Field(default=10)
    dynamodb_write_capacity: int = Field(default=10)

    # ── Relational ───────────────────────────────────────────────
    database_url: str | None = Field(default=None, description="PostgreSQL connection string")
    sqlite_path: str | None = Field(default=None)
    lock_table: str = Field(default="interlock_locks")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto")

    # ── Computed ─────────────────────────────────────────────────
    component_warnings: list[ComponentWarning] = Field(default_factory=list, exclude=True)

    @field_validator("lock_vendor", mode="before")
    @classmethod
    def _parse_vendor(cls, value: object) -> object:
        if value is None or value == "":
            return None
        return LockVendor.parse(value)  # type: ignore[arg-type]

    @field_validator("lock_table")
    @classmethod
    def _check_table_name(cls, value: str) -> str:
        # Interpolated into DDL, so only plain identifiers are accepted
        if not value.replace("_", "").isalnum():
            raise ValueError(f"lock_table must be a plain identifier, got {value!r}")
        return value

    @field_validator("redis_host")
    @classmethod
    def _check_redis_host(cls, value: str) -> str:
        name, sep, port = value.rpartition(":")
        if sep and (not name or not port.isdigit() or not 0 < int(port) < 65536):
            raise ValueError(f"redis_host must be host or host:port, got {value!r}")
        return value

    @model_validator(mode="after")
    def _validate_vendor(self) -> InterlockSettings:
        """Run vendor/settings validation after all fields are set."""
        if self.lock_vendor is not None:
            warnings = self.check_vendor(self.lock_vendor)
            object.__setattr__(self, "component_warnings", warnings)
        return self

    def check_vendor(self, vendor: LockVendor) -> list[ComponentWarning]:
        """Validate these settings against ``vendor``; raises ValueError on errors."""
        return validate_lock_settings(
            vendor,
            redis_url=self.redis_url,
            redis_host=self.redis_host,
            dynamodb_endpoint=self.dynamodb_endpoint,
            dynamodb_region=self.dynamodb_region,
            database_url=self.database_url,
            sqlite_path=self.sqlite_path,
        )


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, InterlockSettings] = {}


def get_settings(*, _force_reload: bool = False) -> InterlockSettings:
    """Load, validate, and cache an :class:`InterlockSettings` instance.

    Raises:
        ConfigError: an ``INTERLOCK_*`` value failed validation
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    try:
        settings = InterlockSettings()
    except ValidationError as e:
        raise ConfigError(f"Invalid INTERLOCK_* settings: {e}", cause=e) from e
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    _settings_cache.clear()
