"""Tests for lock vendor parsing and settings compatibility rules."""

import pytest

from interlock.config.components import ComponentWarning, LockVendor, validate_lock_settings


class TestLockVendorParse:
    """Test vendor names and aliases."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("redis", LockVendor.REDIS),
            ("REDIS", LockVendor.REDIS),
            (" key_value ", LockVendor.REDIS),
            ("kv", LockVendor.REDIS),
            ("dynamodb", LockVendor.DYNAMODB),
            ("conditional-table", LockVendor.DYNAMODB),
            ("postgres", LockVendor.POSTGRES),
            ("postgresql", LockVendor.POSTGRES),
            ("relational", LockVendor.POSTGRES),
            ("sqlite", LockVendor.SQLITE),
            ("none", LockVendor.NONE),
            ("single-app", LockVendor.NONE),
        ],
    )
    def test_parse(self, raw, expected):
        """Names and aliases map to vendors."""
        assert LockVendor.parse(raw) is expected

    def test_parse_passes_enum_through(self):
        """A vendor passes through unchanged."""
        assert LockVendor.parse(LockVendor.SQLITE) is LockVendor.SQLITE

    def test_unknown_vendor_lists_choices(self):
        """The error for an unknown vendor lists the valid names."""
        with pytest.raises(ValueError, match="Unknown lock vendor 'etcd'") as exc:
            LockVendor.parse("etcd")
        assert "redis" in str(exc.value)
        assert "dynamodb" in str(exc.value)


class TestLockVendorProperties:
    """Test distributed/expiry flags."""

    def test_only_none_is_local(self):
        """Every vendor but none coordinates replicas."""
        assert not LockVendor.NONE.is_distributed
        assert all(v.is_distributed for v in LockVendor if v is not LockVendor.NONE)

    def test_only_redis_expires(self):
        """Only Redis expires leases on its own."""
        assert [v for v in LockVendor if v.has_native_expiry] == [LockVendor.REDIS]


class TestValidateLockSettings:
    """Test vendor/settings compatibility rules."""

    def test_postgres_requires_dsn(self):
        """PostgreSQL needs a DSN."""
        with pytest.raises(ValueError, match="INTERLOCK_DATABASE_URL"):
            validate_lock_settings(LockVendor.POSTGRES)

    def test_sqlite_requires_path(self):
        """SQLite needs a file path."""
        with pytest.raises(ValueError, match="INTERLOCK_SQLITE_PATH"):
            validate_lock_settings(LockVendor.SQLITE)

    def test_dynamodb_endpoint_requires_region(self):
        """An endpoint override needs a region."""
        with pytest.raises(ValueError, match="region"):
            validate_lock_settings(LockVendor.DYNAMODB, dynamodb_endpoint="http://localhost:8000")

    def test_dynamodb_default_chain_needs_nothing(self):
        """The default AWS chain needs no settings."""
        warnings = validate_lock_settings(LockVendor.DYNAMODB)
        assert [w.severity for w in warnings] == ["info"]

    def test_redis_clean(self):
        """Default Redis settings raise nothing."""
        assert validate_lock_settings(LockVendor.REDIS) == []

    def test_redis_url_and_host_warns(self):
        """Setting both URL and host warns that the URL wins."""
        warnings = validate_lock_settings(
            LockVendor.REDIS, redis_url="redis://cache:6379/0", redis_host="cache:6380"
        )
        assert len(warnings) == 1
        assert warnings[0].severity == "warning"
        assert "redis_url takes precedence" in warnings[0].message

    def test_table_vendors_warn_about_stranded_leases(self):
        """Table vendors note that leases do not expire."""
        warnings = validate_lock_settings(LockVendor.SQLITE, sqlite_path="/tmp/locks.db")
        assert warnings == [
            ComponentWarning(
                severity="info",
                message=(
                    "Leases stored by the sqlite vendor do not expire; a replica "
                    "that crashes while holding one strands it."
                ),
                suggestion="Purge stranded leases with `interlock locks release <name>`.",
            )
        ]

    def test_none_vendor_clean(self):
        """The none vendor needs no settings."""
        assert validate_lock_settings(LockVendor.NONE) == []
