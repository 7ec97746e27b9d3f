"""
Tests for the logging module.

Tests verify:
- Context binding reaches every log line
- JSON output is Elasticsearch compatible
- Service metadata is attached
"""

import structlog
from structlog.testing import capture_logs

from interlock.logging import (
    LogContext,
    _add_service_metadata,
    _elasticsearch_compatible,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


class TestProcessors:
    """Test the custom structlog processors."""

    def test_service_metadata_added(self):
        """Service metadata is stamped on every event."""
        event = _add_service_metadata(None, "info", {"event": "tick"})
        assert "service.name" in event

    def test_service_metadata_not_overwritten(self):
        """An explicit service name is kept."""
        event = _add_service_metadata(None, "info", {"event": "tick", "service.name": "billing"})
        assert event["service.name"] == "billing"

    def test_elasticsearch_field_names(self):
        """Fields are renamed for Elasticsearch."""
        event = _elasticsearch_compatible(
            None, "info", {"event": "tick", "timestamp": "2026-01-01T00:00:00Z", "level": "info"}
        )
        assert event["@timestamp"] == "2026-01-01T00:00:00Z"
        assert event["log.level"] == "info"
        assert "timestamp" not in event
        assert "level" not in event


class TestConfigureLogging:
    """Test configure_logging wiring."""

    def test_json_format_uses_json_renderer(self):
        """JSON format ends in the JSON renderer."""
        configure_logging(level="DEBUG", json_format=True, service="billing-cron")

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert _elasticsearch_compatible in processors

    def test_console_format_uses_console_renderer(self):
        """Console format ends in the console renderer."""
        configure_logging(level="INFO", json_format=False)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert _elasticsearch_compatible not in processors

    def test_service_name_applied(self):
        """The service name reaches the processors."""
        configure_logging(json_format=True, service="billing-cron")
        event = _add_service_metadata(None, "info", {"event": "tick"})
        assert event["service.name"] == "billing-cron"

    def test_timestamp_optional(self):
        """Timestamps can be turned off."""
        configure_logging(json_format=True, add_timestamp=False)

        processors = structlog.get_config()["processors"]
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)


class TestContextManagement:
    """Test context bind/unbind operations."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_context_reaches_log_lines(self):
        """Bound context appears on later lines."""
        bind_context(job="billing")
        event = structlog.contextvars.merge_contextvars(None, "info", {"event": "tick"})

        assert event["job"] == "billing"

    def test_get_logger_emits_events(self):
        """Module loggers emit structured events."""
        with capture_logs() as logs:
            get_logger("test").info("scheduler_started", job="billing")

        assert logs == [{"event": "scheduler_started", "job": "billing", "log_level": "info"}]

    def test_unbind_context(self):
        """Unbinding drops only the named keys."""
        bind_context(job="billing", vendor="redis")
        unbind_context("vendor")

        assert structlog.contextvars.get_contextvars() == {"job": "billing"}

    def test_log_context_scoped(self):
        """LogContext binds only inside the block."""
        with LogContext(job="billing"):
            assert structlog.contextvars.get_contextvars()["job"] == "billing"

        assert "job" not in structlog.contextvars.get_contextvars()
