"""Unit tests for structlog configuration."""

import json

import pytest
import structlog

from fanout.observability.context import correlation_id_context
from fanout.observability.logging import (
    add_correlation_id_processor,
    bind_context,
    clear_context,
    clip_query_processor,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()


class TestCorrelationProcessor:
    """Tests for add_correlation_id_processor."""

    def test_without_id(self):
        event = add_correlation_id_processor(None, "info", {"event": "x"})
        assert event["correlation_id"] == "none"

    def test_with_id(self):
        with correlation_id_context("abc"):
            event = add_correlation_id_processor(None, "info", {"event": "x"})
        assert event["correlation_id"] == "abc"


class TestConfigureLogging:
    """Tests for rendered output."""

    def test_json_output(self, capsys):
        """Test JSON lines carry level, component and correlation id."""
        configure_logging(level="INFO", json_output=True, add_timestamp=False)

        with correlation_id_context("req-9"):
            get_logger("orchestrator").info("search_started", sources=3)

        entry = json.loads(capsys.readouterr().err.strip())
        assert entry["event"] == "search_started"
        assert entry["component"] == "orchestrator"
        assert entry["correlation_id"] == "req-9"
        assert entry["level"] == "info"
        assert entry["sources"] == 3

    def test_level_filtering(self, capsys):
        """Test entries below the configured level are dropped."""
        configure_logging(level="WARNING", json_output=True)
        get_logger().info("hidden")
        get_logger().warning("shown")

        output = capsys.readouterr().err
        assert "hidden" not in output
        assert "shown" in output

    def test_bound_context(self, capsys):
        """Test bind_context adds keys to later entries."""
        configure_logging(json_output=True, add_timestamp=False)
        bind_context(request_id="r1")
        get_logger().info("event")

        entry = json.loads(capsys.readouterr().err.strip())
        assert entry["request_id"] == "r1"


class TestClipQuery:
    """Tests for clip_query_processor."""

    def test_long_query_clipped(self):
        event = clip_query_processor(None, "info", {"query": "x" * 500})
        assert event["query"] == "x" * 100 + "..."

    def test_short_query_untouched(self):
        event = clip_query_processor(None, "info", {"query": "short"})
        assert event["query"] == "short"
