"""Tests for eventseries.logging_setup and request correlation IDs."""

import asyncio
import logging
import os
from unittest.mock import patch

import pytest

from eventseries.core.request_context import bind_request_id, get_request_id, request_id_var
from eventseries.logging_setup import CorrelationIdFilter, configure_logging, get_logging_status

pytestmark = pytest.mark.unit


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_default_production_mode(self):
        """Test default production mode configuration."""
        level = configure_logging()

        assert level == logging.INFO
        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("eventseries").level == logging.INFO
        assert logging.getLogger("dateutil").level == logging.WARNING
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_debug_mode(self):
        configure_logging(debug_mode=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("eventseries.series.materializer").level == logging.DEBUG
        # Third-party loggers should still be suppressed
        assert logging.getLogger("dateutil").level == logging.WARNING

    def test_force_debug_overrides_debug_mode(self):
        assert configure_logging(debug_mode=False, force_debug=True) == logging.DEBUG

    def test_force_debug_false_overrides_env(self):
        with patch.dict(os.environ, {"EVENTSERIES_DEBUG": "true"}):
            assert configure_logging(force_debug=False) == logging.INFO

    def test_env_debug(self):
        with patch.dict(os.environ, {"EVENTSERIES_DEBUG": "1"}):
            assert configure_logging() == logging.DEBUG

    def test_configured_level(self):
        assert configure_logging(log_level="warning") == logging.WARNING
        assert logging.getLogger("eventseries").level == logging.WARNING

    def test_env_level_wins_over_configured_level(self):
        with patch.dict(os.environ, {"EVENTSERIES_LOG_LEVEL": "ERROR"}):
            assert configure_logging(log_level="DEBUG") == logging.ERROR

    def test_invalid_level_is_ignored(self):
        assert configure_logging(log_level="LOUD") == logging.INFO

    def test_filter_added_once_to_existing_handlers(self):
        handler = logging.StreamHandler()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            configure_logging()
            configure_logging()
            filters = [f for f in handler.filters if isinstance(f, CorrelationIdFilter)]
            assert len(filters) == 1
        finally:
            root.removeHandler(handler)

    def test_get_logging_status(self):
        configure_logging()
        status = get_logging_status()

        assert status["root"] == "INFO"
        assert status["eventseries"] == "INFO"
        assert status["dateutil"] == "WARNING"


class TestCorrelationId:
    """Request correlation ID binding."""

    def test_default_is_placeholder(self):
        assert get_request_id() == "no-request-id"

    def test_filter_stamps_records(self):
        record = logging.LogRecord("eventseries", logging.INFO, __file__, 1, "msg", None, None)

        with bind_request_id("req-123"):
            assert CorrelationIdFilter().filter(record) is True

        assert record.request_id == "req-123"

    def test_bind_generates_and_resets(self):
        with bind_request_id() as request_id:
            assert len(request_id) == 12
            assert get_request_id() == request_id
        assert request_id_var.get() == ""

    def test_nested_bind_keeps_outer_id(self):
        with bind_request_id("outer"), bind_request_id() as inner:
            assert inner == "outer"
        assert get_request_id() == "no-request-id"

    def test_explicit_id_replaces_outer_temporarily(self):
        with bind_request_id("outer"):
            with bind_request_id("inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self):
        async def worker(request_id):
            with bind_request_id(request_id):
                await asyncio.sleep(0.01)
                return get_request_id()

        results = await asyncio.gather(worker("a"), worker("b"), worker("c"))
        assert results == ["a", "b", "c"]
