"""Tests for structlog configuration and context helpers."""

from __future__ import annotations

import structlog

from examvault.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestLogging:
    def test_configure_and_log(self) -> None:
        configure_logging(level="DEBUG", json_format=True, service="examvault-test")
        logger = get_logger("examvault.test")
        logger.info("entity_added", entity="Role")

    def test_bind_and_clear(self) -> None:
        clear_context()
        bind_context(request_id="abc")
        assert structlog.contextvars.get_contextvars()["request_id"] == "abc"
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_scopes_values(self) -> None:
        clear_context()
        with LogContext(operation="archive_and_purge"):
            assert structlog.contextvars.get_contextvars()["operation"] == "archive_and_purge"
        assert "operation" not in structlog.contextvars.get_contextvars()

    def test_nested_log_context_restores_outer(self) -> None:
        clear_context()
        with LogContext(operation="outer", entity="Role"):
            with LogContext(operation="inner"):
                assert structlog.contextvars.get_contextvars()["operation"] == "inner"
            bound = structlog.contextvars.get_contextvars()
            assert bound["operation"] == "outer"
            assert bound["entity"] == "Role"
        assert structlog.contextvars.get_contextvars() == {}
