"""Tests for fermata.core.logging module."""

from __future__ import annotations

import json
import logging

from fermata.core.config import LogConfig
from fermata.core.logging import (
    SENSITIVE_PATTERNS,
    FermataLogger,
    OperationContext,
    REDACTED,
    _redact,
    add_operation_context,
    build_processors,
    redact_sensitive_fields,
    configure_logging,
    get_current_context,
    get_logger,
    with_context,
)


class TestSensitivePatterns:
    """Tests for sensitive field detection and sanitization."""

    def test_known_sensitive_patterns(self):
        assert "api_key" in SENSITIVE_PATTERNS
        assert "token" in SENSITIVE_PATTERNS
        assert "password" in SENSITIVE_PATTERNS
        assert "secret" in SENSITIVE_PATTERNS

    def test_redacts_mixed_case_keys(self):
        assert _redact("API_KEY", "sk-12345") == REDACTED
        assert _redact("refresh_Token", "abc") == REDACTED

    def test_preserves_safe_values(self):
        assert _redact("attempt", 2) == 2
        assert _redact("kind", "network") == "network"

    def test_redacts_nested_context(self):
        """Error context maps are redacted at any depth."""
        event_dict = {
            "event": "retry.exhausted",
            "context": {"access_token": "eyJ...", "operation": "income"},
            "password": "hunter2",
        }

        result = redact_sensitive_fields(None, "info", event_dict)

        assert result["context"]["access_token"] == REDACTED
        assert result["context"]["operation"] == "income"
        assert result["password"] == REDACTED

    def test_redacts_deeply_nested_values(self):
        event_dict = {"context": {"request": {"headers": {"Authorization": "Bearer x"}}}}
        result = redact_sensitive_fields(None, "info", event_dict)
        assert result["context"]["request"]["headers"]["Authorization"] == REDACTED

    def test_processor_chain_renderer(self):
        json_chain = build_processors("json", include_timestamps=False, include_context=False)
        assert redact_sensitive_fields in json_chain
        assert add_operation_context not in json_chain
        assert type(json_chain[-1]).__name__ == "JSONRenderer"


class TestOperationContext:
    """Tests for OperationContext and the context variable."""

    def test_generates_run_id(self):
        a = OperationContext(operation="dashboard")
        b = OperationContext(operation="dashboard")
        assert a.run_id != b.run_id

    def test_with_component(self):
        ctx = OperationContext(operation="dashboard").with_component("retry")
        assert ctx.component == "retry"
        assert ctx.operation == "dashboard"

    def test_as_child(self):
        parent = OperationContext(operation="dashboard")
        child = parent.as_child("income")
        assert child.parent_run_id == parent.run_id
        assert child.run_id != parent.run_id
        assert child.operation == "income"
        assert child.to_dict()["parent_run_id"] == parent.run_id

    def test_to_dict_omits_missing_parent(self):
        assert "parent_run_id" not in OperationContext(operation="x").to_dict()

    def test_with_context_sets_and_resets(self):
        assert get_current_context() is None
        ctx = OperationContext(operation="dashboard")
        with with_context(ctx) as active:
            assert active is ctx
            assert get_current_context() is ctx
        assert get_current_context() is None

    def test_add_context_processor(self):
        ctx = OperationContext(operation="dashboard", component="settlement")
        with with_context(ctx):
            event = add_operation_context(None, "info", {"event": "x", "component": "retry"})
        assert event["operation"] == "dashboard"
        assert event["run_id"] == ctx.run_id
        # Explicit bindings win
        assert event["component"] == "retry"


class TestFermataLogger:
    """Tests for the FermataLogger class."""

    def test_create_logger_with_component(self):
        logger = FermataLogger("retry")
        assert logger._component == "retry"
        assert logger._context == {"component": "retry"}

    def test_get_logger_with_initial_context(self):
        logger = get_logger("settlement", operation="dashboard")
        assert logger._context["operation"] == "dashboard"

    def test_bind_returns_new_logger(self):
        logger = get_logger("retry")
        bound = logger.bind(attempt=1)
        assert bound is not logger
        assert bound._context["attempt"] == 1
        assert "attempt" not in logger._context

    def test_unbind(self):
        logger = get_logger("retry", attempt=1, kind="network")
        unbound = logger.unbind("attempt")
        assert "attempt" not in unbound._context
        assert unbound._context["kind"] == "network"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys):
        configure_logging(level="INFO", format="json", include_timestamps=False)
        get_logger("retry").info("retry.scheduled", attempt=1, api_key="sk-1")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["event"] == "retry.scheduled"
        assert data["component"] == "retry"
        assert data["attempt"] == 1
        assert data["api_key"] == REDACTED
        assert data["level"] == "info"
        assert "timestamp" not in data

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", format="json")
        logger = get_logger("retry")
        logger.info("hidden")
        logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_timestamps_included(self, capsys):
        configure_logging(level="INFO", format="json")
        get_logger("retry").info("event")
        data = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert "timestamp" in data

    def test_context_included(self, capsys):
        configure_logging(level="INFO", format="json")
        ctx = OperationContext(operation="dashboard")
        with with_context(ctx):
            get_logger("settlement").info("settlement.started")
        data = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert data["operation"] == "dashboard"
        assert data["run_id"] == ctx.run_id

    def test_console_format_writes_stderr(self, capsys):
        configure_logging(level="INFO", format="console")
        get_logger("retry").warning("retry.exhausted", attempts=3)
        captured = capsys.readouterr()
        assert "retry.exhausted" in captured.err

    def test_replaces_root_handlers(self):
        configure_logging(format="json")
        configure_logging(format="json")
        assert len(logging.getLogger().handlers) == 1

    def test_from_log_config(self, capsys):
        config = LogConfig(level="DEBUG", format="json")
        configure_logging(
            level=config.level,
            format=config.format,
            include_timestamps=config.include_timestamps,
            include_context=config.include_context,
        )
        get_logger("errors").debug("error_classified", kind="network")
        assert "error_classified" in capsys.readouterr().out
