# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for observability context, events, formatters and syslog."""

import io
import json
import logging
import socket
import pytest
from pytest_mock import MockerFixture
from src.core.observability import (
    ConsoleFormatter,
    JSONFormatter,
    LoggerFactory,
    LogLevel,
    ObservabilityScope,
    RunScope,
    TenantScope,
    add_syslog_handler,
    clear_context,
    create_dispatch_event,
    get_correlation_id,
    get_frequency,
    get_logger,
    get_tenant_id,
    initialize_logging,
    set_correlation_id,
    syslog_tag,
)
from src.core.observability.events import truncate


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    if LoggerFactory._handler is not None:
        root.removeHandler(LoggerFactory._handler)
        LoggerFactory._handler = None
    root.handlers[:] = handlers
    root.setLevel(level)


class TestContext:
    """Tests for scoped context propagation."""

    def test_run_scope_generates_correlation_id(self) -> None:
        """
        A run scope always carries a correlation id and frequency.
        """
        with RunScope("hourly"):
            cid = get_correlation_id()
            assert cid is not None
            assert get_frequency() == "hourly"
        assert get_correlation_id() is None
        assert get_frequency() is None

    def test_tenant_scope_nests(self) -> None:
        with RunScope("daily"):
            cid = get_correlation_id()
            with TenantScope("u1"):
                assert get_tenant_id() == "u1"
                assert get_correlation_id() == cid
            assert get_tenant_id() is None

    def test_explicit_correlation_id(self) -> None:
        with ObservabilityScope(correlation_id="abc"):
            assert get_correlation_id() == "abc"

    def test_set_and_clear(self) -> None:
        cid = set_correlation_id()
        assert get_correlation_id() == cid
        clear_context()
        assert get_correlation_id() is None


class TestEvents:
    """Tests for dispatch events."""

    def test_context_auto_populated(self) -> None:
        """
        Events pick up correlation id, frequency and tenant from context.
        """
        with RunScope("weekly"), TenantScope("u7"):
            event = create_dispatch_event("tenant_launched", pid=12, runner="/r")
            cid = get_correlation_id()
        assert event.correlation_id == cid
        assert event.frequency == "weekly"
        assert event.tenant_id == "u7"
        assert event.level == LogLevel.INFO

    def test_explicit_fields_win(self) -> None:
        with TenantScope("u7"):
            event = create_dispatch_event("tenant_resolution_failed", tenant_id="ghost")
        assert event.tenant_id == "ghost"

    def test_error_truncated(self) -> None:
        event = create_dispatch_event("tenant_error", level=LogLevel.ERROR, error="x" * 500)
        assert len(event.error) == 200
        assert event.error.endswith("...")

    def test_truncate(self) -> None:
        assert truncate(None) is None
        assert truncate("short") == "short"
        assert truncate("abcdef", max_length=5) == "ab..."


class TestFormatters:
    """Tests for the console and JSON formatters."""

    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("src.test", logging.INFO, __file__, 1, "START hourly cron run", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_merges_context_and_event(self) -> None:
        record = self._record(
            context={"correlation_id": "c1", "frequency": "hourly"},
            event_data={"event": "run_start", "tenant_count": 3},
        )
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "START hourly cron run"
        assert entry["level"] == "INFO"
        assert entry["correlation_id"] == "c1"
        assert entry["tenant_count"] == 3

    def test_console_formatter_suffix(self) -> None:
        record = self._record(context={"tenant_id": "u1"}, event_data={"event": "x", "pid": 5})
        line = ConsoleFormatter().format(record)
        assert "INFO - src.test - START hourly cron run" in line
        assert line.endswith("[tenant_id=u1 pid=5]")

    def test_console_formatter_plain(self) -> None:
        line = ConsoleFormatter().format(self._record())
        assert line.endswith("START hourly cron run")


class TestStructuredLogger:
    """Tests for the structured logger and factory."""

    def test_event_logged_at_its_level(
        self, restore_root_logger: None
    ) -> None:
        """
        Events are emitted as one JSON line with context and payload.
        """
        stream = io.StringIO()
        initialize_logging(level="DEBUG", log_format="json", stream=stream)
        logger = get_logger("src.test.events")
        with RunScope("hourly"), TenantScope("u1"):
            logger.event(create_dispatch_event("tenant_launch_failed", level=LogLevel.ERROR, error="e"))

        entry = json.loads(stream.getvalue().strip())
        assert entry["level"] == "ERROR"
        assert entry["message"] == "tenant_launch_failed"
        assert entry["tenant_id"] == "u1"
        assert entry["frequency"] == "hourly"
        assert entry["error"] == "e"

    def test_reinitialize_replaces_handler(self, restore_root_logger: None) -> None:
        first = initialize_logging(stream=io.StringIO())
        second = initialize_logging(stream=io.StringIO())
        root = logging.getLogger()
        assert second in root.handlers
        assert first not in root.handlers

    def test_loggers_cached(self) -> None:
        assert get_logger("src.test.cache") is get_logger("src.test.cache")

    def test_level_applies_to_stream_only(self, restore_root_logger: None) -> None:
        """
        A quiet stream level does not filter INFO records for other handlers.
        """
        stream = io.StringIO()
        initialize_logging(level="WARNING", stream=stream)
        seen: list[str] = []
        collector = logging.Handler(level=logging.INFO)
        collector.emit = lambda record: seen.append(record.getMessage())
        logging.getLogger().addHandler(collector)

        get_logger("src.test.levels").info("START hourly cron run")
        get_logger("src.test.levels").warning("disk nearly full")

        assert seen == ["START hourly cron run", "disk nearly full"]
        assert "START" not in stream.getvalue()
        assert "disk nearly full" in stream.getvalue()

    def test_debug_level_lowers_root(self, restore_root_logger: None) -> None:
        initialize_logging(level="DEBUG", stream=io.StringIO())
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_rejected(self, restore_root_logger: None) -> None:
        with pytest.raises(ValueError):
            initialize_logging(level="LOUD", stream=io.StringIO())

    def test_bracketing_reaches_syslog_at_warning_level(
        self, restore_root_logger: None
    ) -> None:
        """
        START lines are delivered to syslog even when stderr only shows warnings.
        """
        receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        receiver.bind(("127.0.0.1", 0))
        receiver.settimeout(5)
        port = receiver.getsockname()[1]
        initialize_logging(level="WARNING", stream=io.StringIO())
        handler = add_syslog_handler(address=f"127.0.0.1:{port}", tag=syslog_tag("hourly"))
        try:
            get_logger("src.test.syslog").info("START hourly cron run")
            data = receiver.recv(4096)
        finally:
            logging.getLogger().removeHandler(handler)
            handler.close()
            receiver.close()

        assert b"openshift-origin-cron-hourly: START hourly cron run" in data


class TestSyslog:
    """Tests for the syslog handler."""

    def test_tag(self) -> None:
        assert syslog_tag("hourly") == "openshift-origin-cron-hourly"
        assert syslog_tag() == "openshift-origin-cron"

    def test_handler_added_with_tag(self, mocker: MockerFixture) -> None:
        """
        Records are forwarded under the per-frequency ident.
        """
        handler_cls = mocker.patch("src.core.observability.syslog_handler.logging.handlers.SysLogHandler")
        target = mocker.MagicMock()

        handler = add_syslog_handler(logger=target, tag=syslog_tag("daily"))

        assert handler is handler_cls.return_value
        assert handler.ident == "openshift-origin-cron-daily: "
        assert handler_cls.call_args.kwargs["address"] == "/dev/log"
        target.addHandler.assert_called_once_with(handler)

    def test_udp_address(self, mocker: MockerFixture) -> None:
        handler_cls = mocker.patch("src.core.observability.syslog_handler.logging.handlers.SysLogHandler")
        add_syslog_handler(logger=mocker.MagicMock(), address="loghost:514")
        assert handler_cls.call_args.kwargs["address"] == ("loghost", 514)

    def test_unreachable_syslog(self, mocker: MockerFixture) -> None:
        """
        A missing syslog socket is reported and skipped.
        """
        mocker.patch(
            "src.core.observability.syslog_handler.logging.handlers.SysLogHandler",
            side_effect=FileNotFoundError("/dev/log"),
        )
        target = mocker.MagicMock()
        assert add_syslog_handler(logger=target) is None
        target.addHandler.assert_not_called()
