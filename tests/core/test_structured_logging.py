"""
Tests for the logging module.

Tests verify:
- JSON output uses ECS-compatible field names
- Bound context appears in subsequent logs
- DEBUG logs are suppressed at INFO level
"""

import json

from structlog.testing import capture_logs

from refresh_queue.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    unbind_context,
)
from refresh_queue.core.settings import RefreshQueueSettings


def _lines(capsys) -> list[dict]:
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    """Test JSON rendering and level filtering."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_json_output_fields(self, capsys):
        configure_logging(level="INFO", json_format=True, service="groups-updater")
        get_logger("tests.logging").info("queue_initialized", records=3)

        (entry,) = _lines(capsys)
        assert entry["event"] == "queue_initialized"
        assert entry["records"] == 3
        assert entry["log.level"] == "info"
        assert entry["service.name"] == "groups-updater"
        assert entry["log.logger"] == "tests.logging"
        assert "@timestamp" in entry

    def test_configure_from_settings(self, capsys):
        settings = RefreshQueueSettings(
            _env_file=None,
            log_level="warning",
            json_logs=True,
            service_name="dashboards-updater",
        )
        configure_from_settings(settings)
        logger = get_logger("tests.logging")
        logger.info("hidden")
        logger.warning("queue_sleeping")

        (entry,) = _lines(capsys)
        assert entry["event"] == "queue_sleeping"
        assert entry["service.name"] == "dashboards-updater"

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("tests.logging")
        logger.debug("hidden")
        logger.info("shown")

        assert [e["event"] for e in _lines(capsys)] == ["shown"]

    def test_bound_context_is_merged(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        bind_context(queue="groups")
        get_logger("tests.logging").info("send_finished")
        unbind_context("queue")
        get_logger("tests.logging").info("after")

        first, second = _lines(capsys)
        assert first["queue"] == "groups"
        assert "queue" not in second

    def test_log_context_scopes_keys(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        with LogContext(consumer="updater"):
            get_logger("tests.logging").info("inside")
        get_logger("tests.logging").info("outside")

        inside, outside = _lines(capsys)
        assert inside["consumer"] == "updater"
        assert "consumer" not in outside


class TestGetLogger:
    """Test logger creation before and after configuration."""

    def test_named_logger_binds_logger_name(self):
        logger = get_logger("tests.logging")
        with capture_logs() as logs:
            logger.info("queue_initialized")
        assert logs[0]["logger_name"] == "tests.logging"

    def test_module_level_loggers_are_lazy(self):
        from refresh_queue.scheduling import keyed_queue, ready_queue

        with capture_logs() as logs:
            keyed_queue.logger.debug("send_finished")
            ready_queue.logger.debug("queue_sleeping")

        assert [e["logger_name"] for e in logs] == [
            "refresh_queue.scheduling.keyed_queue",
            "refresh_queue.scheduling.ready_queue",
        ]

    def test_unnamed_logger(self):
        with capture_logs() as logs:
            get_logger().info("send_started")
        assert "logger_name" not in logs[0]
