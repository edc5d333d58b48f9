"""Tests for structured logging setup."""

import json

import structlog

from docshard.core.config import Settings
from docshard.core.logging import bind_log_context, setup_logging


def last_record(capsys):
    return json.loads(capsys.readouterr().err.strip().splitlines()[-1])


class TestSetupLogging:
    """Test log format selection."""

    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_format(self, capsys):
        """JSON output carries the event name and keyword context."""
        setup_logging("json")
        structlog.get_logger().info("rewrite.task.completed", task_id=3)

        record = last_record(capsys)
        assert record["event"] == "rewrite.task.completed"
        assert record["task_id"] == 3
        assert record["level"] == "info"

    def test_debug_filtered_by_default(self, capsys):
        """Debug events are dropped unless debug is enabled."""
        setup_logging("plain", debug=False)
        structlog.get_logger().debug("tasks.plan", plan="x")
        assert capsys.readouterr().err == ""

        setup_logging("plain", debug=True)
        structlog.get_logger().debug("tasks.plan", plan="x")
        assert "tasks.plan" in capsys.readouterr().err

    def test_defaults_come_from_settings(self, capsys, monkeypatch):
        """Without arguments the configured format and level apply."""
        monkeypatch.setattr(
            "docshard.core.logging.SETTINGS",
            Settings(LOG_FORMAT="json", LOG_DEBUG=True),
        )
        setup_logging()
        structlog.get_logger().debug("sections.split", sections=4)

        record = last_record(capsys)
        assert record["event"] == "sections.split"
        assert record["level"] == "debug"

    def test_bound_context_is_merged(self, capsys):
        """Values bound for a block appear on every event inside it."""
        setup_logging("json")
        logger = structlog.get_logger()

        with bind_log_context(run_id="run-1"):
            logger.info("rewrite.run.start")
            assert last_record(capsys)["run_id"] == "run-1"

        logger.info("rewrite.run.complete")
        assert "run_id" not in last_record(capsys)
