"""
Unit tests for logging configuration.
"""

import io
import json
import logging
import sys

import pytest
import structlog

from unit_manager.infrastructure.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from unit_manager.infrastructure.logging.logging_config import add_color, human_readable_renderer


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()
    logging.basicConfig(force=True)


class TestRenderers:
    """Tests for the text log processors."""

    def test_human_readable_renderer(self):
        line = human_readable_renderer(
            None,
            "info",
            {
                "timestamp": "2025-01-14 10:30:45",
                "level": "info",
                "logger": "unit_manager",
                "event": "Operation succeeded",
                "unit": "demo.service",
                "duration_ms": 1.5,
            },
        )

        assert line == (
            "[2025-01-14 10:30:45] [INFO] [unit_manager] Operation succeeded "
            "duration_ms=1.5 unit=demo.service"
        )

    def test_renderer_appends_exception(self):
        line = human_readable_renderer(
            None, "error", {"level": "error", "event": "boom", "exception": "Traceback ..."}
        )

        assert line.endswith("boom\nTraceback ...")

    def test_no_color_without_terminal(self, monkeypatch):
        monkeypatch.setattr(sys, "stderr", io.StringIO())

        assert add_color(None, "info", {"level": "info"}) == {"level": "info"}


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys):
        configure_logging(log_level="INFO", log_format="json")
        bind_context(bus="system")

        get_logger("unit_manager.test").info("Unit started", unit="demo.service")

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "Unit started"
        assert record["unit"] == "demo.service"
        assert record["bus"] == "system"
        assert record["level"] == "info"

    def test_level_filtering(self, capsys):
        configure_logging(log_level="WARNING", log_format="text")

        logger = get_logger("unit_manager.test")
        logger.info("hidden")
        logger.warning("shown", unit="demo.service")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown unit=demo.service" in err

    def test_stdout_stays_clean(self, capsys):
        configure_logging(log_level="DEBUG")

        get_logger("unit_manager.test").debug("debugging")

        assert capsys.readouterr().out == ""


class TestColoredRendering:
    """Tests for text rendering on a terminal."""

    class Terminal(io.StringIO):
        def isatty(self):
            return True

    def test_color_codes_survive_rendering(self, monkeypatch):
        monkeypatch.setattr(sys, "stderr", self.Terminal())

        event_dict = add_color(None, "info", {"level": "info", "event": "Unit started"})
        line = human_readable_renderer(None, "info", event_dict)

        assert line.startswith("[\033[32mINFO\033[0m]")
        assert "\033[32M" not in line
