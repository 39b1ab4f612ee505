"""
Tests for logging configuration.

These tests verify:
1. JSON output carries the structured context of an event
2. Stdlib records are rendered through the same formatter
3. The configured level filters lower events
"""

import json
import logging

import pytest
import structlog
from structlog.stdlib import ProcessorFormatter

from odml.logging import configure_logging


@pytest.fixture
def restore_logging():
    """Undo global logging configuration after the test."""
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


def _lines(captured: str) -> list[dict]:
    return [json.loads(line) for line in captured.splitlines() if line.strip()]


class TestConfigureLogging:
    """Test structlog configuration."""

    def test_json_output_carries_context(self, capsys, restore_logging):
        configure_logging(json_output=True, level="INFO")
        structlog.get_logger("odml.test.json").warning("Merge refused", property="electrode")

        records = _lines(capsys.readouterr().err)

        assert records[-1]["event"] == "Merge refused"
        assert records[-1]["property"] == "electrode"
        assert records[-1]["level"] == "warning"
        assert records[-1]["logger"] == "odml.test.json"
        assert "_record" not in records[-1]

    def test_stdlib_records_use_same_format(self, capsys, restore_logging):
        configure_logging(json_output=True)
        logging.getLogger("odml.test.stdlib").warning("plain record")

        records = _lines(capsys.readouterr().err)

        assert records[-1]["event"] == "plain record"
        assert records[-1]["level"] == "warning"

    def test_level_filters(self, capsys, restore_logging):
        configure_logging(json_output=True, level="WARNING")
        structlog.get_logger("odml.test.level").info("hidden")

        assert capsys.readouterr().err == ""
