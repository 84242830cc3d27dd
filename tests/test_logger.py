"""
Tests for structlog configuration.
"""

from __future__ import annotations

import json

import pytest
import structlog

from sqs_envelope import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestLogging:
    def test_json_output(self, capsys):
        configure_logging(level="DEBUG", json=True)

        get_logger("sqs_envelope.test").info("queue client initialized", compression=True)

        line = capsys.readouterr().out.strip()
        event = json.loads(line)
        assert event["event"] == "queue client initialized"
        assert event["level"] == "INFO"
        assert event["compression"] is True
        assert "timestamp" in event

    def test_level_filters_debug(self, capsys):
        configure_logging(level="INFO")

        get_logger("sqs_envelope.test").debug("stage applied")

        assert capsys.readouterr().out == ""

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging(level="LOUD")

    def test_client_construction_is_quiet_at_info(self, capsys, make_client):
        """Building a client emits nothing above debug level."""
        configure_logging(level="INFO")

        make_client()

        assert capsys.readouterr().out == ""
