"""Tests for structured logging setup."""

import json
import logging

import pytest
import structlog

from procsnap import logging as procsnap_logging
from procsnap.config import Config, LoggingConfig


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore structlog and stdlib logging after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def read_events(path):
    for handler in logging.getLogger().handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_configure_creates_log_directory(tmp_path):
    path = tmp_path / "state" / "procsnap.log"

    result = procsnap_logging.configure(Config(), log_path=path)

    assert result == path
    assert path.parent.is_dir()


def test_events_written_as_json_lines(tmp_path):
    path = tmp_path / "procsnap.log"
    procsnap_logging.configure(Config(), log_path=path)

    structlog.get_logger().info("scan_complete", accepted=3)

    (event,) = read_events(path)
    assert event["event"] == "scan_complete"
    assert event["accepted"] == 3
    assert event["level"] == "info"
    assert "ts" in event


def test_debug_filtered_at_info(tmp_path):
    path = tmp_path / "procsnap.log"
    procsnap_logging.configure(Config(), log_path=path)

    structlog.get_logger().debug("process_vanished", path="/proc/1/stat")

    assert read_events(path) == []


def test_debug_level_keeps_debug(tmp_path):
    path = tmp_path / "procsnap.log"
    config = Config(logging=LoggingConfig(level="DEBUG"))
    procsnap_logging.configure(config, log_path=path)

    structlog.get_logger().debug("record_malformed", error="short")

    assert [event["event"] for event in read_events(path)] == ["record_malformed"]


def test_stdlib_records_are_tagged(tmp_path):
    path = tmp_path / "procsnap.log"
    procsnap_logging.configure(Config(), log_path=path)

    logging.getLogger("textual").warning("plain stdlib message")

    (event,) = read_events(path)
    assert event["event"] == "plain stdlib message"
    assert event["source"] == "procsnap"
