"""Tests for structlog configuration."""

import json
import logging

import pytest
import structlog

from lpm.config import Settings
from lpm.logging import configure


@pytest.fixture(autouse=True)
def restore_logging():
    """Put stdlib and structlog back the way they were."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_lines_file(tmp_path):
    """Test events are written as JSON lines with level and timestamp."""
    log_file = tmp_path / "logs" / "lpm.jsonl"
    configure(Settings(log_file=log_file))

    structlog.get_logger("lpm.test").warning("refresh_failed", error="boom")
    for handler in logging.getLogger().handlers:
        handler.flush()

    entries = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert entries[-1]["event"] == "refresh_failed"
    assert entries[-1]["error"] == "boom"
    assert entries[-1]["level"] == "warning"
    assert "ts" in entries[-1]


def test_level_filtering(tmp_path):
    """Test events below the configured level are dropped."""
    log_file = tmp_path / "lpm.jsonl"
    configure(Settings(log_file=log_file, log_level="WARNING"))

    logger = structlog.get_logger("lpm.test")
    logger.info("quiet")
    logger.error("loud")
    for handler in logging.getLogger().handlers:
        handler.flush()

    events = [json.loads(line)["event"] for line in log_file.read_text().splitlines()]
    assert events == ["loud"]


def test_no_log_file():
    """Test logging without a file installs only a NullHandler."""
    configure(Settings())

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.NullHandler)
    structlog.get_logger("lpm.test").info("nowhere")


def test_bad_level_falls_back_to_info(tmp_path):
    """Test an unknown level name means INFO."""
    configure(Settings(log_file=tmp_path / "lpm.jsonl", log_level="chatty"))
    assert logging.getLogger().level == logging.INFO
