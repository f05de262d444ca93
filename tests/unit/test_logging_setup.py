"""Tests for logging configuration."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest
from rich.console import Console
from rich.logging import RichHandler

from slotboard.logging_setup import JsonFormatter, setup_logging


@pytest.fixture(autouse=True)
def _restore_package_logger():
    logger = logging.getLogger("slotboard")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


def test_setup_installs_single_rich_handler() -> None:
    console = Console(file=io.StringIO())
    setup_logging("DEBUG", console=console)
    logger = setup_logging("warning", console=console)

    assert logger.name == "slotboard"
    assert logger.level == logging.WARNING
    assert [type(h) for h in logger.handlers] == [RichHandler]


def test_console_output_contains_message() -> None:
    buffer = io.StringIO()
    setup_logging("INFO", console=Console(file=buffer, width=200))
    logging.getLogger("slotboard.pipeline").info("Moved x to pool")
    assert "Moved x to pool" in buffer.getvalue()


def test_json_file_receives_event_and_context(tmp_path) -> None:
    target = tmp_path / "logs" / "slotboard.jsonl"
    setup_logging("INFO", json_file=target, console=Console(file=io.StringIO()))

    logging.getLogger("slotboard.pipeline").warning(
        "Write attempt 1/3 failed", extra={"event": "persist_attempt_failed", "context": {"attempt": 1}}
    )
    for handler in logging.getLogger("slotboard").handlers:
        handler.flush()

    record = json.loads(target.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert record["level"] == "WARNING"
    assert record["logger"] == "slotboard.pipeline"
    assert record["event"] == "persist_attempt_failed"
    assert record["context"] == {"attempt": 1}
    assert record["timestamp"].endswith("Z")


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("slotboard", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]
    assert "event" not in payload


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_logging("LOUD")
