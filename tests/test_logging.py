"""Tests for declgen.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from declgen.logging import configure_logging, get_logger


def test_get_logger_nests_under_declgen() -> None:
    assert get_logger().name == "declgen"
    assert get_logger("engine").name == "declgen.engine"


def test_configure_logging_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "declgen.log"

    configure_logging()
    logger = configure_logging(verbose=True, log_file=log_file)

    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 2

    get_logger("cli").debug("Discovered %d Swift source(s)", 3)
    for handler in logger.handlers:
        handler.flush()
        if isinstance(handler, logging.FileHandler):
            handler.close()

    assert "Discovered 3 Swift source(s)" in log_file.read_text(encoding="utf-8")


def test_console_output_stays_off_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging()

    get_logger("engine").info("Generating from %d source unit(s)", 2)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[declgen] INFO Generating from 2 source unit(s)" in captured.err
