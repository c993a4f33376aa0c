"""Tests for loguru setup."""

from __future__ import annotations

import sys

import pytest
from loguru import logger

from docrag.log import setup_logger


@pytest.fixture(autouse=True)
def _restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_file_sink_receives_messages(tmp_path):
    log_file = tmp_path / "logs" / "docrag.log"
    setup_logger("INFO", str(log_file))

    logger.info("ingested inv-1")
    logger.debug("hidden detail")
    logger.remove()  # flush and close the file sink

    text = log_file.read_text(encoding="utf-8")
    assert "INFO" in text
    assert "ingested inv-1" in text
    assert "hidden detail" not in text


def test_level_is_case_insensitive(capsys):
    setup_logger("error")
    logger.warning("not shown")
    logger.error("shown")
    err = capsys.readouterr().err
    assert "shown" in err
    assert "not shown" not in err
