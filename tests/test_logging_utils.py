"""
Tests for grouse_nests.logging_utils.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from grouse_nests.logging_utils import get_logger


@pytest.fixture()
def fresh_logger():
    names = []

    def _make(name: str) -> str:
        names.append(name)
        return name

    yield _make
    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_repeated_calls_do_not_duplicate_handlers(fresh_logger) -> None:
    name = fresh_logger("grouse_nests.test.stdout")
    get_logger(name)
    logger = get_logger(name)
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_log_file_receives_records(fresh_logger, tmp_path: Path) -> None:
    name = fresh_logger("grouse_nests.test.file")
    log_file = tmp_path / "run" / "analysis.log"
    logger = get_logger(name, log_file=log_file)
    get_logger(name, log_file=log_file)
    assert len(logger.handlers) == 2

    logger.info("selected %d covariates", 4)
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "| INFO     | grouse_nests.test.file | selected 4 covariates" in text
