"""
Logging setup for scripts.

Library modules only call logging.getLogger(__name__) and never attach
handlers. A script turns their output on once at start-up:

    from grouse_nests.logging_utils import get_logger
    logger = get_logger(__name__)
    get_logger("grouse_nests", log_file=output_dir / "analysis.log")

Every record then goes to stdout and, when a log file is given, is also
appended to it, so each run leaves its selection and validation tables next
to the CSV outputs.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    return any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename).resolve() == path
        for h in logger.handlers
    )


def get_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Path | str | None = None,
) -> logging.Logger:
    """
    Return a named logger writing to stdout, and optionally to ``log_file``.

    Repeated calls reuse the handlers already attached, so a logger never
    prints the same line twice. The log file's directory is created if needed.
    """
    logger = logging.getLogger(name)
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter())
        logger.addHandler(handler)
        logger.setLevel(level)

    if log_file is not None:
        path = Path(log_file).resolve()
        if not _has_file_handler(logger, path):
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(_formatter())
            logger.addHandler(file_handler)
    return logger
