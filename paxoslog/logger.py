"""Loggers that write both to the terminal and to a file."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def create_logger(file_path: str) -> logging.Logger:
    """Return a logger writing to stderr and to ``file_path``, which is truncated.

    Missing parent directories are created. Calling again with the same path
    replaces the handlers rather than adding more.
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(f"paxoslog.{path.resolve()}")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT)
    terminal = logging.StreamHandler(sys.stderr)
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    for handler in (terminal, file_handler):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger