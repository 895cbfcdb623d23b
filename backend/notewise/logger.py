"""Application logging utilities."""

from __future__ import annotations

import logging

from notewise.config import log_level


def configure_logging() -> logging.Logger:
    """Attach a stream handler to the package logger (once)."""
    logger = logging.getLogger("notewise")
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, log_level(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
