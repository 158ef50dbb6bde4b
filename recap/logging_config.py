"""Logging setup shared by the pipeline, scheduler and CLI."""

import logging

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "recap"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Install a rich handler on the package logger."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the package namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
