"""Logging setup for hapke."""

import logging

LOGGER_NAME = "hapke"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Safe to call repeatedly; handlers are only attached once.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level if isinstance(level, int) else level.upper())

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.debug("Logging initialized")
    return logger
