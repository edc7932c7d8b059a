"""Logging configuration helpers."""

import logging

LOGGER_NAME = "exchange_planner"
LOG_FORMAT = "%(levelname)s: %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a single stderr stream handler to the package logger.

    Calling it again only updates the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
