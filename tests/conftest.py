"""Shared fixtures."""
import logging

import pytest

from exchange_planner.app_logging import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() so caplog sees package records in every test."""
    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    yield
    logger.handlers, level, logger.propagate = saved[0], saved[1], saved[2]
    logger.setLevel(level)
