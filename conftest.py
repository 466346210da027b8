"""Global test configuration.

Keeps the project root importable and resets the shipyard logger between
tests so handlers installed by configure_logging() do not leak.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_shipyard_logger():
    yield
    logger = logging.getLogger("shipyard")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
