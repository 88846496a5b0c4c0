"""Root conftest.py for converge tests.

This file MUST be at the repository root for fixtures to be discovered
when running tests from any subdirectory.
"""

import pytest
from unittest.mock import MagicMock


@pytest.fixture
def mock_logger():
    """Create a mock logger satisfying LoggerProtocol.

    bind() returns the same mock so calls made by bound child loggers are
    visible on the fixture.
    """
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    logger.bind = MagicMock(return_value=logger)
    return logger
