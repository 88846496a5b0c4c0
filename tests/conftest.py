"""Pytest configuration for the converge test suite.

Key Principles:
- Use in-memory SQLite for durable state
- Fake collaborators (secret store, mailer, PGP codec, GraphQL) at the
  protocol seams; httpx.MockTransport for the HTTP clients
- Each test gets fresh state
"""

import sys
from pathlib import Path

import pytest

# tests directory (for fixtures.*)
tests_root = Path(__file__).parent
if str(tests_root) not in sys.path:
    sys.path.insert(0, str(tests_root))


# =============================================================================
# IMPORT FIXTURES FROM FIXTURES PACKAGE
# =============================================================================

from fixtures.database import database_state, sqlite_db  # noqa: E402,F401
from fixtures.fakes import (  # noqa: E402,F401
    fake_codec,
    fake_gql,
    fake_mailer,
    fake_vault,
    frozen_clock,
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep a developer's environment and .env out of settings."""
    from converge.settings import reset_settings

    for key in (
        "RUNNER_TIMEOUT",
        "DRY_RUN",
        "RUN_ONCE",
        "SLEEP_DURATION_SECS",
        "RUNNER_USE_FEATURE_TOGGLE",
        "PROMETHEUS_PORT",
        "LOG_LEVEL",
        "COMPARE_SHA",
        "STATE_BACKEND",
        "STATE_DATABASE_PATH",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (may use mocks)"
    )
    config.addinivalue_line(
        "markers", "integration: Tests that run several components together"
    )
    config.addinivalue_line(
        "markers", "slow: Slow-running tests"
    )
