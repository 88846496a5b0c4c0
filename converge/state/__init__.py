"""Durable state backends.

Both backends implement converge.protocols.Persistence:
- S3State       - JSON objects in an S3 bucket (production)
- DatabaseState - JSON rows behind DatabaseClientProtocol (local runs, tests)

STATE_BACKEND picks the backend create_state() builds.
"""

from typing import Optional

from converge.database import SQLiteClient
from converge.errors import StateError, StateNotFoundError
from converge.protocols import LoggerProtocol, Persistence
from converge.settings import StateSettings
from converge.state.database import DatabaseState
from converge.state.s3 import S3State, create_s3_client


async def create_state(
    integration: str,
    logger: Optional[LoggerProtocol] = None,
    settings: Optional[StateSettings] = None,
) -> Persistence:
    """Build the configured durable state backend for an integration."""
    settings = settings or StateSettings()
    if logger:
        logger.info("state_backend_selected", backend=settings.backend, integration=integration)
    if settings.backend == "sqlite":
        client = SQLiteClient(settings.database_path)
        await client.connect()
        return DatabaseState(client, integration, logger=logger)
    return S3State(integration, logger=logger)


__all__ = [
    "Persistence",
    "StateError",
    "StateNotFoundError",
    "DatabaseState",
    "S3State",
    "create_s3_client",
    "create_state",
]
