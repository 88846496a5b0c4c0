"""DatabaseState - durable integration state in a SQL table.

One row per namespaced key, the value stored as a JSON document. Backed by
any DatabaseClientProtocol (SQLiteClient ships with converge).
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from converge.errors import StateError, StateNotFoundError
from converge.utils.serialization import from_json, to_json, to_record, utc_now

if TYPE_CHECKING:
    from converge.protocols import DatabaseClientProtocol, LoggerProtocol

INTEGRATION_STATE_DDL = """
CREATE TABLE IF NOT EXISTS integration_state (
    state_key TEXT PRIMARY KEY,
    integration TEXT NOT NULL,
    value TEXT NOT NULL,
    modified_at TEXT NOT NULL
)
"""


class DatabaseState:
    """Persistence adapter backed by DatabaseClientProtocol.

    Keys are namespaced as ``{base_path}/{integration}/{key}`` so several
    integrations can share one table.
    """

    def __init__(
        self,
        db: "DatabaseClientProtocol",
        integration: str,
        base_path: str = "state",
        logger: Optional["LoggerProtocol"] = None,
    ):
        self._db = db
        self._integration = integration
        self._base_path = base_path
        self._logger = logger
        self._schema_ready = False

    def key_path(self, key: str) -> str:
        return f"{self._base_path}/{self._integration}/{key}"

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        await self._db.execute(INTEGRATION_STATE_DDL)
        self._schema_ready = True

    async def _fetch(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            await self._ensure_schema()
            return await self._db.fetch_one(
                "SELECT value FROM integration_state WHERE state_key = :state_key",
                {"state_key": self.key_path(key)},
            )
        except Exception as e:
            raise StateError(f"error reading state key {self.key_path(key)}: {e}", key=key) from e

    async def exists(self, key: str) -> bool:
        if self._logger:
            self._logger.debug("state_exists", key=self.key_path(key))
        return await self._fetch(key) is not None

    async def get(self, key: str) -> Dict[str, Any]:
        if self._logger:
            self._logger.debug("state_get", key=self.key_path(key))
        row = await self._fetch(key)
        if row is None:
            raise StateNotFoundError(key)
        try:
            return from_json(row["value"])
        except ValueError as e:
            raise StateError(f"state key {self.key_path(key)} holds invalid JSON", key=key) from e

    async def add(self, key: str, value: Any) -> None:
        if self._logger:
            self._logger.debug("state_add", key=self.key_path(key))
        row = {
            "state_key": self.key_path(key),
            "integration": self._integration,
            "value": to_json(to_record(value)),
            "modified_at": utc_now().isoformat(),
        }
        try:
            await self._ensure_schema()
            await self._db.upsert("integration_state", row, key_columns=["state_key"])
        except Exception as e:
            raise StateError(f"error writing state key {self.key_path(key)}: {e}", key=key) from e

    async def rm(self, key: str) -> None:
        if self._logger:
            self._logger.debug("state_rm", key=self.key_path(key))
        try:
            await self._ensure_schema()
            await self._db.execute(
                "DELETE FROM integration_state WHERE state_key = :state_key",
                {"state_key": self.key_path(key)},
            )
        except Exception as e:
            raise StateError(f"error deleting state key {self.key_path(key)}: {e}", key=key) from e

    async def keys(self) -> List[str]:
        """List the keys stored for this integration, without the namespace."""
        prefix = self.key_path("")
        try:
            await self._ensure_schema()
            rows = await self._db.fetch_all(
                "SELECT state_key FROM integration_state WHERE integration = :integration ORDER BY state_key",
                {"integration": self._integration},
            )
        except Exception as e:
            raise StateError(f"error listing state keys under {prefix}: {e}") from e
        return [r["state_key"][len(prefix):] for r in rows if r["state_key"].startswith(prefix)]
