"""Lightweight SQLite client backing DatabaseState.

Implements DatabaseClientProtocol using aiosqlite. Used for local runs
(a file path) and tests (``:memory:``).
"""

from typing import Any, Dict, List, Optional

import aiosqlite


class SQLiteClient:
    """SQLite database client satisfying DatabaseClientProtocol."""

    def __init__(self, database_url: str = ":memory:"):
        self.database_url = database_url
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def backend(self) -> str:
        return "sqlite"

    @property
    def connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.database_url)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode = WAL")

    async def disconnect(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> None:
        await self._conn.execute(query, params or {})
        await self._conn.commit()

    async def fetch_one(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        cursor = await self._conn.execute(query, params or {})
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        cursor = await self._conn.execute(query, params or {})
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def upsert(self, table: str, data: Dict[str, Any], key_columns: List[str]) -> None:
        cols = ", ".join(data.keys())
        placeholders = ", ".join(f":{k}" for k in data.keys())
        update_cols = [k for k in data.keys() if k not in key_columns]
        set_clause = ", ".join(f"{k} = EXCLUDED.{k}" for k in update_cols)
        query = f"INSERT INTO {table} ({cols}) VALUES ({placeholders})"
        if set_clause:
            query += f" ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {set_clause}"
        await self._conn.execute(query, data)
        await self._conn.commit()

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteClient is not connected")
        return self._db
