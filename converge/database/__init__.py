"""Database clients for the SQL durable state backend."""

from converge.database.sqlite_client import SQLiteClient
from converge.protocols import DatabaseClientProtocol

__all__ = [
    "DatabaseClientProtocol",
    "SQLiteClient",
]
