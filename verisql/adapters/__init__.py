"""
Adapters module for VeriSQL.

Database adapters (SQLite, Postgres) used by the database-access service.
"""

from .database_adapter import (
    DatabaseAdapter,
    DatabaseType,
    ConnectionConfig,
    DatabaseError,
    DatabaseConnectionError,
    QueryExecutionError
)
from .sqlite_adapter import SQLiteAdapter, create_sqlite_adapter
from .postgres_adapter import PostgresAdapter, create_postgres_adapter
from .factory import create_adapter_from_url, detect_database_type

__all__ = [
    "DatabaseAdapter",
    "DatabaseType",
    "ConnectionConfig",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryExecutionError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "create_sqlite_adapter",
    "create_postgres_adapter",
    "create_adapter_from_url",
    "detect_database_type",
]
