"""
SQLite Database Adapter.

Implements DatabaseAdapter interface for SQLite databases.
Used for local development and offline demos.
"""

import sqlite3
import time
from typing import List, Dict, Any, Optional
from pathlib import Path

from .database_adapter import (
    DatabaseAdapter,
    ConnectionConfig,
    DatabaseType,
    DatabaseConnectionError,
    QueryExecutionError
)

# VM instructions between progress-handler checks
_PROGRESS_STEPS = 1000


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite implementation of DatabaseAdapter.

    Features:
    - File opened through a read-only URI (mode=ro) with query_only enabled
    - Statement timeout via the connection's progress handler
    - Schema introspection via sqlite_master and PRAGMA table_info
    """

    def __init__(self, file_path: str):
        """
        Initialize SQLite adapter.

        Args:
            file_path: Path to SQLite database file
        """
        config = ConnectionConfig(
            db_type=DatabaseType.SQLITE,
            file_path=file_path
        )
        super().__init__(config)
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Establish a read-only connection to the SQLite database."""
        file_path = self.config.file_path

        if not file_path:
            raise DatabaseConnectionError("No file path specified for SQLite database")

        if not Path(file_path).exists():
            raise DatabaseConnectionError(f"Database file not found: {file_path}")

        try:
            uri = f"{Path(file_path).resolve().as_uri()}?mode=ro"
            self._connection = sqlite3.connect(uri, uri=True)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA query_only = ON")
            self._connected = True
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Failed to connect to SQLite: {e}")

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False

    def execute_read_only(self, sql: str, timeout_seconds: Optional[float] = None) -> List[Dict[str, Any]]:
        """Execute SQL and return results as list of dicts."""
        if not self._connection:
            self.connect()

        if timeout_seconds:
            deadline = time.monotonic() + timeout_seconds
            self._connection.set_progress_handler(
                lambda: 1 if time.monotonic() > deadline else 0, _PROGRESS_STEPS
            )

        try:
            cursor = self._connection.cursor()
            cursor.execute(sql)

            if cursor.description:
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            return []

        except sqlite3.OperationalError as e:
            if timeout_seconds and str(e) == "interrupted":
                raise QueryExecutionError(f"Query exceeded the {timeout_seconds:g}s timeout")
            raise QueryExecutionError(f"SQLite query failed: {e}")
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite query failed: {e}")
        finally:
            self._connection.set_progress_handler(None, 0)
            if self._connection.in_transaction:
                self._connection.rollback()

    def list_tables(self) -> List[str]:
        """User tables ordered by name."""
        rows = self.execute_read_only("""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        return [row["name"] for row in rows]

    def get_columns(self, table_name: str) -> List[Dict[str, str]]:
        """Columns of one table via PRAGMA table_info."""
        rows = self.execute_read_only(f"PRAGMA table_info({_quote_identifier(table_name)})")
        return [
            {"column_name": row["name"], "data_type": row["type"] or "ANY"}
            for row in rows
        ]

    @property
    def resource_base_url(self) -> str:
        return Path(self.config.file_path).resolve().as_uri().replace("file://", "sqlite://", 1)


# Convenience function
def create_sqlite_adapter(file_path: str) -> SQLiteAdapter:
    """Create and connect a SQLite adapter."""
    adapter = SQLiteAdapter(file_path)
    adapter.connect()
    return adapter
