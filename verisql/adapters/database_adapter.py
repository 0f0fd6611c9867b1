"""
Database Adapter Layer for VeriSQL.

This module provides a unified interface for database operations,
allowing the database-access service to work with different backends
(SQLite for local development, Postgres for production).

Design Principles:
- The orchestrator NEVER accesses databases directly
- All database operations go through the database-access service, which uses adapters
- Adapters handle connections, read-only transactions, timeouts and schema introspection
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from dataclasses import dataclass
from enum import Enum


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


@dataclass
class ConnectionConfig:
    """Database connection configuration."""
    db_type: DatabaseType
    # SQLite
    file_path: Optional[str] = None
    # Postgres
    connection_string: Optional[str] = None


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


class QueryExecutionError(DatabaseError):
    """Query execution failed."""
    pass


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Every statement runs inside a read-only transaction that is never
    committed, so the adapter cannot be used to modify data even if a
    write statement slips past the caller.
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def execute_read_only(self, sql: str, timeout_seconds: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        Execute a SQL statement in a read-only transaction.

        Args:
            sql: SQL statement text
            timeout_seconds: Abort the statement after this many seconds (None = no limit)

        Returns:
            List of dictionaries, one per row, with column names as keys

        Raises:
            QueryExecutionError: If the database rejects or fails the statement
        """
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of user tables, in a stable order."""
        pass

    @abstractmethod
    def get_columns(self, table_name: str) -> List[Dict[str, str]]:
        """
        Column list for one table.

        Returns:
            List of {"column_name": ..., "data_type": ...} in ordinal order
        """
        pass

    @property
    @abstractmethod
    def resource_base_url(self) -> str:
        """Credential-free base URL used to build schema resource URIs."""
        pass

    @property
    def db_type(self) -> DatabaseType:
        return self.config.db_type

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
