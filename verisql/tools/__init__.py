"""Database-access service, query bridge and schema cache."""
from .database_tools import (
    DatabaseToolServer,
    DatabaseToolError,
    QUERY_TOOL_NAME,
    SCHEMA_PATH,
    table_name_from_uri,
)
from .query_executor import QueryExecutor, ExecutionError
from .schema_cache import SchemaCache, SchemaLoadError, FOREIGN_KEY_SQL
from .sql_guard import check_read_only

__all__ = [
    "DatabaseToolServer",
    "DatabaseToolError",
    "QUERY_TOOL_NAME",
    "SCHEMA_PATH",
    "table_name_from_uri",
    "QueryExecutor",
    "ExecutionError",
    "SchemaCache",
    "SchemaLoadError",
    "FOREIGN_KEY_SQL",
    "check_read_only",
]
