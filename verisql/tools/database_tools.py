"""
Database-access service.

Exposes a database through two surfaces, the same shape as a
Postgres tool server:
- resources: one "<base>/<table>/schema" resource per table whose body is a
  JSON array of {column_name, data_type}
- tools: a single "query" tool taking {"sql": ...} and returning the rows as
  pretty-printed JSON text

The orchestrator only ever talks to this service, never to an adapter.
"""
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote, urlsplit

from configs import QUERY_TIMEOUT_SECONDS
from verisql.adapters import DatabaseAdapter, DatabaseError, DatabaseType
from verisql.models import (
    CallToolResult,
    Resource,
    ResourceContents,
    TextContent,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

SCHEMA_PATH = "schema"
QUERY_TOOL_NAME = "query"


class DatabaseToolError(Exception):
    """Raised for protocol misuse: unknown tool, unknown resource, bad arguments."""
    pass


def table_name_from_uri(uri: str) -> str:
    """Table name = second-to-last segment of the resource URI path, percent-decoded."""
    segments = urlsplit(uri).path.split("/")
    if len(segments) < 2:
        raise DatabaseToolError(f"Resource URI has no table segment: {uri}")
    return unquote(segments[-2])


class DatabaseToolServer:
    """
    In-process database-access service over a DatabaseAdapter.

    Tool-level failures (syntax errors, permission errors, timeouts) are
    reported in-band as CallToolResult(is_error=True); only protocol misuse
    raises.
    """

    def __init__(self, adapter: DatabaseAdapter, query_timeout_seconds: Optional[float] = QUERY_TIMEOUT_SECONDS):
        self.adapter = adapter
        self.query_timeout_seconds = query_timeout_seconds

    @property
    def dialect(self) -> DatabaseType:
        return self.adapter.db_type

    # ------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------

    def list_resources(self) -> List[Resource]:
        base = self.adapter.resource_base_url.rstrip("/")
        return [
            Resource(uri=f"{base}/{quote(table, safe='')}/{SCHEMA_PATH}", name=f'"{table}" database schema')
            for table in self.adapter.list_tables()
        ]

    def read_resource(self, uri: str) -> ResourceContents:
        segments = urlsplit(uri).path.split("/")
        if segments[-1] != SCHEMA_PATH:
            raise DatabaseToolError(f"Invalid resource URI: {uri}")

        table = table_name_from_uri(uri)
        columns = self.adapter.get_columns(table)
        return ResourceContents(uri=uri, text=json.dumps(columns, indent=2))

    # ------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------

    def list_tools(self) -> List[ToolDefinition]:
        return [
            ToolDefinition(
                name=QUERY_TOOL_NAME,
                description="Run a read-only SQL query",
                input_schema={
                    "type": "object",
                    "properties": {"sql": {"type": "string"}},
                },
            )
        ]

    def call_tool(self, name: str, arguments: Dict[str, Any]) -> CallToolResult:
        if name != QUERY_TOOL_NAME:
            raise DatabaseToolError(f"Unknown tool: {name}")

        sql = arguments.get("sql")
        if not isinstance(sql, str):
            raise DatabaseToolError("The query tool requires a string 'sql' argument")

        try:
            rows = self.adapter.execute_read_only(sql, timeout_seconds=self.query_timeout_seconds)
        except DatabaseError as e:
            logger.info("Query tool reported an error: %s", e)
            return CallToolResult(content=[TextContent(text=str(e))], is_error=True)

        return CallToolResult(content=[TextContent(text=json.dumps(rows, indent=2, default=str))])
