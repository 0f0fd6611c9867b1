"""
Schema/metadata cache used to build model context.

Loaded once per session from the database-access service:
1. every "<...>/<table>/schema" resource gives the column list of one table
2. one foreign-key introspection query (run through the QueryExecutor)
   annotates the referencing columns

A table whose schema cannot be read or parsed is logged and skipped; the rest of
the cache still loads. The same goes for the foreign-key query.
"""
import json
import logging
from typing import Dict, List, Mapping, Tuple
from types import MappingProxyType

from pydantic import ValidationError

from verisql.adapters import DatabaseError, DatabaseType
from verisql.models import ColumnDescriptor, ForeignKeyRef
from .database_tools import SCHEMA_PATH, DatabaseToolError, table_name_from_uri
from .query_executor import ExecutionError

logger = logging.getLogger(__name__)


FOREIGN_KEY_SQL = {
    DatabaseType.POSTGRES: """
        SELECT
            tc.table_name AS table_name,
            kcu.column_name AS column_name,
            ccu.table_name AS foreign_table_name,
            ccu.column_name AS foreign_column_name
        FROM information_schema.table_constraints AS tc
        JOIN information_schema.key_column_usage AS kcu
            ON tc.constraint_name = kcu.constraint_name
            AND tc.table_schema = kcu.table_schema
        JOIN information_schema.constraint_column_usage AS ccu
            ON ccu.constraint_name = tc.constraint_name
            AND ccu.table_schema = tc.table_schema
        WHERE tc.constraint_type = 'FOREIGN KEY'
    """,
    DatabaseType.SQLITE: """
        SELECT
            m.name AS table_name,
            p."from" AS column_name,
            p."table" AS foreign_table_name,
            p."to" AS foreign_column_name
        FROM sqlite_master AS m, pragma_foreign_key_list(m.name) AS p
        WHERE m.type = 'table'
    """,
}


class SchemaLoadError(Exception):
    """One table's schema payload could not be parsed."""
    pass


def parse_columns(table: str, text: str) -> List[ColumnDescriptor]:
    """Parse a schema resource body: a JSON array of {column_name, data_type}."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaLoadError(f"Schema for '{table}' is not valid JSON: {e}")

    if not isinstance(payload, list):
        raise SchemaLoadError(f"Schema for '{table}' is not a JSON array")

    try:
        return [
            ColumnDescriptor(name=item["column_name"], type=item["data_type"])
            for item in payload
        ]
    except (KeyError, TypeError, ValidationError) as e:
        raise SchemaLoadError(f"Schema for '{table}' has a malformed column entry: {e}")


class SchemaCache:
    """Mapping of table name to its ordered, immutable column descriptors."""

    def __init__(self, server, executor):
        self.server = server
        self.executor = executor
        self._tables: Dict[str, Tuple[ColumnDescriptor, ...]] = {}
        self.skipped_tables: List[str] = []

    @property
    def tables(self) -> Mapping[str, Tuple[ColumnDescriptor, ...]]:
        return MappingProxyType(self._tables)

    def load(self) -> None:
        tables: Dict[str, List[ColumnDescriptor]] = {}
        skipped: List[str] = []

        for resource in self.server.list_resources():
            if not resource.uri.endswith(f"/{SCHEMA_PATH}"):
                continue
            table = table_name_from_uri(resource.uri)
            try:
                contents = self.server.read_resource(resource.uri)
                tables[table] = parse_columns(table, contents.text)
            except (SchemaLoadError, DatabaseError, DatabaseToolError) as e:
                logger.warning("Skipping table %s: %s", table, e)
                skipped.append(table)

        self._annotate_foreign_keys(tables)

        self._tables = {name: tuple(columns) for name, columns in tables.items()}
        self.skipped_tables = skipped
        logger.info("Schema cache loaded: %d tables (%d skipped)", len(self._tables), len(skipped))

    def _annotate_foreign_keys(self, tables: Dict[str, List[ColumnDescriptor]]) -> None:
        sql = FOREIGN_KEY_SQL.get(self.server.dialect)
        if sql is None:
            return

        try:
            edges = json.loads(self.executor.execute(sql))
        except (ExecutionError, json.JSONDecodeError) as e:
            logger.warning("Foreign-key introspection failed, continuing without relationships: %s", e)
            return

        if not isinstance(edges, list):
            logger.warning("Foreign-key introspection returned %s, expected a list", type(edges).__name__)
            return

        for edge in edges:
            if not isinstance(edge, dict) or not edge.get("foreign_table_name") or not edge.get("foreign_column_name"):
                continue
            columns = tables.get(edge.get("table_name"))
            if not columns:
                continue
            target = ForeignKeyRef(table=edge["foreign_table_name"], column=edge["foreign_column_name"])
            for index, column in enumerate(columns):
                if column.name == edge.get("column_name"):
                    columns[index] = column.model_copy(update={
                        "description": f"Foreign key referencing {target}",
                        "foreign_key": target,
                    })

    def describe(self) -> str:
        lines = []
        for table, columns in self._tables.items():
            lines.append(f"Table: {table}")
            lines.extend(column.describe() for column in columns)
        return "\n".join(lines)
