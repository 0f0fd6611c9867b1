"""
Bridge between the orchestrator and the database-access service's query tool.

No retries happen here and no SQL is interpreted beyond the optional
statement-type gate; the database decides whether a query is valid.
"""
import logging

from configs import READ_ONLY_GUARD
from .database_tools import QUERY_TOOL_NAME
from .sql_guard import check_read_only

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """The query could not be executed or produced no usable payload."""

    def __init__(self, message: str, sql: str = ""):
        super().__init__(message)
        self.message = message
        self.sql = sql


class QueryExecutor:
    """
    Runs one SQL string through the "query" tool and returns its text payload.

    `server` is anything with call_tool(name, arguments) returning an object
    with `content` (list of items with `.text`) and `is_error`.
    """

    def __init__(self, server, read_only_guard: bool = READ_ONLY_GUARD):
        self.server = server
        self.read_only_guard = read_only_guard
        self.call_count = 0

    def execute(self, sql: str) -> str:
        if self.read_only_guard:
            allowed, reason = check_read_only(sql)
            if not allowed:
                logger.warning("Rejected SQL before execution: %s", reason)
                raise ExecutionError(f"Statement rejected: {reason}", sql=sql)

        logger.debug("Executing SQL: %s", sql)
        self.call_count += 1
        try:
            response = self.server.call_tool(QUERY_TOOL_NAME, {"sql": sql})
        except Exception as e:
            raise ExecutionError(str(e) or e.__class__.__name__, sql=sql) from e

        text = response.content[0].text if response.content else None

        if response.is_error:
            raise ExecutionError(text or "The query tool reported an error", sql=sql)
        if not text:
            raise ExecutionError("No text content received from query", sql=sql)
        return text
