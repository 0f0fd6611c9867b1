"""Data models shared across the orchestrator, tools and CLI."""
from .schemas import (
    Role,
    Turn,
    ForeignKeyRef,
    ColumnDescriptor,
    SqlModelResponse,
    Success,
    NoQueryFound,
    ExecutionFailure,
    ParseFailure,
    QueryAttemptResult,
    Answer,
    Resource,
    ResourceContents,
    TextContent,
    CallToolResult,
    ToolDefinition,
)

__all__ = [
    "Role",
    "Turn",
    "ForeignKeyRef",
    "ColumnDescriptor",
    "SqlModelResponse",
    "Success",
    "NoQueryFound",
    "ExecutionFailure",
    "ParseFailure",
    "QueryAttemptResult",
    "Answer",
    "Resource",
    "ResourceContents",
    "TextContent",
    "CallToolResult",
    "ToolDefinition",
]
