"""
Data model for the question-answering loop.

Pydantic models cover everything that crosses a boundary (model output,
database-service payloads, conversation turns). Attempt results are small
frozen dataclasses forming a tagged union on their ``kind`` field.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class Role(str, Enum):
    """Conversation roles understood by the chat endpoint."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ============================================================
# Conversation Models
# ============================================================

class Turn(BaseModel):
    """One role-tagged message. Immutable once created."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role = Field(description="Who produced the message")
    content: str = Field(description="Message text")

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


# ============================================================
# Schema Models
# ============================================================

class ForeignKeyRef(BaseModel):
    """Target of a foreign-key edge."""
    model_config = ConfigDict(frozen=True)

    table: str
    column: str

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


class ColumnDescriptor(BaseModel):
    """Information about a database column."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name")
    type: str = Field(description="SQL data type")
    description: Optional[str] = Field(default=None, description="Human-readable note")
    foreign_key: Optional[ForeignKeyRef] = Field(default=None, description="Referenced table/column")

    def describe(self) -> str:
        line = f"- {self.name} ({self.type})"
        if self.description:
            line += f": {self.description}"
        if self.foreign_key:
            line += f" [References {self.foreign_key}]"
        return line


# ============================================================
# Structured Model Response (Protocol B)
# ============================================================

class SqlModelResponse(BaseModel):
    """
    The single JSON object the model must emit in structured mode.

    Field names on the wire are camelCase; strict types mean "true" (a
    string) is rejected for isVerified instead of being coerced.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sql_query: StrictStr = Field(alias="sqlQuery", description="The SQL query that answers the question")
    is_verified: StrictBool = Field(alias="isVerified", description="True once query results confirm the answer")
    answer_summary: StrictStr = Field(alias="answerSummary", description="Human-readable answer")

    @classmethod
    def json_schema(cls) -> Dict[str, Any]:
        """Output-schema constraint handed to the chat endpoint."""
        return cls.model_json_schema(by_alias=True)

    def format_answer(self) -> str:
        summary = self.answer_summary.strip().rstrip(".")
        formatted = (
            f"{summary}.\n\n"
            "This was obtained using the following query:\n\n"
            f"```sql\n{self.sql_query.strip()}\n```"
        )
        if self.is_verified:
            return formatted
        return f"{formatted}\n\n(Answer is not verified.)"


# ============================================================
# Attempt Results (tagged union)
# ============================================================

@dataclass(frozen=True)
class Success:
    sql: str
    result_text: str
    kind: Literal["success"] = "success"


@dataclass(frozen=True)
class NoQueryFound:
    raw_response_text: str
    kind: Literal["no_query_found"] = "no_query_found"


@dataclass(frozen=True)
class ExecutionFailure:
    # sql is None when the failure happened before any SQL existed (model timeout)
    sql: Optional[str]
    error_message: str
    kind: Literal["execution_failure"] = "execution_failure"


@dataclass(frozen=True)
class ParseFailure:
    raw_response_text: str
    error_message: str
    kind: Literal["parse_failure"] = "parse_failure"


QueryAttemptResult = Union[Success, NoQueryFound, ExecutionFailure, ParseFailure]


class Answer(BaseModel):
    """Terminal output of the orchestration loop for one question."""
    summary_text: str = Field(description="User-facing answer text")
    verified: bool = Field(default=False, description="Confirmed by executed query results")
    sql: Optional[str] = Field(default=None, description="SQL the answer is based on")


# ============================================================
# Database-Access Service Wire Shapes
# ============================================================

class Resource(BaseModel):
    """A readable resource advertised by the database-access service."""
    uri: str
    name: str
    mime_type: str = "application/json"


class ResourceContents(BaseModel):
    uri: str
    mime_type: str = "application/json"
    text: str


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class CallToolResult(BaseModel):
    """Tool call response; callers read only content[0].text."""
    content: List[TextContent] = Field(default_factory=list)
    is_error: bool = False


class ToolDefinition(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any]
