"""
Conftest for VeriSQL tests.

Ensures the project root is on sys.path so that 'verisql' and 'configs'
resolve when running pytest from a checkout, and provides scripted fakes
for the two external collaborators (chat endpoint, database-access service).
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from verisql.adapters import DatabaseType
from verisql.models import CallToolResult, Resource, ResourceContents, TextContent
from verisql.orchestrator import ConversationHistory, LLMClient, LLMResponse, create_orchestrator
from verisql.tools import QueryExecutor


# =============================================================================
# FAKE CHAT ENDPOINT
# =============================================================================

class FakeChatClient(LLMClient):
    """
    Replays scripted replies in order.

    A reply that is an Exception instance is raised instead of returned.
    Every call's messages and response_format are recorded.
    """

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def chat(self, messages, response_format=None):
        self.calls.append({"messages": [dict(m) for m in messages], "response_format": response_format})
        if not self.replies:
            raise AssertionError("FakeChatClient ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model="fake-model")


# =============================================================================
# FAKE DATABASE-ACCESS SERVICE
# =============================================================================

def tool_error(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=message)], is_error=True)


class FakeToolServer:
    """
    Scripted stand-in for DatabaseToolServer.

    `results` are consumed one per query call: a str is a successful
    payload, a CallToolResult is returned as-is, an Exception is raised.
    A `resources` value that is an Exception is raised on read.
    """

    def __init__(self, results=None, resources=None, dialect=DatabaseType.POSTGRES):
        self.results = list(results or [])
        self.resources = dict(resources or {})
        self.dialect = dialect
        self.calls = []

    def list_resources(self):
        return [Resource(uri=uri, name=uri) for uri in self.resources]

    def read_resource(self, uri):
        contents = self.resources[uri]
        if isinstance(contents, Exception):
            raise contents
        return ResourceContents(uri=uri, text=contents)

    def call_tool(self, name, arguments):
        self.calls.append(arguments["sql"])
        if not self.results:
            raise AssertionError("FakeToolServer ran out of scripted results")
        outcome = self.results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, CallToolResult):
            return outcome
        return CallToolResult(content=[TextContent(text=outcome)])


class StubSchemaCache:
    """Fixed schema text; enough for prompt building."""

    def __init__(self, text="Table: artist\n- ArtistId (integer)\n- Name (text)"):
        self.text = text

    def describe(self):
        return self.text


def build_orchestrator(protocol, replies, results=None, max_retries=5, history=None):
    chat = FakeChatClient(replies)
    server = FakeToolServer(results)
    executor = QueryExecutor(server, read_only_guard=True)
    orchestrator = create_orchestrator(
        chat,
        executor,
        StubSchemaCache(),
        protocol=protocol,
        history=history if history is not None else ConversationHistory(20, "pair"),
        max_retries=max_retries,
    )
    return orchestrator, chat, server


# =============================================================================
# SQLITE FIXTURE
# =============================================================================

@pytest.fixture
def music_db(tmp_path):
    """Small SQLite database with an artist -> album foreign key."""
    db_path = tmp_path / "music.db"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE artist (
            ArtistId INTEGER PRIMARY KEY,
            Name TEXT NOT NULL
        );
        CREATE TABLE album (
            AlbumId INTEGER PRIMARY KEY,
            Title TEXT NOT NULL,
            ArtistId INTEGER NOT NULL REFERENCES artist(ArtistId)
        );
        INSERT INTO artist VALUES (1, 'AC/DC'), (2, 'Accept'), (3, 'Aerosmith');
        INSERT INTO album VALUES (1, 'For Those About To Rock', 1), (2, 'Balls to the Wall', 2), (3, 'Let There Be Rock', 1);
    """)
    conn.commit()
    conn.close()
    return str(db_path)
