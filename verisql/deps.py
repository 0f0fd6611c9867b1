"""
Shared dependencies for VeriSQL.

Provides:
- Structured logging (replaces print statements)
- Session wiring: adapter -> database-access service -> executor ->
  schema cache -> orchestrator, created once per CLI run
"""

import logging
from dataclasses import dataclass
from typing import Optional

from configs import (
    ANSWER_PROTOCOL,
    DATABASE_URL,
    HISTORY_EVICTION,
    LOG_LEVEL,
    MAX_HISTORY_LENGTH,
    MAX_RETRIES,
    QUERY_TIMEOUT_SECONDS,
    READ_ONLY_GUARD,
)
from verisql.adapters import DatabaseAdapter, create_adapter_from_url
from verisql.orchestrator import (
    AnswerOrchestrator,
    ConversationHistory,
    LiteLLMChatClient,
    LLMClient,
    create_orchestrator,
)
from verisql.tools import DatabaseToolServer, QueryExecutor, SchemaCache


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure structured logging for the package."""
    logger = logging.getLogger("verisql")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    log_level = (level or LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    return logger


logger = logging.getLogger(__name__)


# =============================================================================
# SESSION
# =============================================================================

@dataclass
class Session:
    """Everything one conversation needs, wired together."""
    adapter: DatabaseAdapter
    server: DatabaseToolServer
    executor: QueryExecutor
    schema_cache: SchemaCache
    orchestrator: AnswerOrchestrator

    def close(self) -> None:
        self.adapter.disconnect()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def build_session(
    database_url: str = DATABASE_URL,
    protocol: str = ANSWER_PROTOCOL,
    chat: Optional[LLMClient] = None,
    max_retries: int = MAX_RETRIES,
) -> Session:
    """
    Connect to the database, load the schema cache and build the orchestrator.

    Raises:
        DatabaseConnectionError: If the database cannot be opened
        ValueError: For an unsupported URL scheme or answer protocol
    """
    adapter = create_adapter_from_url(database_url)
    adapter.connect()
    logger.info("Connected to %s database", adapter.db_type.value)

    try:
        server = DatabaseToolServer(adapter, query_timeout_seconds=QUERY_TIMEOUT_SECONDS)
        executor = QueryExecutor(server, read_only_guard=READ_ONLY_GUARD)
        schema_cache = SchemaCache(server, executor)
        schema_cache.load()

        orchestrator = create_orchestrator(
            chat if chat is not None else LiteLLMChatClient(),
            executor,
            schema_cache,
            protocol=protocol,
            dialect=server.dialect,
            history=ConversationHistory(MAX_HISTORY_LENGTH, HISTORY_EVICTION),
            max_retries=max_retries,
        )
    except Exception:
        adapter.disconnect()
        raise

    return Session(
        adapter=adapter,
        server=server,
        executor=executor,
        schema_cache=schema_cache,
        orchestrator=orchestrator,
    )
