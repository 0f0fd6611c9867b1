"""Orchestrator module initialization."""

from .answer_orchestrator import (
    AnswerOrchestrator,
    StructuredAnswerOrchestrator,
    FencedAnswerOrchestrator,
    AttemptState,
    AttemptOutcome,
    Phase,
    Transition,
    decide_next,
    create_orchestrator,
)
from .history import ConversationHistory, EvictionPolicy
from .json_utils import (
    JSONExtractionError,
    ResponseValidationError,
    extract_first_json_block,
    safe_parse_llm_json,
    parse_sql_model_response,
)
from .llm_client import LLMClient, LiteLLMChatClient, LLMResponse, LLMError, LLMTimeoutError, json_schema_format
from .prompt_builder import PromptBuilder, STRUCTURED_RESPONSE_INSTRUCTIONS, FENCED_RESPONSE_INSTRUCTIONS
from .sql_extraction import extract_first_sql_block

__all__ = [
    "AnswerOrchestrator",
    "StructuredAnswerOrchestrator",
    "FencedAnswerOrchestrator",
    "AttemptState",
    "AttemptOutcome",
    "Phase",
    "Transition",
    "decide_next",
    "create_orchestrator",
    "ConversationHistory",
    "EvictionPolicy",
    "JSONExtractionError",
    "ResponseValidationError",
    "extract_first_json_block",
    "safe_parse_llm_json",
    "parse_sql_model_response",
    "LLMClient",
    "LiteLLMChatClient",
    "LLMResponse",
    "LLMError",
    "LLMTimeoutError",
    "json_schema_format",
    "PromptBuilder",
    "STRUCTURED_RESPONSE_INSTRUCTIONS",
    "FENCED_RESPONSE_INSTRUCTIONS",
    "extract_first_sql_block",
]
