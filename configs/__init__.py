"""Config module initialization."""
from .settings import (
    # Database configuration
    DATABASE_URL,
    QUERY_TIMEOUT_SECONDS,
    READ_ONLY_GUARD,
    # LLM configuration
    LLM_MODEL,
    FALLBACK_LLM_MODEL,
    LLM_API_BASE,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    LLM_TIMEOUT_SECONDS,
    # Orchestration
    MAX_RETRIES,
    MAX_HISTORY_LENGTH,
    HISTORY_EVICTION,
    ANSWER_PROTOCOL,
    SUPPORTED_PROTOCOLS,
    SUPPORTED_EVICTION_POLICIES,
    # System
    VERBOSE,
    LOG_LEVEL,
    EXIT_COMMANDS,
    # Validation
    ConfigurationError,
    validate_configuration,
)

__all__ = [
    "DATABASE_URL",
    "QUERY_TIMEOUT_SECONDS",
    "READ_ONLY_GUARD",
    "LLM_MODEL",
    "FALLBACK_LLM_MODEL",
    "LLM_API_BASE",
    "LLM_TEMPERATURE",
    "MAX_LLM_TOKENS",
    "LLM_TIMEOUT_SECONDS",
    "MAX_RETRIES",
    "MAX_HISTORY_LENGTH",
    "HISTORY_EVICTION",
    "ANSWER_PROTOCOL",
    "SUPPORTED_PROTOCOLS",
    "SUPPORTED_EVICTION_POLICIES",
    "VERBOSE",
    "LOG_LEVEL",
    "EXIT_COMMANDS",
    "ConfigurationError",
    "validate_configuration",
]
