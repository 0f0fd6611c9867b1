"""
LLM Client Abstraction with Optional Fallback.

PURPOSE:
========
Provides a single chat interface over LiteLLM so the orchestrator can send
an ordered list of role/content turns, optionally constrained to a JSON
schema, to any provider LiteLLM supports (Ollama by default).

ARCHITECTURE:
=============
- LLMClient: Abstract base class defining the interface
- LiteLLMChatClient: LiteLLM implementation with a primary model and an
  optional fallback model tried once when the primary errors

Timeouts are NOT retried here; they surface as LLMTimeoutError so the
orchestrator can count them as a failed attempt.

USAGE:
======
    llm = LiteLLMChatClient(model="ollama/qwen2.5-coder:7b-instruct")
    response = llm.chat([{"role": "user", "content": "SELECT 1?"}])
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import litellm
from litellm import completion

from configs import (
    LLM_MODEL,
    FALLBACK_LLM_MODEL,
    LLM_API_BASE,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    LLM_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    model: str
    tokens_used: int = 0
    elapsed_ms: float = 0.0
    fallback_occurred: bool = False
    fallback_reason: Optional[str] = None


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMTimeoutError(LLMError):
    """Raised when the model does not answer within the configured timeout."""
    pass


# ============================================================
# ABSTRACT LLM CLIENT
# ============================================================

class LLMClient(ABC):
    """
    Abstract base class for chat endpoints.

    Implementations take the full message list on every call; no
    conversation state is kept inside the client.
    """

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """
        Send messages to the model.

        Args:
            messages: Ordered {"role", "content"} dicts
            response_format: Optional output-schema constraint

        Returns:
            LLMResponse with the model's text content

        Raises:
            LLMTimeoutError: When the call exceeds its timeout
            LLMError: For other provider errors
        """
        pass


def json_schema_format(name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a JSON schema as an OpenAI-style response_format accepted by LiteLLM."""
    return {
        "type": "json_schema",
        "json_schema": {"name": name, "schema": schema, "strict": True},
    }


# ============================================================
# LITELLM CLIENT
# ============================================================

class LiteLLMChatClient(LLMClient):
    """LiteLLM-backed chat client with an optional one-shot fallback model."""

    def __init__(
        self,
        model: str = LLM_MODEL,
        fallback_model: Optional[str] = FALLBACK_LLM_MODEL,
        api_base: Optional[str] = LLM_API_BASE,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = MAX_LLM_TOKENS,
        timeout_seconds: Optional[float] = LLM_TIMEOUT_SECONDS,
    ):
        self.model = model
        self.fallback_model = fallback_model
        self.api_base = api_base
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

        self.stats = {
            "total_calls": 0,
            "primary_calls": 0,
            "fallback_calls": 0,
            "timeouts": 0,
            "errors": 0,
        }

    def chat(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        self.stats["total_calls"] += 1

        try:
            response = self._complete(self.model, messages, response_format)
            self.stats["primary_calls"] += 1
            return response
        except LLMTimeoutError:
            raise
        except LLMError as e:
            if not self.fallback_model:
                raise
            logger.warning("Primary model %s failed (%s); trying fallback %s", self.model, e, self.fallback_model)
            response = self._complete(self.fallback_model, messages, response_format)
            self.stats["fallback_calls"] += 1
            response.fallback_occurred = True
            response.fallback_reason = f"Primary ({self.model}) failed: {e}"
            return response

    def _complete(
        self,
        model: str,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, Any]],
    ) -> LLMResponse:
        logger.debug("Calling %s with %d messages", model, len(messages))
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.timeout_seconds:
            kwargs["timeout"] = self.timeout_seconds

        started = time.time()
        try:
            response = completion(**kwargs)
        except litellm.Timeout as e:
            self.stats["timeouts"] += 1
            limit = f" within {self.timeout_seconds:g}s" if self.timeout_seconds else ""
            raise LLMTimeoutError(f"Model {model} did not respond{limit}") from e
        except Exception as e:
            self.stats["errors"] += 1
            raise LLMError(f"{model} API error: {e}") from e

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        elapsed_ms = (time.time() - started) * 1000
        logger.debug("✓ %s answered in %.0fms", model, elapsed_ms)

        return LLMResponse(
            content=content,
            model=model,
            tokens_used=getattr(usage, "total_tokens", 0) or 0,
            elapsed_ms=elapsed_ms,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return {
            **self.stats,
            "model": self.model,
            "fallback_model": self.fallback_model,
        }
