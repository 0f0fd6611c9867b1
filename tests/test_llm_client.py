"""Tests for the LiteLLM chat client (litellm.completion is patched, no network)."""

from types import SimpleNamespace
from unittest.mock import patch

import litellm
import pytest

from verisql.orchestrator import LiteLLMChatClient, LLMError, LLMTimeoutError, json_schema_format

MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "How many artists?"}]


def fake_completion(content="ok", total_tokens=42):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


class TestLiteLLMChatClient:

    def test_passes_messages_and_settings(self):
        client = LiteLLMChatClient(
            model="ollama/qwen2.5-coder:7b-instruct",
            fallback_model=None,
            api_base="http://localhost:11434",
            temperature=0.1,
            max_tokens=512,
            timeout_seconds=30,
        )
        schema_format = json_schema_format("reply", {"type": "object"})

        with patch("verisql.orchestrator.llm_client.completion", return_value=fake_completion("hi")) as mock:
            response = client.chat(MESSAGES, response_format=schema_format)

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "ollama/qwen2.5-coder:7b-instruct"
        assert kwargs["messages"] == MESSAGES
        assert kwargs["response_format"] == schema_format
        assert kwargs["api_base"] == "http://localhost:11434"
        assert kwargs["timeout"] == 30
        assert kwargs["max_tokens"] == 512
        assert response.content == "hi"
        assert response.tokens_used == 42
        assert response.fallback_occurred is False

    def test_no_response_format_by_default(self):
        client = LiteLLMChatClient(model="ollama/m", fallback_model=None, api_base=None)

        with patch("verisql.orchestrator.llm_client.completion", return_value=fake_completion()) as mock:
            client.chat(MESSAGES)

        assert "response_format" not in mock.call_args.kwargs
        assert "api_base" not in mock.call_args.kwargs

    def test_timeout_maps_to_llm_timeout_error(self):
        client = LiteLLMChatClient(model="ollama/m", fallback_model="ollama/other", timeout_seconds=5)
        timeout = litellm.Timeout(message="Request timed out", model="ollama/m", llm_provider="ollama")

        with patch("verisql.orchestrator.llm_client.completion", side_effect=timeout) as mock:
            with pytest.raises(LLMTimeoutError, match="did not respond within 5s"):
                client.chat(MESSAGES)

        # timeouts never fall back
        assert mock.call_count == 1
        assert client.get_stats()["timeouts"] == 1

    def test_fallback_on_provider_error(self):
        client = LiteLLMChatClient(model="ollama/m", fallback_model="ollama/other")

        with patch(
            "verisql.orchestrator.llm_client.completion",
            side_effect=[RuntimeError("connection refused"), fake_completion("from fallback")],
        ) as mock:
            response = client.chat(MESSAGES)

        assert mock.call_args_list[1].kwargs["model"] == "ollama/other"
        assert response.content == "from fallback"
        assert response.model == "ollama/other"
        assert response.fallback_occurred is True
        assert "connection refused" in response.fallback_reason
        assert client.get_stats()["fallback_calls"] == 1

    def test_error_without_fallback(self):
        client = LiteLLMChatClient(model="ollama/m", fallback_model=None)

        with patch("verisql.orchestrator.llm_client.completion", side_effect=RuntimeError("connection refused")):
            with pytest.raises(LLMError, match="connection refused"):
                client.chat(MESSAGES)

    def test_empty_content_becomes_empty_string(self):
        client = LiteLLMChatClient(model="ollama/m", fallback_model=None)

        with patch("verisql.orchestrator.llm_client.completion", return_value=fake_completion(None)):
            assert client.chat(MESSAGES).content == ""
