"""Tests for the provider-agnostic LLMClient."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from kgchat.common.llm_client import LLMClient, LLMError


class _StatusError(Exception):
    """Stand-in for an SDK status error"""

    def __init__(self, status_code, body=None):
        super().__init__(f"status {status_code}")
        self.status_code = status_code
        self.body = body


MESSAGES = [
    {"role": "system", "content": "You are helpful."},
    {"role": "system", "content": "Memory: none."},
    {"role": "user", "content": "hi"},
]


def _openrouter_client(reply="  hello  "):
    client = LLMClient(provider="openrouter", model="anthropic/claude-sonnet-4", openrouter_api_key="sk-or")
    sdk = MagicMock()
    sdk.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=reply))]
    ))
    client._client = sdk
    return client, sdk


def _claude_client(reply=" hi there "):
    client = LLMClient(provider="claude", model="claude-sonnet-4-20250514", anthropic_api_key="sk-ant")
    sdk = MagicMock()
    sdk.messages.create = AsyncMock(return_value=SimpleNamespace(content=[SimpleNamespace(text=reply)]))
    client._client = sdk
    return client, sdk


class TestLLMClientInit:
    def test_missing_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="kgchat.common.llm_client"):
            client = LLMClient(provider="claude")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unknown_provider_raises(self):
        with pytest.raises(LLMError, match="Unknown LLM provider: gemini"):
            LLMClient(provider="gemini")

    def test_actor_names(self):
        assert LLMClient(provider="openrouter", model="anthropic/claude-sonnet-4").actor_name == "claude-sonnet-4"
        assert LLMClient(provider="claude", model="claude-sonnet-4-20250514").actor_name == "claude-api"

    def test_from_config_picks_provider_model(self):
        from kgchat.common.config import LLMConfig

        client = LLMClient.from_config(LLMConfig(provider="claude", anthropic_api_key="sk"))

        assert client.model == "claude-sonnet-4-20250514"
        assert client.is_available

    def test_openrouter_sdk_client(self):
        client = LLMClient(provider="openrouter", openrouter_api_key="sk-or")

        sdk = client._get_client()

        assert "openrouter.ai" in str(sdk.base_url)
        assert client._get_client() is sdk


class TestComplete:
    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self):
        client = LLMClient(provider="openrouter")
        client._client = MagicMock()

        with pytest.raises(LLMError, match="OpenRouter API key not set"):
            await client.complete(MESSAGES)

        client._client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_openrouter_passes_messages_through(self):
        client, sdk = _openrouter_client()

        text = await client.complete(MESSAGES)

        assert text == "hello"
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4"
        assert kwargs["messages"] == MESSAGES
        assert kwargs["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_openrouter_empty_content(self):
        client, _ = _openrouter_client(reply=None)
        assert await client.complete(MESSAGES) == ""

    @pytest.mark.asyncio
    async def test_claude_lifts_system_messages(self):
        client, sdk = _claude_client()

        text = await client.complete(MESSAGES)

        assert text == "hi there"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are helpful.\n\nMemory: none."
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_provider_error_message_surfaced(self):
        client, sdk = _openrouter_client()
        sdk.chat.completions.create.side_effect = _StatusError(
            402, {"error": {"message": "Insufficient credits"}}
        )

        with pytest.raises(LLMError) as excinfo:
            await client.complete(MESSAGES)

        assert str(excinfo.value) == "Insufficient credits"
        assert excinfo.value.status_code == 402

    @pytest.mark.asyncio
    async def test_status_error_without_message(self):
        client, sdk = _claude_client()
        sdk.messages.create.side_effect = _StatusError(529)

        with pytest.raises(LLMError, match="Claude error: 529"):
            await client.complete(MESSAGES)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        client, sdk = _openrouter_client()
        sdk.chat.completions.create.side_effect = ConnectionError("refused")

        with pytest.raises(LLMError, match="OpenRouter request failed: refused") as excinfo:
            await client.complete(MESSAGES)

        assert excinfo.value.status_code is None
