"""
Provider-agnostic Model Gateway for kgchat.

Supports OpenRouter (OpenAI-compatible endpoint) and Anthropic Claude with a
shared chat-completion interface: an ordered list of {role, content} messages
in, one text completion out.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import LLMConfig

logger = logging.getLogger("kgchat.common.llm_client")

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

SUPPORTED_PROVIDERS = ("openrouter", "claude")

_PROVIDER_LABELS = {"openrouter": "OpenRouter", "claude": "Claude"}


class LLMError(RuntimeError):
    """Gateway failure surfaced to the caller as one human-readable message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _error_message(provider: str, exc: Exception) -> str:
    """Pull the provider's message out of an SDK status error, else a status-coded one."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    status = getattr(exc, "status_code", None)
    return f"{_PROVIDER_LABELS.get(provider, provider)} error: {status}"


class LLMClient:
    """Unified chat-completion client across model providers."""

    def __init__(
        self,
        provider: str = "openrouter",
        model: str = "",
        openrouter_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        self.provider = (provider or "openrouter").lower()
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._api_key = None
        self._client = None

        if self.provider not in SUPPORTED_PROVIDERS:
            raise LLMError(f"Unknown LLM provider: {provider}")

        self._api_key = openrouter_api_key if self.provider == "openrouter" else anthropic_api_key
        if not self._api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        model = config.openrouter_model if config.provider == "openrouter" else config.anthropic_model
        return cls(
            provider=config.provider,
            model=model,
            openrouter_api_key=config.openrouter_api_key or None,
            anthropic_api_key=config.anthropic_api_key or None,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def actor_name(self) -> str:
        """Actor recorded on events the model creates."""
        if self.provider == "openrouter":
            model = self.model or "openrouter"
            return model.split("/")[-1]
        return "claude-api"

    def _get_client(self):
        if self._client is not None:
            return self._client
        if self.provider == "openrouter":
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=OPENROUTER_BASE_URL,
                default_headers={"X-Title": "kgchat"},
            )
        else:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def complete(self, messages: Sequence[Dict[str, str]]) -> str:
        """Send the conversation and return the completion text.

        Raises:
            LLMError: missing credential (before any request), or a provider
                error response
        """
        if not self.is_available:
            raise LLMError(
                f"{_PROVIDER_LABELS[self.provider]} API key not set. Please configure it in settings."
            )

        client = self._get_client()
        try:
            if self.provider == "openrouter":
                return await self._complete_openrouter(client, messages)
            return await self._complete_claude(client, messages)
        except LLMError:
            raise
        except Exception as e:
            if getattr(e, "status_code", None) is None and getattr(e, "body", None) is None:
                raise LLMError(f"{_PROVIDER_LABELS[self.provider]} request failed: {e}") from e
            message = _error_message(self.provider, e)
            logger.error("%s API error: %s", self.provider, message)
            raise LLMError(message, status_code=getattr(e, "status_code", None)) from e

    async def _complete_openrouter(self, client: Any, messages: Sequence[Dict[str, str]]) -> str:
        response = await client.chat.completions.create(
            model=self.model,
            messages=list(messages),
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        content = (response.choices[0].message.content or "").strip()
        logger.info("OpenRouter response received, length: %d", len(content))
        return content

    async def _complete_claude(self, client: Any, messages: Sequence[Dict[str, str]]) -> str:
        system_parts: List[str] = [m["content"] for m in messages if m["role"] == "system"]
        conversation = [m for m in messages if m["role"] != "system"]
        response = await client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system="\n\n".join(system_parts),
            messages=conversation,
            timeout=self.timeout,
        )
        content = response.content[0].text.strip()
        logger.info("Claude response received, length: %d", len(content))
        return content
