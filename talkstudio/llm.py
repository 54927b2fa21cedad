"""Async LLM client shared by the generation and analysis gateways."""
from __future__ import annotations

import logging
import os
from typing import Any

from talkstudio.config import get_settings
from talkstudio.errors import LLMCallError, LLMConfigError

log = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "openai_compatible": "gpt-4o-mini",
}


class LLMClient:
    """Unified async LLM client supporting Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        settings = get_settings()
        self.provider = provider or settings.llm_provider
        self.model = model or settings.llm_model
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        """Build the provider SDK client. Raises LLMConfigError when it cannot be configured."""
        if self.provider == "anthropic":
            import anthropic
            self.model = self.model or DEFAULT_MODELS["anthropic"]
            key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not key:
                raise LLMConfigError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.AsyncAnthropic(api_key=key)
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or DEFAULT_MODELS[self.provider]
            kwargs: dict[str, Any] = {}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            try:
                self._client = openai.AsyncOpenAI(**kwargs)
            except openai.OpenAIError as exc:
                raise LLMConfigError("OPENAI_API_KEY is not configured") from exc
        else:
            raise LLMConfigError(f"Unknown LLM provider: {self.provider!r}")

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int = 2048,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send system+user message to the LLM, return the raw reply text."""
        try:
            if self.provider == "anthropic":
                kwargs: dict[str, Any] = {
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "messages": [{"role": "user", "content": user}],
                }
                if system:
                    kwargs["system"] = system
                if temperature is not None:
                    kwargs["temperature"] = temperature
                response = await self._client.messages.create(**kwargs)
                return response.content[0].text.strip() if response.content else ""

            messages = [{"role": "user", "content": user}]
            if system:
                messages.insert(0, {"role": "system", "content": system})
            kwargs = {"model": self.model, "max_tokens": max_tokens, "messages": messages}
            if temperature is not None:
                kwargs["temperature"] = temperature
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            response = await self._client.chat.completions.create(**kwargs)
            if not response.choices:
                return ""
            return response.choices[0].message.content or ""
        except LLMCallError:
            raise
        except Exception as exc:
            status = getattr(exc, "status_code", None)
            log.warning("LLM call to %s/%s failed (status=%s): %s", self.provider, self.model, status, exc)
            raise LLMCallError(
                f"LLM API call failed: {exc}", retryable=status == 429, status_code=status,
            ) from exc
