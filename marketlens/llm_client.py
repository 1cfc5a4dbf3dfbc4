"""OpenRouter-backed LLM client for single-prompt JSON completions."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from marketlens.config import settings
from marketlens.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class CompletionResponse:
    text: str
    usage: Usage


class OpenRouterCompletionsAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _temperature_for_model(model: str, temperature: float) -> float:
        # Some OpenAI GPT-5-compatible gateways reject any temperature but 1.
        lowered = (model or "").lower()
        if "gpt-5" in lowered:
            return 1
        return temperature

    @staticmethod
    def _from_openai_response(response: Any) -> CompletionResponse:
        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            message = getattr(choices[0], "message", None)
            text = getattr(message, "content", None) or ""

        usage = getattr(response, "usage", None)
        mapped_usage = Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        return CompletionResponse(text=text.strip(), usage=mapped_usage)

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        caller: str = "llm",
    ) -> CompletionResponse:
        """Send one user prompt and return the text of the first choice."""
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature_for_model(model, temperature),
                max_tokens=max_tokens,
            )
        except Exception as e:
            log_service.log_llm_call(
                model=model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise

        mapped = self._from_openai_response(response)
        log_service.log_llm_call(
            model=model,
            caller=caller,
            input_tokens=mapped.usage.input_tokens,
            output_tokens=mapped.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return mapped


class OpenRouterClientAdapter:
    def __init__(self, openai_client: Any):
        self.completions = OpenRouterCompletionsAdapter(openai_client)


def get_client() -> OpenRouterClientAdapter:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
        timeout=settings.llm_timeout_seconds,
    )
    return OpenRouterClientAdapter(openai_client)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: OpenRouterClientAdapter | None = None


def client() -> OpenRouterClientAdapter:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
