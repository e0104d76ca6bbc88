from __future__ import annotations

import logging
import time
from typing import Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI

from songmaster.agent.errors import TransportError
from songmaster.config import Settings

log = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.7

OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://songmaster.app",
    "X-Title": "SongMaster",
}


@runtime_checkable
class CompletionClient(Protocol):
    """Interface for the upstream LLM endpoint.

    Text in, text out. Implementations raise ``TransportError`` on any
    failure to obtain a completion.
    """

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        json_mode: bool = True,
    ) -> str: ...


class OpenRouterClient:
    """``CompletionClient`` backed by an OpenAI-compatible endpoint (OpenRouter)."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.settings = settings
        self._client = client

    def _make_client(self) -> AsyncOpenAI:
        if not self.settings.openrouter_api_key:
            raise TransportError("OPENROUTER_API_KEY not set")
        # No SDK retries: a failed call is reported, the caller decides.
        return AsyncOpenAI(
            base_url=self.settings.openrouter_base_url,
            api_key=self.settings.openrouter_api_key,
            timeout=self.settings.llm_timeout,
            max_retries=0,
            default_headers=OPENROUTER_HEADERS,
        )

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        json_mode: bool = True,
    ) -> str:
        if self._client is None:
            self._client = self._make_client()

        params = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        start = time.time()
        try:
            response = await self._client.chat.completions.create(**params)
        except openai.APITimeoutError as e:
            raise TransportError(
                f"{model} timed out after {self.settings.llm_timeout:.0f}s"
            ) from e
        except openai.APIStatusError as e:
            raise TransportError(
                f"OpenRouter error: {e.status_code}", status_code=e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"Could not reach OpenRouter: {e}") from e

        if not response.choices:
            raise TransportError(f"{model} returned no choices")

        content = response.choices[0].message.content or ""
        log.info(
            "Completion from %s in %.2fs (%d chars, finish_reason=%s)",
            model,
            time.time() - start,
            len(content),
            response.choices[0].finish_reason,
        )
        return content
