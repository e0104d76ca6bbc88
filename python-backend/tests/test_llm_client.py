import json

import httpx
import pytest
from openai import AsyncOpenAI

from songmaster.agent.errors import TransportError
from songmaster.agent.llm_client import OPENROUTER_HEADERS, OpenRouterClient
from songmaster.config import Settings


def _completion(model, content):
    return {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 0,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def _client(handler, settings=None):
    settings = settings or Settings(openrouter_api_key="test-key")
    openai_client = AsyncOpenAI(
        api_key="test-key",
        base_url="https://openrouter.test/api/v1",
        max_retries=0,
        default_headers=OPENROUTER_HEADERS,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return OpenRouterClient(settings, client=openai_client)


class TestOpenRouterClient:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, json=_completion("model-a", '{"lyrics": "la"}'))

        content = await _client(handler).complete(
            "model-a",
            [{"role": "user", "content": "hi"}],
            max_tokens=1234,
            temperature=0.3,
        )

        assert content == '{"lyrics": "la"}'
        body = seen["body"]
        assert body["model"] == "model-a"
        assert body["max_tokens"] == 1234
        assert body["temperature"] == 0.3
        assert body["response_format"] == {"type": "json_object"}
        assert seen["headers"]["x-title"] == "SongMaster"

    @pytest.mark.asyncio
    async def test_json_mode_off(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("m", "plain"))

        await _client(handler).complete("m", [], json_mode=False)
        assert "response_format" not in seen["body"]

    @pytest.mark.asyncio
    async def test_status_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": {"message": "upstream down"}})

        with pytest.raises(TransportError) as exc_info:
            await _client(handler).complete("m", [])
        assert exc_info.value.status_code == 500
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        settings = Settings(openrouter_api_key="test-key", llm_timeout=5)
        with pytest.raises(TransportError, match="timed out after 5s"):
            await _client(handler, settings).complete("m", [])

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        def handler(request: httpx.Request) -> httpx.Response:
            payload = _completion("m", "x")
            payload["choices"] = []
            return httpx.Response(200, json=payload)

        with pytest.raises(TransportError):
            await _client(handler).complete("m", [])

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = OpenRouterClient(Settings(openrouter_api_key=None))
        with pytest.raises(TransportError):
            await client.complete("m", [])


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "k")
        monkeypatch.setenv("SONGMASTER_LLM_TIMEOUT", "45")
        monkeypatch.setenv("SONGMASTER_PROMPT_CACHE_TTL", "not-a-number")
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)

        settings = Settings.from_env()

        assert settings.openrouter_api_key == "k"
        assert settings.llm_timeout == 45
        assert settings.prompt_cache_ttl == 300
        assert not settings.uses_supabase

    def test_supabase_needs_url_and_key(self):
        assert Settings(supabase_url="https://x.supabase.co", supabase_key="k").uses_supabase
        assert not Settings(supabase_url="https://x.supabase.co").uses_supabase
