"""Environment-driven settings for the SongMaster backend."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)

# OpenRouter config: set OPENROUTER_API_KEY env var
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL_NAME = "anthropic/claude-sonnet-4-5"

DEFAULT_LLM_TIMEOUT_SECONDS = 120.0
DEFAULT_PROMPT_CACHE_TTL_SECONDS = 300.0


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Invalid %s env var %r, using default %s", name, raw, default)
        return default


class Settings(BaseModel):
    """Runtime configuration, normally built with ``Settings.from_env()``."""

    openrouter_api_key: str | None = Field(
        default=None, description="API key for the LLM aggregation endpoint"
    )
    openrouter_base_url: str = Field(
        default=OPENROUTER_BASE_URL, description="OpenAI-compatible base URL"
    )
    default_model: str = Field(
        default=DEFAULT_MODEL_NAME,
        description="Model used when a request does not name one",
    )
    llm_timeout: float = Field(
        default=DEFAULT_LLM_TIMEOUT_SECONDS,
        gt=0,
        description="Per upstream completion call timeout in seconds",
    )
    prompt_cache_ttl: float = Field(
        default=DEFAULT_PROMPT_CACHE_TTL_SECONDS,
        ge=0,
        description="How long resolved prompt templates stay cached",
    )
    supabase_url: str | None = Field(
        default=None, description="Supabase project URL; None keeps records in memory"
    )
    supabase_key: str | None = Field(default=None, description="Supabase service key")

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            openrouter_api_key=os.environ.get("OPENROUTER_API_KEY"),
            openrouter_base_url=os.environ.get("OPENROUTER_BASE_URL", OPENROUTER_BASE_URL),
            default_model=os.environ.get("SONGMASTER_DEFAULT_MODEL", DEFAULT_MODEL_NAME),
            llm_timeout=_float_env("SONGMASTER_LLM_TIMEOUT", DEFAULT_LLM_TIMEOUT_SECONDS),
            prompt_cache_ttl=_float_env(
                "SONGMASTER_PROMPT_CACHE_TTL", DEFAULT_PROMPT_CACHE_TTL_SECONDS
            ),
            supabase_url=os.environ.get("SUPABASE_URL") or None,
            supabase_key=os.environ.get("SUPABASE_KEY") or None,
        )

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
