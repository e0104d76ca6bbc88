"""Editable prompt templates with cached lookup and hardcoded fallbacks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from songmaster.agent.prompts import DEFAULT_PROMPTS
from songmaster.services.cache import TTLCache
from songmaster.services.record_store import PROMPTS_TABLE, RecordStore, RecordStoreError

log = logging.getLogger(__name__)

PROMPT_NAMES = {
    "song_generation": "Song Generation",
    "orchestrator": "Orchestrator",
    "artist_creator": "Artist Creator",
}


class SystemPrompt(BaseModel):
    id: str | None = None
    key: str
    name: str = ""
    content: str
    description: str | None = None
    is_active: bool = True
    updated_at: str | None = None
    is_default: bool = Field(
        default=False, description="True when served from the built-in template"
    )


class PromptStore:
    """Resolves prompt templates by key.

    Lookups go through ``cache`` for ``ttl`` seconds. A missing row or an
    unreachable store falls back to the built-in template for that key.
    """

    def __init__(
        self,
        records: RecordStore,
        cache: TTLCache,
        ttl: float,
        defaults: dict[str, str] | None = None,
    ):
        self.records = records
        self.cache = cache
        self.ttl = ttl
        self.defaults = dict(DEFAULT_PROMPTS if defaults is None else defaults)

    async def _fetch(self, key: str) -> str | None:
        try:
            rows = await self.records.select(PROMPTS_TABLE, {"key": key, "is_active": True})
        except RecordStoreError as e:
            log.warning("Prompt store unavailable for %s, using default: %s", key, e)
            return None
        if not rows or not rows[0].get("content"):
            return None
        return rows[0]["content"]

    async def get_prompt(self, key: str) -> str:
        content = await self.cache.get_or_fetch(key, self.ttl, lambda: self._fetch(key))
        if content is not None:
            return content
        if key not in self.defaults:
            raise KeyError(f"Unknown prompt key: {key}")
        return self.defaults[key]

    async def list_prompts(self) -> list[SystemPrompt]:
        """Stored prompts plus built-in defaults for keys with no stored row."""
        try:
            rows = await self.records.select(PROMPTS_TABLE)
        except RecordStoreError as e:
            log.warning("Prompt store unavailable, listing defaults only: %s", e)
            rows = []
        prompts = [SystemPrompt.model_validate(row) for row in rows]
        stored_keys = {p.key for p in prompts}
        prompts.extend(
            SystemPrompt(
                key=key,
                name=PROMPT_NAMES.get(key, key),
                content=content,
                is_default=True,
            )
            for key, content in self.defaults.items()
            if key not in stored_keys
        )
        return sorted(prompts, key=lambda p: p.key)

    async def update_prompt(self, key: str, content: str) -> SystemPrompt:
        """Write ``content`` for ``key`` (creating the row if needed) and drop its cache entry."""
        now = datetime.now(timezone.utc).isoformat()
        rows = await self.records.update(
            PROMPTS_TABLE, {"key": key}, {"content": content, "updated_at": now}
        )
        if rows:
            row = rows[0]
        else:
            row = await self.records.insert(
                PROMPTS_TABLE,
                {
                    "key": key,
                    "name": PROMPT_NAMES.get(key, key),
                    "content": content,
                    "is_active": True,
                    "updated_at": now,
                },
            )
        self.cache.invalidate(key)
        log.info("Updated prompt %s", key)
        return SystemPrompt.model_validate(row)
