import pytest

from songmaster.agent.prompts import (
    ARTIST_CREATOR_KEY,
    DEFAULT_PROMPTS,
    ORCHESTRATOR_KEY,
    SONG_GENERATION_KEY,
    render_template,
)
from songmaster.services.cache import TTLCache
from songmaster.services.prompt_store import PromptStore
from songmaster.services.record_store import (
    PROMPTS_TABLE,
    InMemoryRecordStore,
    RecordStoreError,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class BrokenRecordStore(InMemoryRecordStore):
    async def select(self, table, filters=None):
        raise RecordStoreError("connection refused")


class TestTTLCache:
    @pytest.mark.asyncio
    async def test_value_cached_until_expiry(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        fetches = []

        async def fetch():
            fetches.append(clock.now)
            return f"value-{len(fetches)}"

        assert await cache.get_or_fetch("k", 300, fetch) == "value-1"
        clock.now += 299
        assert await cache.get_or_fetch("k", 300, fetch) == "value-1"
        clock.now += 2
        assert await cache.get_or_fetch("k", 300, fetch) == "value-2"
        assert len(fetches) == 2

    @pytest.mark.asyncio
    async def test_none_not_cached(self):
        cache = TTLCache()
        calls = []

        async def fetch():
            calls.append(1)
            return None

        await cache.get_or_fetch("k", 300, fetch)
        await cache.get_or_fetch("k", 300, fetch)
        assert len(calls) == 2
        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_invalidate(self):
        cache = TTLCache()

        async def fetch():
            return "v"

        await cache.get_or_fetch("k", 300, fetch)
        assert "k" in cache
        cache.invalidate("k")
        assert "k" not in cache


class TestRenderTemplate:
    def test_unknown_placeholders_and_json_braces_kept(self):
        template = 'Hi {name}, keep {other} and {"a": 1}'
        assert render_template(template, name="Ana") == 'Hi Ana, keep {other} and {"a": 1}'

    def test_values_not_rescanned(self):
        assert render_template("{a}{b}", a="{b}", b="x") == "{b}x"


class TestPromptStore:
    @pytest.mark.asyncio
    async def test_falls_back_to_default(self):
        store = PromptStore(InMemoryRecordStore(), TTLCache(), ttl=300)
        assert await store.get_prompt(ORCHESTRATOR_KEY) == DEFAULT_PROMPTS[ORCHESTRATOR_KEY]

    @pytest.mark.asyncio
    async def test_unavailable_store_falls_back(self):
        store = PromptStore(BrokenRecordStore(), TTLCache(), ttl=300)
        assert await store.get_prompt(SONG_GENERATION_KEY) == DEFAULT_PROMPTS[SONG_GENERATION_KEY]

    @pytest.mark.asyncio
    async def test_unknown_key(self):
        store = PromptStore(InMemoryRecordStore(), TTLCache(), ttl=300)
        with pytest.raises(KeyError):
            await store.get_prompt("does_not_exist")

    @pytest.mark.asyncio
    async def test_stored_prompt_cached(self):
        records = InMemoryRecordStore()
        await records.insert(
            PROMPTS_TABLE, {"key": ARTIST_CREATOR_KEY, "content": "v1", "is_active": True}
        )
        store = PromptStore(records, TTLCache(), ttl=300)
        assert await store.get_prompt(ARTIST_CREATOR_KEY) == "v1"

        # written behind the store's back: no invalidation
        await records.update(PROMPTS_TABLE, {"key": ARTIST_CREATOR_KEY}, {"content": "v2"})
        assert await store.get_prompt(ARTIST_CREATOR_KEY) == "v1"

    @pytest.mark.asyncio
    async def test_update_invalidates_cache(self):
        store = PromptStore(InMemoryRecordStore(), TTLCache(), ttl=300)
        await store.get_prompt(SONG_GENERATION_KEY)

        updated = await store.update_prompt(SONG_GENERATION_KEY, "new template")

        assert updated.content == "new template"
        assert await store.get_prompt(SONG_GENERATION_KEY) == "new template"
        await store.update_prompt(SONG_GENERATION_KEY, "newer template")
        assert await store.get_prompt(SONG_GENERATION_KEY) == "newer template"

    @pytest.mark.asyncio
    async def test_list_merges_defaults(self):
        store = PromptStore(InMemoryRecordStore(), TTLCache(), ttl=300)
        await store.update_prompt(ORCHESTRATOR_KEY, "judge carefully")

        prompts = {p.key: p for p in await store.list_prompts()}

        assert set(prompts) == {SONG_GENERATION_KEY, ORCHESTRATOR_KEY, ARTIST_CREATOR_KEY}
        assert prompts[ORCHESTRATOR_KEY].content == "judge carefully"
        assert not prompts[ORCHESTRATOR_KEY].is_default
        assert prompts[SONG_GENERATION_KEY].is_default
