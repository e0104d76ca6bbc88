from __future__ import annotations

import logging
from dataclasses import dataclass

from songmaster.agent.coordinator import GenerationCoordinator
from songmaster.agent.iteration import IterationController
from songmaster.agent.llm_client import CompletionClient, OpenRouterClient
from songmaster.agent.orchestrator import Orchestrator
from songmaster.config import Settings
from songmaster.services.cache import TTLCache
from songmaster.services.prompt_store import PromptStore
from songmaster.services.record_store import (
    InMemoryRecordStore,
    RecordStore,
    SupabaseRecordStore,
)
from songmaster.services.supabase_client import SupabaseClient

log = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler or the CLI needs, wired once."""

    settings: Settings
    client: CompletionClient
    records: RecordStore
    prompts: PromptStore
    coordinator: GenerationCoordinator
    orchestrator: Orchestrator
    iteration: IterationController


def build_services(
    settings: Settings | None = None,
    client: CompletionClient | None = None,
    records: RecordStore | None = None,
    debug: bool = False,
) -> ServiceContainer:
    settings = settings or Settings.from_env()
    client = client or OpenRouterClient(settings)

    if records is None:
        if settings.uses_supabase:
            log.info("Using Supabase record store at %s", settings.supabase_url)
            records = SupabaseRecordStore(
                SupabaseClient(settings.supabase_url, settings.supabase_key)
            )
        else:
            log.info("SUPABASE_URL/SUPABASE_KEY not set, keeping records in memory")
            records = InMemoryRecordStore()

    prompts = PromptStore(records, TTLCache(), ttl=settings.prompt_cache_ttl)
    coordinator = GenerationCoordinator(client, debug=debug)
    orchestrator = Orchestrator(client, debug=debug)
    return ServiceContainer(
        settings=settings,
        client=client,
        records=records,
        prompts=prompts,
        coordinator=coordinator,
        orchestrator=orchestrator,
        iteration=IterationController(coordinator, orchestrator),
    )
