from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from songmaster.models.agent import DEFAULT_AGENTS, Agent
from songmaster.services.record_store import AGENTS_TABLE, RecordStore, RecordStoreError

log = logging.getLogger(__name__)


def _agent_from_row(row: dict[str, Any]) -> Agent:
    data = dict(row)
    # Stored agents keep the token budget under capabilities.max_output
    capabilities = data.get("capabilities")
    if "max_output" not in data and isinstance(capabilities, dict):
        if capabilities.get("max_output"):
            data["max_output"] = capabilities["max_output"]
    return Agent.model_validate(data)


async def load_agents(records: RecordStore) -> list[Agent]:
    """Active agents from the store, or the built-in set when none are stored."""
    try:
        rows = await records.select(AGENTS_TABLE, {"is_active": True})
    except RecordStoreError as e:
        log.warning("Could not load agents, using defaults: %s", e)
        rows = []

    agents: list[Agent] = []
    for row in rows:
        try:
            agents.append(_agent_from_row(row))
        except ValidationError as e:
            log.warning("Skipping malformed agent row %s: %s", row.get("id"), e)

    if not agents:
        return list(DEFAULT_AGENTS)
    return sorted(agents, key=lambda a: a.name)


def select_agents(available: list[Agent], agent_ids: list[str]) -> list[Agent]:
    """Pick ``agent_ids`` from ``available``, keeping the requested order."""
    by_id = {agent.id: agent for agent in available}
    unknown = [agent_id for agent_id in agent_ids if agent_id not in by_id]
    if unknown:
        raise KeyError(f"Unknown agent id(s): {', '.join(unknown)}")
    return [by_id[agent_id] for agent_id in agent_ids]
