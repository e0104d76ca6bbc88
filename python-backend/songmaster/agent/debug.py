"""Debug tracing utilities for generation rounds."""

from __future__ import annotations

import json
import logging
from typing import Any

from songmaster.models.song import EvaluationBundle, GenerationRound

log = logging.getLogger(__name__)


def _format_value(value: Any, max_length: int | None = 300) -> str:
    """Format a value for display, truncating if needed."""
    if isinstance(value, str):
        s = value
    elif isinstance(value, dict):
        s = json.dumps(value, indent=2, default=str)
    elif hasattr(value, "model_dump"):
        s = json.dumps(value.model_dump(mode="json"), indent=2)
    else:
        s = str(value)

    if max_length is not None and len(s) > max_length:
        return s[:max_length] + f"\n... (truncated {len(s) - max_length} chars)"
    return s


def trace_system_prompt(system_prompt: str, label: str = "SYSTEM PROMPT") -> None:
    log.debug("=" * 80)
    log.debug(label)
    log.debug("=" * 80)
    log.debug(_format_value(system_prompt, max_length=None))
    log.debug("=" * 80)


def trace_raw_completion(agent_id: str, raw: str) -> None:
    """Log the untouched completion text for one agent."""
    log.debug("=" * 80)
    log.debug(f"RAW COMPLETION: {agent_id}")
    log.debug("=" * 80)
    log.debug(_format_value(raw, max_length=2000))
    log.debug("=" * 80)


def trace_round_summary(round_: GenerationRound) -> None:
    log.debug("=" * 80)
    log.debug(f"ROUND {round_.round_number} SUMMARY")
    log.debug("=" * 80)
    for agent_id, status in round_.statuses.items():
        if agent_id in round_.results:
            log.debug(f"  {agent_id}: {status.value} -> {round_.results[agent_id].name!r}")
        else:
            log.debug(f"  {agent_id}: {status.value} ({round_.errors.get(agent_id, '')})")
    log.debug(f"Completed: {round_.completed_count}  Failed: {round_.failed_count}")
    log.debug("=" * 80)


def trace_evaluation(bundle: EvaluationBundle) -> None:
    log.debug("=" * 80)
    log.debug("ORCHESTRATOR EVALUATION")
    log.debug("=" * 80)
    for agent_id, evaluation in bundle.evaluations.items():
        log.debug(f"  {agent_id}: total={evaluation.scores.total:.2f}")
    log.debug(f"Winner: {bundle.winner_agent_id} ({bundle.winner_reason})")
    log.debug("=" * 80)
