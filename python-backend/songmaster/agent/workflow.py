from __future__ import annotations

import logging

from pydantic import BaseModel

from songmaster.agent.coordinator import GenerationCoordinator
from songmaster.agent.orchestrator import OrchestrationResult, Orchestrator
from songmaster.models.agent import Agent
from songmaster.models.song import GenerationRound

log = logging.getLogger(__name__)


class RoundOutcome(BaseModel):
    """A settled round plus its evaluation (None when evaluation was skipped)."""

    round: GenerationRound
    orchestration: OrchestrationResult | None = None

    @property
    def succeeded(self) -> bool:
        return self.round.succeeded

    @property
    def evaluated(self) -> bool:
        """True when songs were produced and the orchestrator picked among them."""
        return self.orchestration is not None and self.orchestration.succeeded

    @property
    def winner_agent_id(self) -> str | None:
        if self.orchestration is None or self.orchestration.winner is None:
            return None
        return self.orchestration.winner.winner_agent_id


async def run_and_evaluate(
    coordinator: GenerationCoordinator,
    orchestrator: Orchestrator,
    agents: list[Agent],
    orchestrator_agent: Agent,
    system_prompt: str,
    orchestrator_template: str,
    user_request: str,
    user_style: str,
    custom_instructions: str | None = None,
    round_number: int = 0,
    title_override: str | None = None,
) -> RoundOutcome:
    """Generate with every agent, then evaluate the successes once all have settled."""
    round_ = await coordinator.run_round(
        agents,
        system_prompt,
        user_request,
        custom_instructions=custom_instructions,
        round_number=round_number,
        title_override=title_override,
    )
    if not round_.succeeded:
        log.error("Round %d produced no songs, skipping orchestration", round_number)
        return RoundOutcome(round=round_)

    orchestration = await orchestrator.evaluate(
        orchestrator_agent,
        orchestrator_template,
        user_request,
        user_style,
        round_.results,
    )
    return RoundOutcome(round=round_, orchestration=orchestration)
