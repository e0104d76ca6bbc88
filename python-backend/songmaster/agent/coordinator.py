"""Fan one song request out to several agents and collect every outcome."""

from __future__ import annotations

import asyncio
import logging
import time

from songmaster.agent.debug import (
    trace_raw_completion,
    trace_round_summary,
    trace_system_prompt,
)
from songmaster.agent.errors import IncompleteResultError, SongMasterError
from songmaster.agent.llm_client import DEFAULT_TEMPERATURE, CompletionClient
from songmaster.agent.prompts import render_template
from songmaster.agent.response_parser import parse_candidate
from songmaster.models.agent import Agent
from songmaster.models.artist import NO_ARTIST_CONTEXT
from songmaster.models.song import GenerationRound, SongCandidate

log = logging.getLogger(__name__)


def render_generation_prompt(
    template: str,
    user_request: str,
    user_style: str,
    artist_context: str | None = None,
) -> str:
    """Fill the song generation template for one request."""
    return render_template(
        template,
        artist_context=artist_context or NO_ARTIST_CONTEXT,
        song_description=user_request,
        style_description=user_style,
    )


def build_user_message(user_request: str, custom_instructions: str | None = None) -> str:
    if custom_instructions and custom_instructions.strip():
        return f"{user_request}\n\nAdditional instructions: {custom_instructions.strip()}"
    return user_request


def _require_fields(candidate: SongCandidate) -> SongCandidate:
    missing = [f for f in ("name", "lyrics") if not getattr(candidate, f).strip()]
    if missing:
        raise IncompleteResultError(missing)
    return candidate


class GenerationCoordinator:
    """Runs one generation round across a fixed set of agents.

    Every agent is generated for independently. A failing agent is recorded
    in the round's ``errors`` and never affects its siblings; the round is
    returned only once every agent reached ``done`` or ``error``.
    """

    def __init__(
        self,
        client: CompletionClient,
        temperature: float = DEFAULT_TEMPERATURE,
        debug: bool = False,
    ):
        self.client = client
        self.temperature = temperature
        self.debug = debug

    async def run_round(
        self,
        agents: list[Agent],
        system_prompt: str,
        user_request: str,
        custom_instructions: str | None = None,
        round_number: int = 0,
        title_override: str | None = None,
    ) -> GenerationRound:
        """Generate one candidate per agent.

        Args:
            agents: Agents to generate with; ids must be unique.
            system_prompt: Fully rendered system prompt shared by every agent.
            user_request: The user's song description, sent as the user message.
            custom_instructions: Optional free text appended to the user message.
            round_number: 0 for a fresh round, the iteration number otherwise.
            title_override: When set, replaces every successful candidate's title.

        Returns:
            The settled round. Zero successes is reported through
            ``round.succeeded`` rather than raised.
        """
        if not agents:
            raise ValueError("At least one agent is required")
        agent_ids = [agent.id for agent in agents]
        if len(set(agent_ids)) != len(agent_ids):
            raise ValueError(f"Duplicate agent ids in selection: {agent_ids}")

        round_ = GenerationRound.for_agents(agent_ids, round_number=round_number)
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_user_message(user_request, custom_instructions)},
        ]

        if self.debug:
            trace_system_prompt(system_prompt)

        start = time.time()
        log.info("Round %d: generating with %d agent(s)", round_number, len(agents))
        await asyncio.gather(
            *(self._generate_for_agent(round_, agent, messages, title_override) for agent in agents)
        )
        log.info(
            "Round %d settled in %.2fs: %d completed, %d failed",
            round_number,
            time.time() - start,
            round_.completed_count,
            round_.failed_count,
        )

        if self.debug:
            trace_round_summary(round_)
        return round_

    async def _generate_for_agent(
        self,
        round_: GenerationRound,
        agent: Agent,
        messages: list[dict[str, str]],
        title_override: str | None,
    ) -> None:
        round_.mark_generating(agent.id)
        try:
            raw = await self.client.complete(
                agent.model_name,
                messages,
                max_tokens=agent.max_output,
                temperature=self.temperature,
            )
            if self.debug:
                trace_raw_completion(agent.id, raw)
            candidate = _require_fields(parse_candidate(raw))
        except SongMasterError as e:
            log.warning("Generation failed for %s (%s): %s", agent.id, agent.model_name, e)
            round_.mark_error(agent.id, str(e))
            return
        except Exception as e:
            log.error("Unexpected error generating for %s: %s", agent.id, e, exc_info=True)
            round_.mark_error(agent.id, f"Unexpected error: {e}")
            return

        if title_override:
            candidate = candidate.model_copy(update={"name": title_override})
        round_.mark_done(agent.id, candidate)
        log.info("Agent %s produced %r", agent.id, candidate.name)
