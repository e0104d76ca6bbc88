"""One user's song-writing session: fresh rounds, overrides, iterations, save."""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from songmaster.agent.coordinator import render_generation_prompt
from songmaster.agent.iteration import compose_iteration_title
from songmaster.agent.prompts import ORCHESTRATOR_KEY, SONG_GENERATION_KEY
from songmaster.agent.workflow import RoundOutcome, run_and_evaluate
from songmaster.models.agent import Agent
from songmaster.models.api import SaveSongRequest
from songmaster.models.artist import Artist
from songmaster.models.song import Evaluation, IterationContext, SongCandidate
from songmaster.services.container import ServiceContainer
from songmaster.services.record_store import SONGS_TABLE

log = logging.getLogger(__name__)


class SessionStateError(ValueError):
    """The requested action needs a round state the session is not in."""


class SongSession:
    """Drives rounds for one song request and tracks iteration state.

    ``current`` is the round the user is looking at. A failed iteration
    leaves it (and the iteration count) untouched so the same iteration
    can simply be attempted again.
    """

    def __init__(
        self,
        services: ServiceContainer,
        agents: list[Agent],
        orchestrator_agent: Agent,
        user_request: str,
        user_style: str = "",
        artist: Artist | None = None,
        song_id: str | None = None,
    ):
        self.services = services
        self.agents = list(agents)
        self.orchestrator_agent = orchestrator_agent
        self.user_request = user_request
        self.user_style = user_style
        self.artist = artist
        self.song_id = song_id or str(uuid4())

        self.current: RoundOutcome | None = None
        self.history: list[RoundOutcome] = []
        self.iteration_count = 0
        self.original_title: str | None = None
        self.override_agent_id: str | None = None

    async def _base_prompt(self) -> str:
        template = await self.services.prompts.get_prompt(SONG_GENERATION_KEY)
        return render_generation_prompt(
            template,
            self.user_request,
            self.user_style,
            self.artist.context_text() if self.artist else None,
        )

    async def generate(self, custom_instructions: str | None = None) -> RoundOutcome:
        """Run a fresh round; this resets iteration state."""
        base_prompt = await self._base_prompt()
        orchestrator_template = await self.services.prompts.get_prompt(ORCHESTRATOR_KEY)
        outcome = await run_and_evaluate(
            self.services.coordinator,
            self.services.orchestrator,
            self.agents,
            self.orchestrator_agent,
            base_prompt,
            orchestrator_template,
            self.user_request,
            self.user_style,
            custom_instructions=custom_instructions,
        )
        self.history.append(outcome)
        self.current = outcome
        self.iteration_count = 0
        self.original_title = None
        self.override_agent_id = None
        return outcome

    @property
    def winner_agent_id(self) -> str | None:
        """The user's override if set, else the orchestrator's pick."""
        if self.override_agent_id:
            return self.override_agent_id
        return self.current.winner_agent_id if self.current else None

    @property
    def winner_song(self) -> SongCandidate | None:
        winner_id = self.winner_agent_id
        if self.current is None or winner_id is None:
            return None
        return self.current.round.results.get(winner_id)

    def override_winner(self, agent_id: str) -> None:
        if self.current is None or agent_id not in self.current.round.results:
            raise SessionStateError(f"No song from agent {agent_id!r} in the current round")
        log.info("User override: %s (orchestrator picked %s)", agent_id, self.current.winner_agent_id)
        self.override_agent_id = agent_id

    def _winner_evaluation(self, winner_id: str) -> Evaluation:
        orchestration = self.current.orchestration if self.current else None
        if orchestration is None or winner_id not in orchestration.evaluations:
            log.warning("No evaluation for %s, iterating with empty feedback", winner_id)
            return Evaluation()
        return orchestration.evaluations[winner_id]

    async def iterate(self, custom_instructions: str | None = None) -> RoundOutcome:
        """Revise the current winner with targeted feedback.

        Raises:
            SessionStateError: There is no winning song to iterate on.
        """
        winner_id = self.winner_agent_id
        base_song = self.winner_song
        if winner_id is None or base_song is None:
            raise SessionStateError("Nothing to iterate on: the current round has no winner")

        iteration_number = self.iteration_count + 1
        original_title = self.original_title or base_song.name
        context = IterationContext.from_evaluation(
            self._winner_evaluation(winner_id),
            base_song,
            original_request=self.user_request,
            original_style=self.user_style,
            iteration_number=iteration_number,
            custom_instructions=custom_instructions,
        )
        orchestrator_template = await self.services.prompts.get_prompt(ORCHESTRATOR_KEY)
        outcome = await self.services.iteration.run_iteration(
            self.agents,
            self.orchestrator_agent,
            await self._base_prompt(),
            orchestrator_template,
            context,
            original_title,
        )
        self.history.append(outcome)

        if not outcome.evaluated:
            log.error("Iteration #%d failed; it can be retried", iteration_number)
            return outcome

        self.iteration_count = iteration_number
        self.original_title = original_title
        self.current = outcome
        self.override_agent_id = None
        log.info("Now at %r", compose_iteration_title(original_title, iteration_number))
        return outcome

    async def save(self, user_id: str | None = None) -> dict[str, Any]:
        """Store the winning song. Nothing is persisted unless this is called."""
        winner_id = self.winner_agent_id
        song = self.winner_song
        if winner_id is None or song is None:
            raise SessionStateError("Nothing to save: the current round has no winner")

        orchestration = self.current.orchestration
        evaluation = orchestration.evaluations.get(winner_id) if orchestration else None
        winner = orchestration.winner if orchestration else None
        request = SaveSongRequest(
            name=song.name,
            lyrics=song.lyrics,
            style=song.style,
            user_id=user_id,
            artist_id=self.artist.id if self.artist else None,
            iteration_count=self.iteration_count,
            winner_agent_id=winner_id,
            winner_reason=winner.winner_reason if winner else None,
            evaluation_data=evaluation.model_dump(mode="json") if evaluation else None,
        )
        return await self.services.records.insert(SONGS_TABLE, request.to_record())
