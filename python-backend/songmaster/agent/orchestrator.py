"""Single-call evaluation of a round's candidates by the orchestrator agent."""

from __future__ import annotations

import logging
import time

from pydantic import BaseModel, Field

from songmaster.agent.debug import trace_evaluation, trace_raw_completion
from songmaster.agent.errors import SongMasterError
from songmaster.agent.llm_client import CompletionClient
from songmaster.agent.prompts import render_template
from songmaster.agent.response_parser import parse_evaluation_bundle
from songmaster.models.agent import Agent
from songmaster.models.song import (
    Evaluation,
    EvaluationBundle,
    SongCandidate,
    WinnerSelection,
)

log = logging.getLogger(__name__)

LYRICS_PREVIEW_CHARS = 500
ORCHESTRATOR_TEMPERATURE = 0.3


def lyrics_preview(lyrics: str, limit: int = LYRICS_PREVIEW_CHARS) -> str:
    if len(lyrics) <= limit:
        return lyrics
    return lyrics[:limit] + "..."


def format_songs_summary(songs: dict[str, SongCandidate]) -> str:
    """Render every candidate as one block of the orchestrator prompt."""
    return "\n\n---\n\n".join(
        f"[Agent: {agent_id}]\n"
        f"Name: {song.name}\n"
        f"Style: {song.style}\n"
        f"Lyrics: {lyrics_preview(song.lyrics)}"
        for agent_id, song in songs.items()
    )


class OrchestrationResult(BaseModel):
    """Outcome of one orchestrator call; ``error`` is set instead of raising."""

    evaluations: dict[str, Evaluation] = Field(default_factory=dict)
    winner: WinnerSelection | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.winner is not None


def select_winner(bundle: EvaluationBundle, candidate_ids: list[str]) -> WinnerSelection | None:
    """Take the orchestrator's pick, or the best-scored evaluation if its pick is unusable."""
    winner_id = bundle.winner_agent_id
    if winner_id not in candidate_ids:
        scored = [
            (evaluation.scores.total, agent_id)
            for agent_id, evaluation in bundle.evaluations.items()
            if agent_id in candidate_ids
        ]
        if not scored:
            return None
        log.warning(
            "Orchestrator winner %r is not a candidate, using the highest total score",
            winner_id,
        )
        winner_id = max(scored)[1]

    reason = bundle.winner_reason
    if not reason and bundle.winner_analysis is not None:
        reason = bundle.winner_analysis.reason
    return WinnerSelection(
        winner_agent_id=winner_id,
        winner_reason=reason,
        winner_analysis=bundle.winner_analysis,
    )


class Orchestrator:
    """Scores a round's successful candidates and picks a winner in one call."""

    def __init__(
        self,
        client: CompletionClient,
        temperature: float = ORCHESTRATOR_TEMPERATURE,
        debug: bool = False,
    ):
        self.client = client
        self.temperature = temperature
        self.debug = debug

    def build_prompt(
        self,
        template: str,
        user_request: str,
        user_style: str,
        songs: dict[str, SongCandidate],
    ) -> str:
        return render_template(
            template,
            songs=format_songs_summary(songs),
            song_description=user_request,
            style_description=user_style,
        )

    async def evaluate(
        self,
        agent: Agent,
        template: str,
        user_request: str,
        user_style: str,
        songs: dict[str, SongCandidate],
    ) -> OrchestrationResult:
        """Evaluate ``songs`` (successful candidates only) with ``agent``."""
        if not songs:
            raise ValueError("Nothing to evaluate: the round has no successful candidates")

        prompt = self.build_prompt(template, user_request, user_style, songs)
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": f"Evaluate these {len(songs)} songs."},
        ]

        start = time.time()
        try:
            raw = await self.client.complete(
                agent.model_name,
                messages,
                max_tokens=agent.max_output,
                temperature=self.temperature,
            )
            if self.debug:
                trace_raw_completion(agent.id, raw)
            bundle = parse_evaluation_bundle(raw)
        except SongMasterError as e:
            log.error("Orchestrator %s failed: %s", agent.model_name, e)
            return OrchestrationResult(error=str(e))

        if self.debug:
            trace_evaluation(bundle)

        candidate_ids = list(songs)
        evaluations = {
            agent_id: evaluation
            for agent_id, evaluation in bundle.evaluations.items()
            if agent_id in songs
        }
        winner = select_winner(bundle, candidate_ids)
        if winner is None:
            log.error("Orchestrator returned no usable winner or evaluations")
            return OrchestrationResult(
                evaluations=evaluations, error="Orchestrator did not select a winner"
            )

        log.info(
            "Orchestration completed in %.2fs: winner=%s, %d evaluation(s)",
            time.time() - start,
            winner.winner_agent_id,
            len(evaluations),
        )
        return OrchestrationResult(evaluations=evaluations, winner=winner)
