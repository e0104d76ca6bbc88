"""Build and run iteration rounds that revise an existing winning song.

An iteration asks every agent for minimal, targeted edits to one base song,
guided by the orchestrator's critique of that song. The original title is
kept across iterations; only the iteration suffix changes.
"""

from __future__ import annotations

import logging

from songmaster.agent.coordinator import GenerationCoordinator
from songmaster.agent.orchestrator import Orchestrator
from songmaster.agent.workflow import RoundOutcome, run_and_evaluate
from songmaster.models.agent import Agent
from songmaster.models.song import (
    RECOMMENDATION_BUCKETS,
    BaseSong,
    IterationContext,
    SongCandidate,
)

log = logging.getLogger(__name__)

NONE_PLACEHOLDER = "None"

RECOMMENDATION_LABELS = {
    "critical_fixes": "Critical Fixes (highest priority)",
    "quick_wins": "Quick Wins",
    "depth_enhancements": "Depth Enhancements",
    "suno_optimization": "Suno Optimization",
}


def compose_iteration_title(original_title: str, iteration_number: int) -> str:
    return f"{original_title} (Iteration #{iteration_number})"


def bullet_list(items: list[str]) -> str:
    """Render items as ``- item`` lines; an empty list renders ``- None``."""
    cleaned = [item.strip() for item in items if item and item.strip()]
    if not cleaned:
        return f"- {NONE_PLACEHOLDER}"
    return "\n".join(f"- {item}" for item in cleaned)


def build_iteration_prompt(
    base_prompt: str,
    context: IterationContext,
    base_song: SongCandidate | BaseSong | None = None,
) -> str:
    """Append the iteration guidelines, feedback and base song to ``base_prompt``.

    ``base_song`` defaults to ``context.base_song``; one of them is required.
    """
    song = base_song or context.base_song
    if song is None:
        raise ValueError("An iteration needs the base song it revises")

    recommendation_sections = [
        f"### {RECOMMENDATION_LABELS[bucket]}\n"
        f"{bullet_list(getattr(context.recommendations, bucket))}"
        for bucket in RECOMMENDATION_BUCKETS
    ]

    sections = [
        base_prompt.rstrip(),
        "# Iteration Guidelines\n"
        "You are revising an existing song, not writing a new one. Make minimal, "
        "targeted edits: keep everything listed under strengths exactly as it is, "
        "change only what the weaknesses and recommendations call for, and keep "
        "the song's structure unless a fix requires otherwise.",
        "## Strengths to Preserve (keep as-is)\n" + bullet_list(context.strengths),
        "## Weaknesses to Address (targeted changes required)\n"
        + bullet_list(context.weaknesses),
        "## Recommendations (apply in this order)\n" + "\n\n".join(recommendation_sections),
        "## Current Song to Improve\n"
        "This is the required starting point, not a suggestion. Return it with "
        "your targeted changes applied.\n\n"
        f"Style:\n{song.style}\n\n"
        f"Lyrics:\n{song.lyrics}",
        "## Original Request\n"
        f"Song Description: {context.original_request}\n"
        f"Desired Style: {context.original_style}",
    ]
    if context.custom_instructions and context.custom_instructions.strip():
        sections.append(
            "## Custom Instructions from the User\n" + context.custom_instructions.strip()
        )
    sections.append(f"## Iteration\nThis is iteration #{context.iteration_number}.")
    return "\n\n".join(sections)


class IterationController:
    """Runs iteration rounds through the same coordinator and orchestrator as fresh rounds."""

    def __init__(self, coordinator: GenerationCoordinator, orchestrator: Orchestrator):
        self.coordinator = coordinator
        self.orchestrator = orchestrator

    def build_prompt(
        self,
        base_prompt: str,
        context: IterationContext,
        base_song: SongCandidate | BaseSong | None = None,
    ) -> str:
        return build_iteration_prompt(base_prompt, context, base_song)

    async def run_iteration(
        self,
        agents: list[Agent],
        orchestrator_agent: Agent,
        base_prompt: str,
        orchestrator_template: str,
        context: IterationContext,
        original_title: str,
        base_song: SongCandidate | BaseSong | None = None,
    ) -> RoundOutcome:
        """Run iteration ``context.iteration_number`` against ``agents``.

        Every successful candidate is titled
        ``"<original_title> (Iteration #<n>)"`` whatever the model called it.
        """
        prompt = self.build_prompt(base_prompt, context, base_song)
        log.info(
            "Iteration #%d of %r with %d agent(s)",
            context.iteration_number,
            original_title,
            len(agents),
        )
        return await run_and_evaluate(
            self.coordinator,
            self.orchestrator,
            agents,
            orchestrator_agent,
            prompt,
            orchestrator_template,
            context.original_request,
            context.original_style,
            custom_instructions=context.custom_instructions,
            round_number=context.iteration_number,
            title_override=compose_iteration_title(original_title, context.iteration_number),
        )
