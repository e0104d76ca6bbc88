"""Song, round and evaluation models for the multi-agent workflow."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


def _as_list(value: Any) -> Any:
    """Models sometimes answer a single string where a list is asked for."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


class SongCandidate(BaseModel):
    """One agent's song specification for a round."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="Untitled", description="Song title, ~50 chars by convention")
    style: str = Field(
        default="",
        validation_alias=AliasChoices("style", "style_description"),
        description="Free-text music style description",
    )
    lyrics: str = Field(default="", description="Lyrics, may contain [Verse]/[Chorus] markers")


class BaseSong(BaseModel):
    """The literal content an iteration revises."""

    model_config = ConfigDict(populate_by_name=True)

    style: str = Field(
        default="", validation_alias=AliasChoices("style", "style_description")
    )
    lyrics: str = ""


class AgentStatus(str, Enum):
    WAITING = "waiting"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


class FailedAgent(BaseModel):
    agent_id: str
    error: str


class GenerationRound(BaseModel):
    """Candidates produced by fanning one request out to a set of agents.

    Each agent's entries are written only by the task generating for that
    agent. ``results`` holds agents that reached ``done``; ``errors`` holds
    agents that reached ``error``.
    """

    round_number: int = Field(default=0, ge=0)
    statuses: dict[str, AgentStatus] = Field(default_factory=dict)
    results: dict[str, SongCandidate] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_agents(cls, agent_ids: list[str], round_number: int = 0) -> GenerationRound:
        return cls(
            round_number=round_number,
            statuses={agent_id: AgentStatus.WAITING for agent_id in agent_ids},
        )

    def mark_generating(self, agent_id: str) -> None:
        self.statuses[agent_id] = AgentStatus.GENERATING

    def mark_done(self, agent_id: str, candidate: SongCandidate) -> None:
        self.statuses[agent_id] = AgentStatus.DONE
        self.results[agent_id] = candidate

    def mark_error(self, agent_id: str, reason: str) -> None:
        self.statuses[agent_id] = AgentStatus.ERROR
        self.errors[agent_id] = reason

    @property
    def settled(self) -> bool:
        return all(
            status in (AgentStatus.DONE, AgentStatus.ERROR)
            for status in self.statuses.values()
        )

    @property
    def completed_count(self) -> int:
        return len(self.results)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def failed_agents(self) -> list[FailedAgent]:
        return [FailedAgent(agent_id=a, error=e) for a, e in self.errors.items()]

    @property
    def succeeded(self) -> bool:
        return self.completed_count > 0


class Scores(BaseModel):
    """Orchestrator rubric, each score on a 1-10 scale."""

    model_config = ConfigDict(extra="ignore")

    music_style: float = 0
    lyrics: float = 0
    originality: float = 0
    cohesion: float = 0
    request_alignment: float | None = None
    suno_execution_prediction: float | None = None

    @computed_field
    @property
    def total(self) -> float:
        return (self.music_style + self.lyrics + self.originality + self.cohesion) / 4


class Recommendations(BaseModel):
    """Improvement directives, in the priority order they are applied."""

    critical_fixes: list[str] = Field(default_factory=list)
    quick_wins: list[str] = Field(default_factory=list)
    depth_enhancements: list[str] = Field(default_factory=list)
    suno_optimization: list[str] = Field(default_factory=list)

    coerce_lists = field_validator(
        "critical_fixes",
        "quick_wins",
        "depth_enhancements",
        "suno_optimization",
        mode="before",
    )(_as_list)


RECOMMENDATION_BUCKETS: tuple[str, ...] = (
    "critical_fixes",
    "quick_wins",
    "depth_enhancements",
    "suno_optimization",
)


class Evaluation(BaseModel):
    """The orchestrator's critique of one candidate."""

    model_config = ConfigDict(extra="allow")

    scores: Scores = Field(default_factory=Scores)
    analysis: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    matched_request: dict[str, Any] | str | None = None
    suno_compliance: dict[str, Any] | None = None

    coerce_lists = field_validator("strengths", "weaknesses", mode="before")(_as_list)

    @field_validator("recommendations", mode="before")
    @classmethod
    def recommendations_from_text(cls, value: Any) -> Any:
        # Older orchestrator prompts answered a single paragraph.
        if isinstance(value, str):
            return {"quick_wins": [value]} if value.strip() else {}
        return value or {}


class WinnerAnalysis(BaseModel):
    reason: str = ""
    key_differentiators: list[str] = Field(default_factory=list)
    best_for: str = ""

    coerce_lists = field_validator("key_differentiators", mode="before")(_as_list)


class EvaluationBundle(BaseModel):
    """Everything one orchestrator call returns."""

    model_config = ConfigDict(extra="allow")

    evaluations: dict[str, Evaluation] = Field(default_factory=dict)
    winner_agent_id: str | None = None
    winner_reason: str = ""
    winner_analysis: WinnerAnalysis | None = None
    comparative_insights: dict[str, Any] | None = None
    user_guidance: dict[str, Any] | None = None


class WinnerSelection(BaseModel):
    """The orchestrator's verdict for a round. User overrides live on the session."""

    winner_agent_id: str
    winner_reason: str = ""
    winner_analysis: WinnerAnalysis | None = None


class IterationContext(BaseModel):
    """Feedback carried from a finished round into the next one."""

    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    scores: Scores | None = None
    original_request: str = ""
    original_style: str = ""
    custom_instructions: str | None = None
    base_song: BaseSong | None = None
    iteration_number: int = Field(default=1, ge=1)

    coerce_lists = field_validator("strengths", "weaknesses", mode="before")(_as_list)

    @classmethod
    def from_evaluation(
        cls,
        evaluation: Evaluation,
        base_song: SongCandidate,
        original_request: str,
        original_style: str,
        iteration_number: int,
        custom_instructions: str | None = None,
    ) -> IterationContext:
        return cls(
            strengths=list(evaluation.strengths),
            weaknesses=list(evaluation.weaknesses),
            recommendations=evaluation.recommendations.model_copy(deep=True),
            scores=evaluation.scores,
            original_request=original_request,
            original_style=original_style,
            custom_instructions=custom_instructions,
            base_song=BaseSong(style=base_song.style, lyrics=base_song.lyrics),
            iteration_number=iteration_number,
        )
