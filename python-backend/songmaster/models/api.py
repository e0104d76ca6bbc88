"""Request and response bodies for the REST API."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from songmaster.models.agent import Agent
from songmaster.models.song import (
    BaseSong,
    Evaluation,
    FailedAgent,
    GenerationRound,
    IterationContext,
    SongCandidate,
    WinnerAnalysis,
)


def _new_song_id() -> str:
    return str(uuid.uuid4())


class AgentRef(BaseModel):
    """An agent as named by the client for one request."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    agent_id: str = Field(validation_alias=AliasChoices("agent_id", "id"))
    model_name: str
    max_output: int = Field(default=4000, gt=0)

    def to_agent(self) -> Agent:
        return Agent(
            id=self.agent_id,
            name=self.agent_id,
            model_name=self.model_name,
            max_output=self.max_output,
        )


class GenerateRequest(BaseModel):
    song_id: str = Field(default_factory=_new_song_id, description="Opaque correlation id")
    agents: list[AgentRef] = Field(min_length=1)
    user_request: str = Field(description="What the song should be about")
    user_style: str = Field(default="", description="Desired musical style")
    artist_context: str | None = None
    custom_instructions: str | None = None
    iteration_context: IterationContext | None = None
    original_title: str | None = None
    iteration_number: int | None = Field(default=None, ge=0)
    base_song: BaseSong | None = None


class GenerateResponse(BaseModel):
    song_id: str
    results: dict[str, SongCandidate]
    completed_count: int
    failed_count: int
    failed_agents: list[FailedAgent]

    @classmethod
    def from_round(cls, song_id: str, round_: GenerationRound) -> GenerateResponse:
        return cls(
            song_id=song_id,
            results=round_.results,
            completed_count=round_.completed_count,
            failed_count=round_.failed_count,
            failed_agents=round_.failed_agents,
        )


class OrchestrateRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    song_id: str = Field(default_factory=_new_song_id)
    user_request: str
    user_style: str = ""
    songs: dict[str, SongCandidate]
    orchestrator_model_name: str | None = Field(
        default=None, validation_alias=AliasChoices("orchestrator_model_name", "model_name")
    )


class OrchestrateResponse(BaseModel):
    song_id: str
    evaluations: dict[str, Evaluation]
    winner_agent_id: str
    winner_reason: str = ""
    winner_analysis: WinnerAnalysis | None = None


class ArtistRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    input: str = Field(description="Free-text description of the artist to invent")
    model_name: str | None = None


class PromptUpdate(BaseModel):
    content: str


class SaveSongRequest(BaseModel):
    name: str
    lyrics: str
    style: str = Field(
        default="", validation_alias=AliasChoices("style", "style_description")
    )
    user_id: str | None = None
    artist_id: str | None = None
    iteration_count: int = Field(default=0, ge=0)
    winner_agent_id: str | None = None
    winner_reason: str | None = None
    evaluation_data: dict[str, Any] | None = None

    def to_record(self) -> dict[str, Any]:
        record = self.model_dump(exclude={"style"}, exclude_none=True)
        record["style_description"] = self.style
        record["status"] = "saved"
        return record
