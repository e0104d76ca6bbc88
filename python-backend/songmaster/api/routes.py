"""REST API routes for multi-agent song generation and evaluation."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from songmaster.agent.coordinator import render_generation_prompt
from songmaster.agent.errors import SongMasterError
from songmaster.agent.iteration import build_iteration_prompt, compose_iteration_title
from songmaster.agent.prompts import DEFAULT_PROMPTS, ORCHESTRATOR_KEY, SONG_GENERATION_KEY
from songmaster.models.agent import DEFAULT_ORCHESTRATOR
from songmaster.models.api import (
    ArtistRequest,
    GenerateRequest,
    GenerateResponse,
    OrchestrateRequest,
    OrchestrateResponse,
    PromptUpdate,
    SaveSongRequest,
)
from songmaster.services.agent_catalog import load_agents
from songmaster.services.artist_service import generate_artist_options
from songmaster.services.container import ServiceContainer, build_services
from songmaster.services.record_store import SONGS_TABLE, RecordStoreError

log = logging.getLogger(__name__)


def _services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _iteration_number(body: GenerateRequest) -> int:
    if body.iteration_number is not None:
        return body.iteration_number
    if body.iteration_context is not None:
        return body.iteration_context.iteration_number
    return 0


def _title_override(body: GenerateRequest) -> str | None:
    if not body.original_title:
        return None
    number = _iteration_number(body)
    if not number:
        return None
    return compose_iteration_title(body.original_title, number)


async def _system_prompt(services: ServiceContainer, body: GenerateRequest) -> str:
    template = await services.prompts.get_prompt(SONG_GENERATION_KEY)
    prompt = render_generation_prompt(
        template, body.user_request, body.user_style, body.artist_context
    )
    if body.iteration_context is None:
        return prompt
    try:
        return build_iteration_prompt(prompt, body.iteration_context, body.base_song)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` defaults to ``build_services()`` from the environment.
    """
    app = FastAPI(
        title="SongMaster API",
        description="Multi-agent song generation, evaluation and iteration",
        version="0.1.0",
    )
    app.state.services = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/agents")
    async def list_agents(request: Request) -> dict:
        agents = await load_agents(_services(request).records)
        return {"agents": [agent.model_dump() for agent in agents]}

    @app.post("/api/generate")
    async def generate_songs(body: GenerateRequest, request: Request) -> GenerateResponse:
        """
        Generate one candidate per requested agent.

        With ``iteration_context`` the round revises ``base_song`` instead of
        writing from scratch, and successful titles become
        ``"<original_title> (Iteration #<n>)"``.

        Returns:
            Every agent's result or error. HTTP 502 (same body in ``detail``)
            when no agent produced a song.
        """
        services = _services(request)
        agents = [ref.to_agent() for ref in body.agents]
        system_prompt = await _system_prompt(services, body)

        custom = body.custom_instructions
        if custom is None and body.iteration_context is not None:
            custom = body.iteration_context.custom_instructions

        log.info(f"[{body.song_id}] Generating with {len(agents)} agent(s)")
        try:
            round_ = await services.coordinator.run_round(
                agents,
                system_prompt,
                body.user_request,
                custom_instructions=custom,
                round_number=_iteration_number(body),
                title_override=_title_override(body),
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        response = GenerateResponse.from_round(body.song_id, round_)
        if not round_.succeeded:
            log.error(f"[{body.song_id}] All {len(agents)} agent(s) failed")
            raise HTTPException(status_code=502, detail=response.model_dump(mode="json"))
        return response

    @app.post("/api/orchestrate")
    async def orchestrate(body: OrchestrateRequest, request: Request) -> OrchestrateResponse:
        """Evaluate a round's successful songs and pick a winner."""
        if not body.songs:
            raise HTTPException(status_code=400, detail="No songs to evaluate")

        services = _services(request)
        agent = DEFAULT_ORCHESTRATOR
        if body.orchestrator_model_name:
            agent = agent.model_copy(update={"model_name": body.orchestrator_model_name})

        template = await services.prompts.get_prompt(ORCHESTRATOR_KEY)
        result = await services.orchestrator.evaluate(
            agent, template, body.user_request, body.user_style, body.songs
        )
        if not result.succeeded:
            raise HTTPException(status_code=502, detail=result.error or "Orchestration failed")

        return OrchestrateResponse(
            song_id=body.song_id,
            evaluations=result.evaluations,
            winner_agent_id=result.winner.winner_agent_id,
            winner_reason=result.winner.winner_reason,
            winner_analysis=result.winner.winner_analysis,
        )

    @app.post("/api/generate-artist")
    async def generate_artist(body: ArtistRequest, request: Request) -> dict:
        """Suggest three fictional artist profiles for a free-text description."""
        if not body.input.strip():
            raise HTTPException(status_code=400, detail="Artist description is empty")
        services = _services(request)
        try:
            options = await generate_artist_options(
                services.client,
                services.prompts,
                body.input,
                body.model_name or services.settings.default_model,
            )
        except SongMasterError as e:
            log.error(f"Artist generation failed: {e}", exc_info=True)
            raise HTTPException(status_code=502, detail=str(e))
        return {"artists": [option.model_dump() for option in options]}

    @app.get("/api/prompts")
    async def list_prompts(request: Request) -> dict:
        prompts = await _services(request).prompts.list_prompts()
        return {"prompts": [prompt.model_dump() for prompt in prompts]}

    @app.put("/api/prompts/{key}")
    async def update_prompt(key: str, body: PromptUpdate, request: Request) -> dict:
        """Replace a prompt template; the next lookup sees the new content."""
        if key not in DEFAULT_PROMPTS:
            raise HTTPException(status_code=404, detail="Prompt not found")
        try:
            prompt = await _services(request).prompts.update_prompt(key, body.content)
        except RecordStoreError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return prompt.model_dump()

    @app.post("/api/songs")
    async def save_song(body: SaveSongRequest, request: Request) -> dict:
        try:
            return await _services(request).records.insert(SONGS_TABLE, body.to_record())
        except RecordStoreError as e:
            log.error(f"Saving song {body.name!r} failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))

    @app.get("/api/songs")
    async def list_songs(request: Request, user_id: Optional[str] = None) -> dict:
        filters = {"user_id": user_id} if user_id else None
        try:
            songs = await _services(request).records.select(SONGS_TABLE, filters)
        except RecordStoreError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"songs": songs}

    @app.delete("/api/songs/{song_id}")
    async def delete_song(song_id: str, request: Request) -> dict:
        try:
            deleted = await _services(request).records.delete(SONGS_TABLE, song_id)
        except RecordStoreError as e:
            raise HTTPException(status_code=502, detail=str(e))
        if not deleted:
            raise HTTPException(status_code=404, detail="Song not found")
        return {"deleted": song_id}

    return app
