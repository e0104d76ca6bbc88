import pytest
from pydantic import ValidationError

from songmaster.models.api import AgentRef, GenerateRequest, GenerateResponse, SaveSongRequest
from songmaster.models.song import (
    AgentStatus,
    Evaluation,
    GenerationRound,
    Scores,
    SongCandidate,
)


class TestSongCandidate:
    def test_defaults(self):
        song = SongCandidate()
        assert song.name == "Untitled"
        assert song.style == ""
        assert song.lyrics == ""

    def test_style_description_alias(self):
        song = SongCandidate.model_validate({"name": "A", "style_description": "folk", "lyrics": "x"})
        assert song.style == "folk"


class TestGenerationRound:
    def test_lifecycle(self):
        round_ = GenerationRound.for_agents(["a", "b"])
        assert not round_.settled
        assert round_.statuses["a"] == AgentStatus.WAITING

        round_.mark_generating("a")
        round_.mark_done("a", SongCandidate(name="A", lyrics="la"))
        round_.mark_error("b", "timed out")

        assert round_.settled
        assert round_.completed_count == 1
        assert round_.failed_count == 1
        assert round_.failed_agents[0].error == "timed out"
        assert round_.succeeded

    def test_response_body(self):
        round_ = GenerationRound.for_agents(["a"])
        round_.mark_error("a", "boom")
        response = GenerateResponse.from_round("s1", round_)
        assert response.model_dump() == {
            "song_id": "s1",
            "results": {},
            "completed_count": 0,
            "failed_count": 1,
            "failed_agents": [{"agent_id": "a", "error": "boom"}],
        }


class TestEvaluation:
    def test_total_is_mean_of_core_scores(self):
        scores = Scores(music_style=8, lyrics=6, originality=9, cohesion=7, request_alignment=2)
        assert scores.total == 7.5

    def test_lenient_shapes(self):
        evaluation = Evaluation.model_validate(
            {
                "strengths": None,
                "weaknesses": "weak bridge",
                "recommendations": {"critical_fixes": "fix the bridge", "quick_wins": None},
                "user_guidance": {"next_steps": ["iterate"]},
            }
        )
        assert evaluation.strengths == []
        assert evaluation.weaknesses == ["weak bridge"]
        assert evaluation.recommendations.critical_fixes == ["fix the bridge"]
        assert evaluation.recommendations.quick_wins == []
        assert evaluation.model_extra["user_guidance"] == {"next_steps": ["iterate"]}


class TestRequests:
    def test_agent_ref_accepts_id(self):
        ref = AgentRef.model_validate({"id": "claude", "model_name": "anthropic/claude-sonnet-4-5"})
        agent = ref.to_agent()
        assert agent.id == "claude"
        assert agent.max_output == 4000

    def test_generate_request_song_id_generated(self):
        body = GenerateRequest.model_validate(
            {"agents": [{"agent_id": "a", "model_name": "m"}], "user_request": "rain"}
        )
        assert body.song_id
        assert body.iteration_context is None

    def test_generate_request_needs_agents(self):
        with pytest.raises(ValidationError):
            GenerateRequest.model_validate({"agents": [], "user_request": "rain"})

    def test_save_song_record(self):
        record = SaveSongRequest(name="A", lyrics="la", style="pop").to_record()
        assert record == {
            "name": "A",
            "lyrics": "la",
            "iteration_count": 0,
            "style_description": "pop",
            "status": "saved",
        }
