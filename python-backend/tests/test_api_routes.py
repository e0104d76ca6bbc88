import json

import pytest
from fastapi.testclient import TestClient

from songmaster.agent.errors import TransportError
from songmaster.agent.prompts import SONG_GENERATION_KEY
from songmaster.api.routes import create_app
from songmaster.models.agent import DEFAULT_ORCHESTRATOR


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


def _agents(*ids):
    return [{"agent_id": i, "model_name": f"model-{i}", "max_output": 4000} for i in ids]


class TestHealthAndAgents:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_default_agents(self, client):
        response = client.get("/api/agents")
        assert response.status_code == 200
        ids = {a["id"] for a in response.json()["agents"]}
        assert ids == {"claude", "gpt", "grok", "kimi"}


class TestGenerateEndpoint:
    def test_partial_success(self, client, fake_client, song_reply):
        fake_client.replies = {
            "model-a": song_reply(name="One"),
            "model-b": TransportError("OpenRouter error: 500", status_code=500),
        }

        response = client.post(
            "/api/generate",
            json={"song_id": "s1", "agents": _agents("a", "b"), "user_request": "rain", "user_style": "lo-fi"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["song_id"] == "s1"
        assert body["completed_count"] == 1
        assert body["failed_count"] == 1
        assert body["results"]["a"]["name"] == "One"
        assert body["failed_agents"][0]["agent_id"] == "b"

    def test_all_fail_is_502(self, client, fake_client):
        fake_client.replies = {"model-a": TransportError("down")}

        response = client.post(
            "/api/generate", json={"agents": _agents("a"), "user_request": "rain"}
        )

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["completed_count"] == 0
        assert detail["failed_agents"][0]["agent_id"] == "a"

    def test_iteration_request(self, client, fake_client, song_reply):
        fake_client.replies = {"model-a": song_reply(name="Whatever the model says")}

        response = client.post(
            "/api/generate",
            json={
                "agents": _agents("a"),
                "user_request": "rain",
                "user_style": "lo-fi",
                "original_title": "Neon Rain",
                "iteration_number": 3,
                "iteration_context": {
                    "weaknesses": ["chorus repeats too much"],
                    "recommendations": {"quick_wins": []},
                    "original_request": "rain",
                    "original_style": "lo-fi",
                    "iteration_number": 3,
                },
                "base_song": {"style": "lo-fi", "lyrics": "drip drop"},
            },
        )

        assert response.status_code == 200
        assert response.json()["results"]["a"]["name"] == "Neon Rain (Iteration #3)"
        system_prompt = fake_client.calls[0]["messages"][0]["content"]
        assert "- chorus repeats too much" in system_prompt
        assert "drip drop" in system_prompt
        assert "### Quick Wins\n- None" in system_prompt

    def test_iteration_number_from_context(self, client, services, fake_client, song_reply, monkeypatch):
        fake_client.replies = {"model-a": song_reply(name="Whatever")}
        seen = {}
        run_round = services.coordinator.run_round

        async def recording_run_round(*args, **kwargs):
            seen.update(kwargs)
            return await run_round(*args, **kwargs)

        monkeypatch.setattr(services.coordinator, "run_round", recording_run_round)

        response = client.post(
            "/api/generate",
            json={
                "agents": _agents("a"),
                "user_request": "rain",
                "original_title": "Neon Rain",
                "iteration_context": {"iteration_number": 2},
                "base_song": {"style": "lo-fi", "lyrics": "drip drop"},
            },
        )

        assert response.status_code == 200
        assert response.json()["results"]["a"]["name"] == "Neon Rain (Iteration #2)"
        assert seen["round_number"] == 2

    def test_iteration_without_base_song_is_400(self, client, fake_client):
        response = client.post(
            "/api/generate",
            json={
                "agents": _agents("a"),
                "user_request": "rain",
                "iteration_context": {"iteration_number": 1},
            },
        )
        assert response.status_code == 400
        assert fake_client.calls == []

    def test_empty_agent_list_rejected(self, client):
        response = client.post("/api/generate", json={"agents": [], "user_request": "rain"})
        assert response.status_code == 422


class TestOrchestrateEndpoint:
    def test_winner_returned(self, client, fake_client, evaluation_reply):
        fake_client.replies = {DEFAULT_ORCHESTRATOR.model_name: evaluation_reply(["a", "b"], winner="b")}

        response = client.post(
            "/api/orchestrate",
            json={
                "song_id": "s1",
                "user_request": "rain",
                "user_style": "lo-fi",
                "songs": {
                    "a": {"name": "A", "style": "pop", "lyrics": "la"},
                    "b": {"name": "B", "style": "pop", "lyrics": "na"},
                },
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["winner_agent_id"] == "b"
        assert body["winner_reason"] == "Best fit for the request"
        assert set(body["evaluations"]) == {"a", "b"}
        assert body["evaluations"]["a"]["scores"]["total"] == 6.5

    def test_model_override(self, client, fake_client, evaluation_reply):
        fake_client.replies = {"judge/custom": evaluation_reply(["a"])}

        response = client.post(
            "/api/orchestrate",
            json={
                "user_request": "rain",
                "model_name": "judge/custom",
                "songs": {"a": {"name": "A", "lyrics": "la"}},
            },
        )

        assert response.status_code == 200
        assert fake_client.calls[0]["model"] == "judge/custom"

    def test_failure_is_502(self, client, fake_client):
        fake_client.replies = {DEFAULT_ORCHESTRATOR.model_name: "not json at all"}

        response = client.post(
            "/api/orchestrate",
            json={"user_request": "rain", "songs": {"a": {"name": "A", "lyrics": "la"}}},
        )

        assert response.status_code == 502
        assert isinstance(response.json()["detail"], str)

    def test_no_songs_is_400(self, client):
        response = client.post("/api/orchestrate", json={"user_request": "rain", "songs": {}})
        assert response.status_code == 400


class TestArtistEndpoint:
    def test_generate_artist(self, client, fake_client):
        fake_client.replies = {
            "model-default": json.dumps(
                {"artists": [{"name": "Velvet Static", "style_description": "shoegaze"}] * 3}
            )
        }

        response = client.post("/api/generate-artist", json={"input": "dreamy guitar band"})

        assert response.status_code == 200
        assert len(response.json()["artists"]) == 3

    def test_upstream_failure_is_502(self, client, fake_client):
        fake_client.replies = {"model-default": TransportError("down")}
        response = client.post("/api/generate-artist", json={"input": "anything"})
        assert response.status_code == 502


class TestPromptEndpoints:
    def test_list_and_update(self, client):
        prompts = client.get("/api/prompts").json()["prompts"]
        assert {p["key"] for p in prompts} == {"song_generation", "orchestrator", "artist_creator"}

        response = client.put(f"/api/prompts/{SONG_GENERATION_KEY}", json={"content": "new"})
        assert response.status_code == 200
        assert response.json()["content"] == "new"

        prompts = {p["key"]: p for p in client.get("/api/prompts").json()["prompts"]}
        assert prompts[SONG_GENERATION_KEY]["content"] == "new"

    def test_unknown_prompt_is_404(self, client):
        response = client.put("/api/prompts/nope", json={"content": "x"})
        assert response.status_code == 404


class TestSongEndpoints:
    def test_save_list_delete(self, client):
        response = client.post(
            "/api/songs",
            json={
                "name": "Neon Rain",
                "lyrics": "la",
                "style": "synthwave",
                "user_id": "u1",
                "iteration_count": 2,
                "winner_agent_id": "claude",
            },
        )
        assert response.status_code == 200
        saved = response.json()
        assert saved["style_description"] == "synthwave"
        assert saved["status"] == "saved"

        listed = client.get("/api/songs", params={"user_id": "u1"}).json()["songs"]
        assert [s["name"] for s in listed] == ["Neon Rain"]
        assert client.get("/api/songs", params={"user_id": "u2"}).json()["songs"] == []

        assert client.delete(f"/api/songs/{saved['id']}").status_code == 200
        assert client.delete(f"/api/songs/{saved['id']}").status_code == 404
