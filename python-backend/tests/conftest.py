import json

import pytest

from songmaster.agent.errors import TransportError
from songmaster.config import Settings
from songmaster.models.agent import Agent
from songmaster.services.container import build_services
from songmaster.services.record_store import InMemoryRecordStore


class FakeCompletionClient:
    """Stands in for the upstream LLM endpoint.

    ``replies`` maps a model id to a string, an exception to raise, a
    callable taking the messages, or a list of those consumed in order.
    """

    def __init__(self, replies=None):
        self.replies = dict(replies or {})
        self.calls = []

    async def complete(self, model, messages, *, max_tokens=4000, temperature=0.7, json_mode=True):
        self.calls.append(
            {
                "model": model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if model not in self.replies:
            raise TransportError(f"No reply configured for {model}")
        reply = self.replies[model]
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(messages)
        return reply

    def calls_for(self, model):
        return [c for c in self.calls if c["model"] == model]


def song_json(name="Neon Rain", style="synthwave, 110 bpm", lyrics="[Verse]\nCity lights"):
    return json.dumps({"name": name, "style": style, "lyrics": lyrics})


def evaluation_json(agent_ids, winner=None, **overrides):
    evaluations = {}
    for i, agent_id in enumerate(agent_ids):
        evaluations[agent_id] = {
            "scores": {"music_style": 6 + i, "lyrics": 7, "originality": 6, "cohesion": 7},
            "analysis": f"Analysis of {agent_id}",
            "strengths": [f"{agent_id} has a strong hook"],
            "weaknesses": ["chorus repeats too much"],
            "recommendations": {
                "critical_fixes": ["tighten the second verse"],
                "quick_wins": [],
                "depth_enhancements": ["add a bridge"],
                "suno_optimization": [],
            },
        }
    payload = {
        "evaluations": evaluations,
        "winner_agent_id": winner or agent_ids[0],
        "winner_reason": "Best fit for the request",
        "winner_analysis": {
            "reason": "Strongest chorus",
            "key_differentiators": ["hook"],
            "best_for": "late night drives",
        },
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def make_agents():
    def _make(*ids):
        return [Agent(id=i, name=i.title(), model_name=f"model-{i}") for i in ids]

    return _make


@pytest.fixture
def orchestrator_agent():
    return Agent(id="orchestrator", name="Orchestrator", model_name="model-judge", max_output=8000)


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def settings():
    return Settings(openrouter_api_key="test-key", default_model="model-default")


@pytest.fixture
def records():
    return InMemoryRecordStore()


@pytest.fixture
def services(settings, fake_client, records):
    return build_services(settings=settings, client=fake_client, records=records)


@pytest.fixture
def song_reply():
    return song_json


@pytest.fixture
def evaluation_reply():
    return evaluation_json
