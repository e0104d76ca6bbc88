from pydantic import BaseModel, ConfigDict, Field


class Agent(BaseModel):
    """A configured generation participant: one LLM behind one model id."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(description="Stable unique agent identifier")
    name: str = Field(description="Display name, e.g. 'Claude Sonnet'")
    model_name: str = Field(description="Model id passed verbatim to the LLM endpoint")
    max_output: int = Field(default=4000, gt=0, description="Token budget per completion")
    provider: str | None = Field(default=None, description="Provider label, informational only")
    is_active: bool = Field(default=True, description="Whether the agent is offered to users")


DEFAULT_AGENTS: list[Agent] = [
    Agent(
        id="claude",
        name="Claude Sonnet",
        model_name="anthropic/claude-sonnet-4-5",
        provider="Anthropic",
    ),
    Agent(
        id="gpt",
        name="GPT-4o",
        model_name="openai/gpt-4o",
        provider="OpenAI",
    ),
    Agent(
        id="grok",
        name="Grok",
        model_name="x-ai/grok-4",
        provider="xAI",
    ),
    Agent(
        id="kimi",
        name="Kimi K2.5",
        model_name="moonshotai/kimi-k2.5",
        provider="Moonshot",
    ),
]

DEFAULT_ORCHESTRATOR = Agent(
    id="orchestrator",
    name="Orchestrator",
    model_name="anthropic/claude-sonnet-4-5",
    max_output=8000,
    provider="Anthropic",
)
