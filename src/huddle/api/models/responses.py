"""
Pydantic response models -- what the API returns.

Chat payloads use the same camelCase keys as the stream frames.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChatResponse(BaseModel):
    """A finished (non-streamed) chat turn; mirrors the final frame."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    author: str
    content: str
    plan_text: str | None = None
    consulted_agents: list[str] = Field(default_factory=list)


# =============================================================================
# AGENTS, TEAMS, MEMORIES
# =============================================================================


class AgentInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    agent_type: str
    tools: list[str] = Field(default_factory=list)
    model: str | None = None
    builtin: bool = False
    memory_count: int = 0


class AgentListResponse(BaseModel):
    agents: list[AgentInfo] = Field(default_factory=list)
    total: int = 0


class TeamInfo(BaseModel):
    id: str
    name: str
    team_lead_agent_id: str
    sub_agent_ids: list[str] = Field(default_factory=list)
    description: str = ""
    created_at: str = ""


class MemoryInfo(BaseModel):
    id: str
    agent_id: str
    text: str
    created_at: str = ""


class MemorySuggestionsResponse(BaseModel):
    agent_id: str
    suggestions: list[str] = Field(default_factory=list)


# =============================================================================
# SESSIONS
# =============================================================================


class SessionSummary(BaseModel):
    id: str
    title: str
    team_id: str | None = None
    message_count: int = 0
    created_at: str = ""
    updated_at: str = ""


class SessionDetail(SessionSummary):
    messages: list[dict] = Field(default_factory=list)


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    status: str = "healthy"
    agents_registered: int = 0
    teams: int = 0
    llm_configured: bool = False
    uptime_seconds: float = 0.0
