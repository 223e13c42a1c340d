"""Pydantic models for API request/response contracts."""
from .requests import (
    AddMemoryRequest,
    AttachmentModel,
    ChatRequest,
    CreateAgentRequest,
    CreateSessionRequest,
    CreateTeamRequest,
    MessageModel,
    SuggestMemoriesRequest,
)
from .responses import (
    AgentInfo,
    AgentListResponse,
    ChatResponse,
    HealthResponse,
    MemoryInfo,
    MemorySuggestionsResponse,
    SessionDetail,
    SessionSummary,
    TeamInfo,
)
