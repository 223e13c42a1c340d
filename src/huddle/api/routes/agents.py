"""
Agent registry API -- agents and their saved memories.

  GET    /api/v1/agents                   -- List all agents
  POST   /api/v1/agents                   -- Create a user-defined agent
  GET    /api/v1/agents/{id}              -- Get one agent
  DELETE /api/v1/agents/{id}              -- Remove a user-defined agent
  GET    /api/v1/agents/{id}/memories     -- List an agent's memories
  POST   /api/v1/agents/{id}/memories     -- Save a memory
  POST   /api/v1/agents/{id}/memories/suggest -- Suggest memories from a finished turn
  DELETE /api/v1/memories/{memory_id}     -- Delete a memory

Security:
  - Agent type restricted to known values
  - Prompt and memory text size-limited
  - Tools list size-limited
  - Built-in agents cannot be replaced or removed
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from ...agents import AgentNotFoundError, MemorySuggester
from ...agents.definitions import AGENT_TYPES, make_agent_id
from ...security import (
    ValidationError,
    validate_in_choices,
    validate_length,
    validate_list_size,
    validate_not_empty,
)
from ..models.requests import AddMemoryRequest, CreateAgentRequest, SuggestMemoriesRequest
from ..models.responses import (
    AgentInfo,
    AgentListResponse,
    MemoryInfo,
    MemorySuggestionsResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_TOOLS = 20
MAX_PROMPT_LENGTH = 20_000
MAX_MEMORY_LENGTH = 2_000
MAX_SUGGESTION_INPUT_LENGTH = 50_000


def _agent_info(request: Request, agent_id: str) -> AgentInfo:
    for entry in request.app.state.registry.list_info():
        if entry["id"] == agent_id:
            return AgentInfo(**entry)
    raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")


@router.get("/agents", response_model=AgentListResponse)
async def list_agents(request: Request) -> AgentListResponse:
    registry = request.app.state.registry
    return AgentListResponse(
        agents=[AgentInfo(**entry) for entry in registry.list_info()],
        total=registry.count,
    )


@router.post("/agents", response_model=AgentInfo)
async def create_agent(body: CreateAgentRequest, request: Request) -> AgentInfo:
    registry = request.app.state.registry
    try:
        validate_not_empty(body.name, "name")
        validate_length(body.system_prompt, "systemPrompt", min_length=1, max_length=MAX_PROMPT_LENGTH)
        validate_in_choices(body.agent_type, AGENT_TYPES, "agentType")
        validate_list_size(body.tools, "tools", max_items=MAX_TOOLS)
        if not make_agent_id(body.name):
            raise ValidationError("name must contain letters or digits")
        definition = registry.create_agent(
            name=body.name.strip(),
            system_prompt=body.system_prompt,
            agent_type=body.agent_type,
            description=body.description,
            tools=body.tools,
            model=body.model,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[AgentsAPI] Created agent: {definition.id}")
    return _agent_info(request, definition.id)


@router.get("/agents/{agent_id}", response_model=AgentInfo)
async def get_agent(agent_id: str, request: Request) -> AgentInfo:
    return _agent_info(request, agent_id)


@router.delete("/agents/{agent_id}")
async def delete_agent(agent_id: str, request: Request) -> dict:
    if not request.app.state.registry.unregister(agent_id):
        raise HTTPException(
            status_code=404, detail=f"Agent '{agent_id}' not found or built-in"
        )
    logger.info(f"[AgentsAPI] Removed agent: {agent_id}")
    return {"status": "removed", "agent": agent_id}


@router.get("/agents/{agent_id}/memories", response_model=list[MemoryInfo])
async def list_memories(agent_id: str, request: Request) -> list[MemoryInfo]:
    registry = request.app.state.registry
    if registry.get_agent_definition(agent_id) is None:
        raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
    return [MemoryInfo(**vars(m)) for m in registry.list_memories(agent_id)]


@router.post("/agents/{agent_id}/memories", response_model=MemoryInfo)
async def add_memory(agent_id: str, body: AddMemoryRequest, request: Request) -> MemoryInfo:
    try:
        text = validate_not_empty(body.text, "text")
        validate_length(text, "text", max_length=MAX_MEMORY_LENGTH)
        memory = request.app.state.registry.add_memory(agent_id, text)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MemoryInfo(**vars(memory))


@router.post(
    "/agents/{agent_id}/memories/suggest", response_model=MemorySuggestionsResponse
)
async def suggest_memories(
    agent_id: str, body: SuggestMemoriesRequest, request: Request
) -> MemorySuggestionsResponse:
    """Suggest up to three new memories; nothing is saved."""
    registry = request.app.state.registry
    definition = registry.get_agent_definition(agent_id)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
    try:
        final_text = validate_not_empty(body.assistant_final_text, "assistantFinalText")
        validate_length(final_text, "assistantFinalText", max_length=MAX_SUGGESTION_INPUT_LENGTH)
        validate_length(
            body.conversation_snippet, "conversationSnippet", max_length=MAX_SUGGESTION_INPUT_LENGTH
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="No LLM configured")

    existing = [m.text for m in registry.list_memories(agent_id)]
    suggestions = await MemorySuggester(runner).suggest(
        definition, existing, final_text, body.conversation_snippet
    )
    return MemorySuggestionsResponse(agent_id=agent_id, suggestions=suggestions)


@router.delete("/memories/{memory_id}")
async def delete_memory(memory_id: str, request: Request) -> dict:
    if not request.app.state.registry.delete_memory(memory_id):
        raise HTTPException(status_code=404, detail=f"Memory '{memory_id}' not found")
    return {"status": "removed", "memory": memory_id}
