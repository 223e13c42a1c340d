"""
Pydantic request models -- the API contract for the chat client.

Field names are camelCase on the wire (the browser client's convention);
snake_case is accepted as well.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...agents.definitions import AGENT_TYPE_SUB_AGENT
from ...messages import Attachment, ChatMessage
from ...orchestration import MODE_ALL, ChatTurnRequest


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# CHAT
# =============================================================================


class AttachmentModel(CamelModel):
    """A reference to an uploaded object."""

    kind: Literal["image", "file"] = "file"
    url: str = ""
    name: str = ""
    content_type: str = ""
    size_bytes: int = 0

    def to_attachment(self) -> Attachment:
        return Attachment(
            kind=self.kind,
            url=self.url.strip(),
            name=self.name,
            content_type=self.content_type,
            size_bytes=self.size_bytes,
        )


class MessageModel(CamelModel):
    role: Literal["user", "assistant"] = "user"
    content: str = ""
    attachments: list[AttachmentModel] = Field(default_factory=list)

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            role=self.role,
            content=self.content,
            attachments=[a.to_attachment() for a in self.attachments],
        )


class ChatRequest(CamelModel):
    """One chat turn: the conversation so far, newest message last."""

    messages: list[MessageModel] = Field(default_factory=list)
    session_id: str | None = Field(None, description="Session to read history from and append to")
    agent_mode: str = Field(MODE_ALL, description="'all' (team lead consults) or 'specific'")
    selected_agent_id: str | None = Field(None, description="Agent to talk to in 'specific' mode")
    team_id: str | None = Field(None, description="Team to consult (default team if omitted)")

    def to_turn_request(self) -> ChatTurnRequest:
        return ChatTurnRequest(
            messages=[m.to_message() for m in self.messages],
            session_id=self.session_id or None,
            agent_mode=self.agent_mode,
            selected_agent_id=self.selected_agent_id,
            team_id=self.team_id or None,
        )


# =============================================================================
# AGENTS, TEAMS, MEMORIES
# =============================================================================


class CreateAgentRequest(CamelModel):
    name: str = Field(..., description="Display name; the agent id is derived from it")
    system_prompt: str = Field(..., description="The agent's instructions")
    agent_type: str = AGENT_TYPE_SUB_AGENT
    description: str = ""
    tools: list[str] = Field(default_factory=list)
    model: str | None = None


class CreateTeamRequest(CamelModel):
    name: str
    team_lead_agent_id: str
    sub_agent_ids: list[str] = Field(default_factory=list)
    description: str = ""


class AddMemoryRequest(CamelModel):
    text: str = Field(..., description="A fact the agent should remember")


class SuggestMemoriesRequest(CamelModel):
    assistant_final_text: str = Field(..., description="The answer the user saw")
    conversation_snippet: str = ""


# =============================================================================
# SESSIONS
# =============================================================================


class CreateSessionRequest(CamelModel):
    title: str = ""
    team_id: str | None = None
