"""
Conversation primitives shared by the API, the session store and the agents.

  Attachment  -- Reference to an uploaded object (image or file)
  ChatMessage -- One stored/inbound conversation message
  ContentPart -- One piece of an agent input item (text, image ref, file ref)
  InputItem   -- One role-tagged turn fed to an agent (immutable)

Only user-role input items carry image/file parts. Assistant history is
replayed as plain text.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

PART_INPUT_TEXT = "input_text"
PART_OUTPUT_TEXT = "output_text"
PART_INPUT_IMAGE = "input_image"
PART_INPUT_FILE = "input_file"

TEXT_PART_TYPES = (PART_INPUT_TEXT, PART_OUTPUT_TEXT)


@dataclass(frozen=True)
class Attachment:
    """Uploaded object owned by the message that created it. Read-only here."""

    kind: str  # "image" | "file"
    url: str
    name: str = ""
    content_type: str = ""
    size_bytes: int = 0

    @property
    def is_image(self) -> bool:
        return self.kind == "image" or self.content_type.startswith("image/")

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "url": self.url,
            "name": self.name,
            "contentType": self.content_type,
            "sizeBytes": self.size_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            kind=data.get("kind") or "file",
            url=data.get("url") or "",
            name=data.get("name") or "",
            content_type=data.get("contentType") or data.get("content_type") or "",
            size_bytes=int(data.get("sizeBytes") or data.get("size_bytes") or 0),
        )


@dataclass
class ChatMessage:
    """A conversation message as received from the client or stored in a session."""

    role: str
    content: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    agent: str | None = None
    consulted_agents: list[str] | None = None
    plan_text: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.attachments:
            data["attachments"] = [a.to_dict() for a in self.attachments]
        if self.agent:
            data["agent"] = self.agent
        if self.consulted_agents is not None:
            data["consultedAgents"] = list(self.consulted_agents)
        if self.plan_text is not None:
            data["planText"] = self.plan_text
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        attachments = data.get("attachments")
        return cls(
            role=ROLE_ASSISTANT if data.get("role") == ROLE_ASSISTANT else ROLE_USER,
            content=data.get("content") if isinstance(data.get("content"), str) else "",
            attachments=[
                Attachment.from_dict(a) for a in attachments if isinstance(a, dict)
            ] if isinstance(attachments, list) else [],
            agent=data.get("agent"),
            consulted_agents=data.get("consultedAgents"),
            plan_text=data.get("planText"),
            timestamp=data.get("timestamp") or datetime.now().isoformat(),
        )


@dataclass(frozen=True)
class ContentPart:
    """One piece of an input item."""

    type: str
    text: str = ""
    url: str = ""
    detail: str = ""
    name: str = ""

    @property
    def is_text(self) -> bool:
        return self.type in TEXT_PART_TYPES


@dataclass(frozen=True)
class InputItem:
    """One role-tagged turn of conversation fed to an agent."""

    role: str
    content: tuple[ContentPart, ...] = ()

    @property
    def text(self) -> str:
        """Concatenated text of all text parts (attachments are ignored)."""
        return "\n".join(p.text for p in self.content if p.is_text and p.text)

    @classmethod
    def from_text(cls, role: str, text: str) -> "InputItem":
        part_type = PART_OUTPUT_TEXT if role == ROLE_ASSISTANT else PART_INPUT_TEXT
        return cls(role=role, content=(ContentPart(type=part_type, text=text),))
