"""
Agent definitions, teams, and the immutable runtime agent configuration.

  AgentDefinition -- Stored description of an agent (prompt, tools, model)
  Team            -- A lead agent plus the specialists it may consult
  AgentSpec       -- Frozen runtime configuration handed to the AgentRunner
  TeamRoster      -- A resolved team: lead definition + specialist definitions

AgentSpec values are shared between concurrent requests, so they are
never mutated: instruction changes produce a new value through
with_augmented_instructions().
"""

import re
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any

AGENT_TYPE_TEAM_LEAD = "team_lead"
AGENT_TYPE_SUB_AGENT = "sub_agent"
AGENT_TYPES = [AGENT_TYPE_TEAM_LEAD, AGENT_TYPE_SUB_AGENT]

DEFAULT_MODEL: str | None = None  # None = the LLM client's default model


@dataclass
class AgentDefinition:
    """A stored agent: who it is and how it should be configured."""

    id: str
    name: str
    system_prompt: str
    agent_type: str = AGENT_TYPE_SUB_AGENT
    description: str = ""
    tools: list[str] = field(default_factory=list)
    model: str | None = DEFAULT_MODEL
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AgentDefinition":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            system_prompt=data.get("system_prompt", ""),
            agent_type=data.get("agent_type", AGENT_TYPE_SUB_AGENT),
            description=data.get("description", ""),
            tools=list(data.get("tools", [])),
            model=data.get("model"),
            created_at=data.get("created_at") or datetime.now().isoformat(),
        )


@dataclass
class Team:
    """A lead agent and the specialists eligible for consultation."""

    id: str
    name: str
    team_lead_agent_id: str
    sub_agent_ids: list[str] = field(default_factory=list)
    description: str = ""
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Team":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            team_lead_agent_id=data["team_lead_agent_id"],
            sub_agent_ids=list(data.get("sub_agent_ids", [])),
            description=data.get("description", ""),
            created_at=data.get("created_at") or datetime.now().isoformat(),
        )


@dataclass(frozen=True)
class SpecialistDescriptor:
    """Catalog entry shown to the specialist selector."""

    id: str
    name: str = ""
    description: str = ""


@dataclass(frozen=True)
class AgentSpec:
    """Immutable runtime configuration of one agent."""

    name: str
    instructions: str
    model: str | None = DEFAULT_MODEL
    tools: tuple[str, ...] = ()
    temperature: float = 0.5
    output_schema: dict | None = None


@dataclass
class TeamRoster:
    """A team resolved to concrete definitions."""

    team_id: str | None
    lead: AgentDefinition
    specialists: list[AgentDefinition] = field(default_factory=list)

    @property
    def catalog(self) -> list[SpecialistDescriptor]:
        return [
            SpecialistDescriptor(id=d.id, name=d.name, description=d.description)
            for d in self.specialists
        ]

    def specialist(self, agent_id: str) -> AgentDefinition | None:
        for definition in self.specialists:
            if definition.id == agent_id:
                return definition
        return None


def make_agent_id(name: str) -> str:
    """Lowercase, spaces to underscores, drop everything but [a-z0-9_]."""
    return re.sub(r"[^a-z0-9_]", "", re.sub(r"\s+", "_", name.strip().lower()))


def build_agent_from_definition(
    definition: AgentDefinition,
    temperature: float = 0.5,
) -> AgentSpec:
    """Convert a stored definition into a runtime AgentSpec."""
    return AgentSpec(
        name=definition.id,
        instructions=definition.system_prompt,
        model=definition.model,
        tools=tuple(definition.tools),
        temperature=temperature,
    )


def with_augmented_instructions(agent: AgentSpec, extra_text: str) -> AgentSpec:
    """Return a copy of the agent with extra_text appended to its instructions."""
    extra = (extra_text or "").strip()
    if not extra:
        return agent
    return replace(agent, instructions=f"{agent.instructions.rstrip()}\n\n{extra}\n")


def build_instructions_with_memories(base_instructions: str, memories: list[str]) -> str:
    """Append a [Saved memories] section listing each non-empty memory."""
    cleaned = [m.strip() for m in memories if isinstance(m, str) and m.strip()]
    if not cleaned:
        return base_instructions
    section = "\n".join(["[Saved memories]", *(f"- {m}" for m in cleaned)])
    return f"{base_instructions.strip()}\n\n{section}\n"


def _normalize_memory_text(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip()).lower()


def dedupe_memory_suggestions(
    suggestions: list[str],
    existing_memories: list[str],
    max_suggestions: int,
    system_prompt: str = "",
) -> list[str]:
    """
    Filter memory suggestions down to new, distinct entries.

    Drops suggestions already saved, repeated within the batch, or already
    contained in the agent's system prompt (whitespace/case-insensitive).
    """
    existing = {_normalize_memory_text(m) for m in existing_memories}
    normalized_prompt = _normalize_memory_text(system_prompt) if system_prompt else ""
    seen: set[str] = set()
    out: list[str] = []

    for suggestion in suggestions:
        if len(out) >= max_suggestions:
            break
        if not isinstance(suggestion, str) or not suggestion.strip():
            continue
        norm = _normalize_memory_text(suggestion)
        if norm in existing or norm in seen:
            continue
        if normalized_prompt and norm in normalized_prompt:
            continue
        seen.add(norm)
        out.append(suggestion.strip())

    return out
