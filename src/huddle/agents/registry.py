"""
AgentRegistry -- Agent definitions, teams and saved memories.

The orchestrator's view of the outside agent catalog:
  get_agent_definition(id)          -> AgentDefinition | None
  list_specialists_for_team(team)   -> [SpecialistDescriptor]
  resolve_team(team)                -> TeamRoster (raises TeamResolutionError)
  build_agent(definition)           -> AgentSpec with saved memories appended

Persists to JSON so user-defined agents, teams and memories survive
restarts. Built-in definitions are seeded in memory and never written out.

Usage:
    registry = AgentRegistry(persist_path=Path(".huddle/registry.json"))
    agent_id = registry.create_agent("Pricing Coach", "You are...", "sub_agent")
    team = registry.create_team("Growth", lead_id="chief_of_staff", sub_agent_ids=[agent_id])
    roster = registry.resolve_team(team.id)
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path

from .defaults import default_agent_definitions, default_team
from .definitions import (
    AgentDefinition,
    AgentSpec,
    SpecialistDescriptor,
    Team,
    TeamRoster,
    build_agent_from_definition,
    build_instructions_with_memories,
    make_agent_id,
)

logger = logging.getLogger(__name__)


class AgentNotFoundError(LookupError):
    """Raised when a requested agent id is not in the registry."""

    pass


class TeamResolutionError(LookupError):
    """Raised when a team id cannot be resolved to a lead and its specialists."""

    pass


@dataclass
class AgentMemory:
    """A saved fact appended to an agent's instructions at request time."""

    id: str
    agent_id: str
    text: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())


class AgentRegistry:
    """
    In-process catalog of agents, teams and memories with JSON persistence.

    Built-ins (the default team) are always available and cannot be
    overwritten by persisted data with the same id.
    """

    def __init__(self, persist_path: Path | None = None, include_defaults: bool = True):
        self._persist_path = persist_path
        self._builtin_ids: set[str] = set()
        self._agents: dict[str, AgentDefinition] = {}
        self._teams: dict[str, Team] = {}
        self._memories: dict[str, AgentMemory] = {}

        if include_defaults:
            for definition in default_agent_definitions():
                self._agents[definition.id] = definition
                self._builtin_ids.add(definition.id)
            team = default_team()
            self._teams[team.id] = team
            self._builtin_ids.add(team.id)

        self._load()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Load persisted agents, teams and memories from disk."""
        if self._persist_path is None or not self._persist_path.exists():
            return
        try:
            with open(self._persist_path) as f:
                data = json.load(f)
            for entry in data.get("agents", []):
                if entry.get("id") not in self._builtin_ids:
                    definition = AgentDefinition.from_dict(entry)
                    self._agents[definition.id] = definition
            for entry in data.get("teams", []):
                if entry.get("id") not in self._builtin_ids:
                    team = Team.from_dict(entry)
                    self._teams[team.id] = team
            for entry in data.get("memories", []):
                memory = AgentMemory(**entry)
                self._memories[memory.id] = memory
            logger.info(
                f"[AgentRegistry] Loaded {len(data.get('agents', []))} agents, "
                f"{len(data.get('teams', []))} teams from {self._persist_path}"
            )
        except Exception as e:
            logger.warning(f"[AgentRegistry] Failed to load registry: {e}")

    def _save(self) -> None:
        """Persist user-defined entries to disk (built-ins are skipped)."""
        if self._persist_path is None:
            return
        data = {
            "agents": [
                a.to_dict() for a in self._agents.values() if a.id not in self._builtin_ids
            ],
            "teams": [
                t.to_dict() for t in self._teams.values() if t.id not in self._builtin_ids
            ],
            "memories": [asdict(m) for m in self._memories.values()],
        }
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._persist_path, "w") as f:
            json.dump(data, f, indent=2)
        logger.debug(f"[AgentRegistry] Saved registry to {self._persist_path}")

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    def register(self, definition: AgentDefinition) -> AgentDefinition:
        """Add or replace an agent definition."""
        if definition.id in self._builtin_ids:
            raise ValueError(f"Cannot replace built-in agent '{definition.id}'")
        if definition.id in self._agents:
            logger.warning(f"[AgentRegistry] Replacing existing agent '{definition.id}'")
        self._agents[definition.id] = definition
        self._save()
        logger.info(f"[AgentRegistry] Registered agent: {definition.id}")
        return definition

    def create_agent(
        self,
        name: str,
        system_prompt: str,
        agent_type: str,
        description: str = "",
        tools: list[str] | None = None,
        model: str | None = None,
    ) -> AgentDefinition:
        """Create a definition whose id is derived from its name."""
        agent_id = make_agent_id(name)
        if not agent_id:
            raise ValueError(f"Agent name '{name}' produces an empty id")
        return self.register(
            AgentDefinition(
                id=agent_id,
                name=name,
                system_prompt=system_prompt,
                agent_type=agent_type,
                description=description,
                tools=list(tools or []),
                model=model,
            )
        )

    def unregister(self, agent_id: str) -> bool:
        """Remove a user-defined agent."""
        if agent_id not in self._agents or agent_id in self._builtin_ids:
            return False
        del self._agents[agent_id]
        self._save()
        logger.info(f"[AgentRegistry] Unregistered agent: {agent_id}")
        return True

    def get_agent_definition(self, agent_id: str) -> AgentDefinition | None:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[AgentDefinition]:
        return list(self._agents.values())

    def build_agent(self, definition: AgentDefinition, temperature: float = 0.5) -> AgentSpec:
        """Runtime AgentSpec for a definition, with its saved memories appended."""
        agent = build_agent_from_definition(definition, temperature=temperature)
        memories = [m.text for m in self.list_memories(definition.id)]
        if not memories:
            return agent
        return AgentSpec(
            name=agent.name,
            instructions=build_instructions_with_memories(agent.instructions, memories),
            model=agent.model,
            tools=agent.tools,
            temperature=agent.temperature,
        )

    # -------------------------------------------------------------------------
    # Teams
    # -------------------------------------------------------------------------

    def create_team(
        self,
        name: str,
        lead_id: str,
        sub_agent_ids: list[str] | None = None,
        description: str = "",
    ) -> Team:
        if lead_id not in self._agents:
            raise AgentNotFoundError(f"Team lead agent not found: {lead_id}")
        team = Team(
            id=f"team_{uuid.uuid4().hex[:12]}",
            name=name,
            team_lead_agent_id=lead_id,
            sub_agent_ids=list(sub_agent_ids or []),
            description=description,
        )
        self._teams[team.id] = team
        self._save()
        logger.info(f"[AgentRegistry] Created team {team.id} ({name})")
        return team

    def get_team(self, team_id: str) -> Team | None:
        return self._teams.get(team_id)

    def list_teams(self) -> list[Team]:
        return list(self._teams.values())

    def resolve_team(self, team_id: str) -> TeamRoster:
        """
        Resolve a team to its lead and specialist definitions.

        Unknown specialist ids are skipped; a missing team or lead raises.
        """
        team = self._teams.get(team_id)
        if team is None:
            raise TeamResolutionError(f"Team {team_id} not found")

        lead = self._agents.get(team.team_lead_agent_id)
        if lead is None:
            raise TeamResolutionError(
                f"Team lead agent {team.team_lead_agent_id} not found"
            )

        specialists = []
        for agent_id in team.sub_agent_ids:
            definition = self._agents.get(agent_id)
            if definition is None:
                logger.warning(
                    f"[AgentRegistry] Team {team_id} references missing agent {agent_id}"
                )
                continue
            specialists.append(definition)

        return TeamRoster(team_id=team.id, lead=lead, specialists=specialists)

    def list_specialists_for_team(self, team_id: str) -> list[SpecialistDescriptor]:
        return self.resolve_team(team_id).catalog

    # -------------------------------------------------------------------------
    # Memories
    # -------------------------------------------------------------------------

    def add_memory(self, agent_id: str, text: str) -> AgentMemory:
        if agent_id not in self._agents:
            raise AgentNotFoundError(f"Agent not found: {agent_id}")
        memory = AgentMemory(
            id=f"mem_{uuid.uuid4().hex[:12]}",
            agent_id=agent_id,
            text=text.strip(),
        )
        self._memories[memory.id] = memory
        self._save()
        return memory

    def list_memories(self, agent_id: str) -> list[AgentMemory]:
        return [m for m in self._memories.values() if m.agent_id == agent_id]

    def delete_memory(self, memory_id: str) -> bool:
        if memory_id not in self._memories:
            return False
        del self._memories[memory_id]
        self._save()
        return True

    # -------------------------------------------------------------------------
    # Info
    # -------------------------------------------------------------------------

    def list_info(self) -> list[dict]:
        """Serializable info for all agents (for API responses)."""
        return [
            {
                "id": a.id,
                "name": a.name,
                "description": a.description,
                "agent_type": a.agent_type,
                "tools": list(a.tools),
                "model": a.model,
                "builtin": a.id in self._builtin_ids,
                "memory_count": len(self.list_memories(a.id)),
            }
            for a in self._agents.values()
        ]

    @property
    def count(self) -> int:
        """Total number of agents (built-in and user-defined)."""
        return len(self._agents)
