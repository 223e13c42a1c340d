"""
Agent catalog and execution.

- definitions.py: AgentDefinition, Team, AgentSpec and the pure instruction helpers
- defaults.py: the built-in chief-of-staff team
- registry.py: AgentRegistry (definitions, teams, memories, JSON persistence)
- runner.py: AgentRunner protocol and the LLM-backed implementation
- memories.py: MemorySuggester (post-turn memory suggestions)
"""
from .definitions import (
    AgentDefinition,
    AgentSpec,
    SpecialistDescriptor,
    Team,
    TeamRoster,
    build_agent_from_definition,
    build_instructions_with_memories,
    dedupe_memory_suggestions,
    with_augmented_instructions,
)
from .registry import AgentNotFoundError, AgentRegistry, TeamResolutionError
from .runner import (
    AGENT_UPDATED,
    OUTPUT_TEXT_DELTA,
    AgentRunner,
    LLMAgentRunner,
    RunEvent,
    RunResult,
    StreamedRun,
)
from .memories import MAX_SUGGESTIONS, MemorySuggester
