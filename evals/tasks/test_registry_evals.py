"""
Agent registry evals -- built-ins, teams, memories, persistence, instruction helpers.
"""

import pytest

from huddle.agents import (
    AgentNotFoundError,
    AgentRegistry,
    AgentSpec,
    TeamResolutionError,
    dedupe_memory_suggestions,
    with_augmented_instructions,
)
from huddle.agents.defaults import DEFAULT_LEAD_ID, DEFAULT_TEAM_ID
from huddle.agents.definitions import (
    AgentDefinition,
    build_instructions_with_memories,
    make_agent_id,
)


class TestBuiltins:
    def test_default_team_resolves(self):
        roster = AgentRegistry().resolve_team(DEFAULT_TEAM_ID)
        assert roster.lead.id == DEFAULT_LEAD_ID
        assert len(roster.catalog) == 7
        assert all(d.description for d in roster.catalog)

    def test_builtins_protected(self):
        registry = AgentRegistry()
        assert not registry.unregister(DEFAULT_LEAD_ID)
        with pytest.raises(ValueError):
            registry.register(AgentDefinition(id=DEFAULT_LEAD_ID, name="x", system_prompt="y"))

    def test_without_defaults(self):
        registry = AgentRegistry(include_defaults=False)
        assert registry.count == 0
        with pytest.raises(TeamResolutionError):
            registry.resolve_team(DEFAULT_TEAM_ID)


class TestTeams:
    def test_missing_specialist_skipped(self, registry):
        team = registry.create_team("T", lead_id=DEFAULT_LEAD_ID, sub_agent_ids=["gtm", "ghost"])
        assert [d.id for d in registry.list_specialists_for_team(team.id)] == ["gtm"]

    def test_unknown_team_raises(self, registry):
        with pytest.raises(TeamResolutionError):
            registry.resolve_team("team_nope")

    def test_removed_lead_raises(self, registry):
        team = registry.create_team("T", lead_id="gtm", sub_agent_ids=["legal"])
        registry.unregister("gtm")
        with pytest.raises(TeamResolutionError):
            registry.resolve_team(team.id)

    def test_unknown_lead_rejected(self, registry):
        with pytest.raises(AgentNotFoundError):
            registry.create_team("T", lead_id="ghost")


class TestMemories:
    def test_memories_appended_to_built_agent(self, registry):
        registry.add_memory("gtm", "Prices are in EUR.")
        agent = registry.build_agent(registry.get_agent_definition("gtm"))
        assert agent.instructions.endswith("[Saved memories]\n- Prices are in EUR.\n")

    def test_memory_for_unknown_agent(self, registry):
        with pytest.raises(AgentNotFoundError):
            registry.add_memory("ghost", "x")

    def test_delete_memory(self, registry):
        memory = registry.add_memory("gtm", "x")
        assert registry.delete_memory(memory.id)
        assert registry.list_memories("gtm") == []
        assert not registry.delete_memory(memory.id)


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "registry.json"
    registry = AgentRegistry(persist_path=path)
    definition = registry.create_agent("Pricing Coach", "You coach pricing.", "sub_agent")
    team = registry.create_team("Growth", lead_id=DEFAULT_LEAD_ID, sub_agent_ids=[definition.id])
    registry.add_memory(definition.id, "Seed stage.")

    reloaded = AgentRegistry(persist_path=path)
    assert reloaded.get_agent_definition("pricing_coach").system_prompt == "You coach pricing."
    assert reloaded.resolve_team(team.id).catalog[0].id == "pricing_coach"
    assert [m.text for m in reloaded.list_memories("pricing_coach")] == ["Seed stage."]
    assert reloaded.count == registry.count


class TestInstructionHelpers:
    def test_make_agent_id(self):
        assert make_agent_id("  Pricing Coach! ") == "pricing_coach"

    def test_augmented_copy_leaves_original(self):
        base = AgentSpec(name="lead", instructions="Be brief.", tools=("web_search",))
        augmented = with_augmented_instructions(base, "Use the briefing.")
        assert augmented is not base
        assert base.instructions == "Be brief."
        assert augmented.instructions == "Be brief.\n\nUse the briefing.\n"
        assert augmented.tools == base.tools

    def test_blank_augmentation_is_identity(self):
        base = AgentSpec(name="lead", instructions="Be brief.")
        assert with_augmented_instructions(base, "   ") is base

    def test_memories_section(self):
        text = build_instructions_with_memories("Base.", ["  a ", "", "b"])
        assert text == "Base.\n\n[Saved memories]\n- a\n- b\n"
        assert build_instructions_with_memories("Base.", []) == "Base."

    def test_dedupe_memory_suggestions(self):
        result = dedupe_memory_suggestions(
            ["Sells to dentists", "sells  to DENTISTS", "Already saved", "Be concise", "New fact"],
            existing_memories=["already saved"],
            max_suggestions=2,
            system_prompt="Always be concise.",
        )
        assert result == ["Sells to dentists", "New fact"]
