"""
Specialist selector evals -- id filtering, plan text, degradation.
"""

import pytest

from evals.conftest import ScriptedRunner
from huddle.agents.definitions import SpecialistDescriptor
from huddle.messages import InputItem
from huddle.orchestration import ConsultConfig, DegradedReason, SpecialistSelector
from huddle.orchestration.selector import (
    NO_CONSULT_PLAN_TEXT,
    SELECTOR_AGENT_NAME,
    build_selection,
    default_plan_text,
    normalize_agent_ids,
)

CATALOG = [
    SpecialistDescriptor(id="gtm", name="GTM", description="Pricing"),
    SpecialistDescriptor(id="finance", name="Finance", description="Runway"),
    SpecialistDescriptor(id="legal", name="Legal", description="Contracts"),
    SpecialistDescriptor(id="ops", name="Ops", description="Hiring"),
    SpecialistDescriptor(id="brand", name="Brand", description="Voice"),
]

ITEMS = [InputItem.from_text("user", "What should I price my SaaS at?")]


class TestNormalizeAgentIds:
    @pytest.mark.parametrize(
        "raw",
        [
            ["gtm", "gtm", " finance ", "nope", "legal", "ops", "brand"],
            ["unknown", "", "  ", None, 42, "brand"],
            ["brand", "ops", "legal", "finance", "gtm", "gtm"],
            [],
        ],
    )
    def test_subset_bounded_and_unique(self, raw):
        ids = normalize_agent_ids(raw, CATALOG, limit=4)
        assert set(ids) <= {d.id for d in CATALOG}
        assert len(ids) <= 4
        assert len(ids) == len(set(ids))

    def test_first_seen_order_and_trim(self):
        ids = normalize_agent_ids(["legal", " gtm", "legal", "finance "], CATALOG, limit=4)
        assert ids == ["legal", "gtm", "finance"]

    def test_cap(self):
        ids = normalize_agent_ids([d.id for d in CATALOG], CATALOG, limit=2)
        assert ids == ["gtm", "finance"]


class TestPlanText:
    def test_default_with_ids(self):
        assert default_plan_text(["gtm", "legal"]) == "Plan: I'll consult gtm, legal, then respond."

    def test_default_without_ids(self):
        assert default_plan_text([]) == NO_CONSULT_PLAN_TEXT
        assert NO_CONSULT_PLAN_TEXT == "Plan: I can answer directly—no specialist consult needed."

    def test_blank_plan_replaced(self):
        selection = build_selection(CATALOG, ["gtm"], "   ", limit=4)
        assert selection.plan_text == "Plan: I'll consult gtm, then respond."

    def test_model_plan_kept(self):
        selection = build_selection(CATALOG, ["gtm"], " I will consult GTM. ", limit=4)
        assert selection.plan_text == "I will consult GTM."


class TestSelect:
    @pytest.mark.asyncio
    async def test_happy_path(self):
        runner = ScriptedRunner(selection={"agentIds": ["gtm"], "planText": "I will consult GTM."})
        outcome = await SpecialistSelector(runner).select(CATALOG, ITEMS)
        assert outcome.ok
        assert outcome.value.agent_ids == ("gtm",)
        assert outcome.value.plan_text == "I will consult GTM."

    @pytest.mark.asyncio
    async def test_json_string_output_with_fences(self):
        runner = ScriptedRunner(
            selection='```json\n{"agentIds": ["legal", "nonexistent"], "planText": ""}\n```'
        )
        outcome = await SpecialistSelector(runner).select(CATALOG, ITEMS)
        assert outcome.ok
        assert outcome.value.agent_ids == ("legal",)
        assert outcome.value.plan_text == "Plan: I'll consult legal, then respond."

    @pytest.mark.asyncio
    async def test_selector_agent_is_toolless_and_cool(self):
        runner = ScriptedRunner()
        await SpecialistSelector(runner).select(CATALOG, ITEMS)
        call = runner.calls_for(SELECTOR_AGENT_NAME)[0]
        assert call.agent.tools == ()
        assert call.agent.temperature == 0.2
        assert call.agent.output_schema is not None
        assert "agentIds" in call.agent.output_schema["properties"]
        for descriptor in CATALOG:
            assert descriptor.id in call.agent.instructions

    @pytest.mark.asyncio
    async def test_transcript_is_wrapped(self):
        runner = ScriptedRunner()
        await SpecialistSelector(runner).select(CATALOG, ITEMS)
        prompt = runner.calls_for(SELECTOR_AGENT_NAME)[0].items[0].text
        assert "USER: What should I price my SaaS at?" in prompt

    @pytest.mark.asyncio
    async def test_runner_failure_degrades_to_no_consult(self):
        runner = ScriptedRunner(selection=RuntimeError("model unavailable"))
        outcome = await SpecialistSelector(runner).select(CATALOG, ITEMS)
        assert not outcome.ok
        assert outcome.degraded == DegradedReason.SELECTOR_FAILED
        assert outcome.value.agent_ids == ()
        assert outcome.value.plan_text == NO_CONSULT_PLAN_TEXT

    @pytest.mark.parametrize(
        "bad_output",
        ["not json at all", {"agentIds": "gtm"}, ["gtm"], {"planText": 3}],
    )
    @pytest.mark.asyncio
    async def test_invalid_output_degrades(self, bad_output):
        runner = ScriptedRunner(selection=bad_output)
        outcome = await SpecialistSelector(runner).select(CATALOG, ITEMS)
        assert outcome.degraded == DegradedReason.SELECTOR_INVALID_OUTPUT
        assert outcome.value.agent_ids == ()

    @pytest.mark.asyncio
    async def test_stray_values_do_not_void_selection(self):
        runner = ScriptedRunner(selection={"agentIds": ["gtm", 7, None, "finance"], "planText": None})
        outcome = await SpecialistSelector(runner).select(CATALOG, ITEMS)
        assert outcome.ok
        assert outcome.value.agent_ids == ("gtm", "finance")
        assert outcome.value.plan_text == "Plan: I'll consult gtm, finance, then respond."

    @pytest.mark.asyncio
    async def test_empty_catalog_skips_the_call(self):
        runner = ScriptedRunner()
        outcome = await SpecialistSelector(runner).select([], ITEMS)
        assert outcome.ok
        assert outcome.value.agent_ids == ()
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_configured_cap(self):
        runner = ScriptedRunner(selection={"agentIds": ["gtm", "finance", "legal"]})
        selector = SpecialistSelector(runner, ConsultConfig(max_consulted_specialists=2))
        outcome = await selector.select(CATALOG, ITEMS)
        assert outcome.value.agent_ids == ("gtm", "finance")
