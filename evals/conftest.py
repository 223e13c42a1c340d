"""Eval fixtures -- scripted agent runner, registry with a small team, helpers."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from huddle.agents import (
    AGENT_UPDATED,
    OUTPUT_TEXT_DELTA,
    AgentRegistry,
    AgentSpec,
    RunEvent,
    RunResult,
    StreamedRun,
)
from huddle.agents.definitions import AGENT_TYPE_SUB_AGENT
from huddle.agents.memories import MEMORY_SUGGESTER_AGENT_NAME
from huddle.messages import InputItem
from huddle.orchestration import ChatOrchestrator, ChatTurnRequest, ConsultConfig
from huddle.orchestration.selector import SELECTOR_AGENT_NAME


@dataclass
class RecordedCall:
    agent: AgentSpec
    items: list[InputItem]
    stream: bool


@dataclass
class ScriptedRunner:
    """
    AgentRunner double.

    selection:  selector output (dict, str, or an exception to raise)
    notes:      specialist id -> note text or exception
    delays:     agent name -> seconds to sleep before answering
    answer:     lead stream deltas
    stream_error: raised after the first delta when set
    handoff_to: emit an agent_updated event for this name before the deltas
    suggestions: memory suggester output (dict, str, or an exception to raise)
    """

    selection: Any = field(default_factory=lambda: {"agentIds": [], "planText": ""})
    notes: dict[str, Any] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)
    answer: list[str] = field(default_factory=lambda: ["Price ", "it at ", "$49."])
    stream_error: Exception | None = None
    handoff_to: str | None = None
    suggestions: Any = field(default_factory=lambda: {"suggestions": []})
    calls: list[RecordedCall] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)

    async def run(self, agent: AgentSpec, input_items: list[InputItem], stream: bool = False):
        self.calls.append(RecordedCall(agent, list(input_items), stream))
        if stream:
            return StreamedRun(agent.name, self._events(agent))

        delay = self.delays.get(agent.name)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(agent.name)
                raise

        if agent.name == SELECTOR_AGENT_NAME:
            output = self.selection
        elif agent.name == MEMORY_SUGGESTER_AGENT_NAME:
            output = self.suggestions
        else:
            output = self.notes.get(agent.name, f"Notes from {agent.name}.")
        if isinstance(output, Exception):
            raise output
        return RunResult(agent_name=agent.name, final_output=output)

    async def _events(self, agent: AgentSpec):
        if self.handoff_to:
            yield RunEvent(type=AGENT_UPDATED, agent_name=self.handoff_to)
        for index, chunk in enumerate(self.answer):
            if self.stream_error is not None and index == 1:
                raise self.stream_error
            yield RunEvent(type=OUTPUT_TEXT_DELTA, delta=chunk)

    def calls_for(self, name: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.agent.name == name]

    @property
    def lead_call(self) -> RecordedCall:
        return next(c for c in self.calls if c.stream)


@pytest.fixture
def runner():
    return ScriptedRunner()


@pytest.fixture
def registry():
    """Built-ins plus a three-specialist team: gtm, finance, legal."""
    reg = AgentRegistry()
    for name, description in [
        ("gtm", "Go-to-market and pricing"),
        ("finance", "Runway and fundraising"),
        ("legal", "Contracts and compliance"),
    ]:
        reg.create_agent(
            name=name,
            system_prompt=f"You are the {name} specialist.",
            agent_type=AGENT_TYPE_SUB_AGENT,
            description=description,
        )
    return reg


@pytest.fixture
def team(registry):
    return registry.create_team(
        "Startup", lead_id="chief_of_staff", sub_agent_ids=["gtm", "finance", "legal"]
    )


@pytest.fixture
def config():
    return ConsultConfig(specialist_timeout_seconds=2.0)


@pytest.fixture
def orchestrator(runner, registry, config):
    return ChatOrchestrator(runner, registry, config=config)


async def collect(orchestrator: ChatOrchestrator, request: ChatTurnRequest) -> list:
    """Prepare and stream one turn, returning all frames."""
    turn = await orchestrator.prepare(request)
    return [event async for event in orchestrator.stream(turn)]
