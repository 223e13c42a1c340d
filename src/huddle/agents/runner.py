"""
AgentRunner -- the one capability the orchestrator needs from a language model.

    result = await runner.run(agent, items)               # RunResult
    streamed = await runner.run(agent, items, stream=True) # StreamedRun
    async for event in streamed:
        if event.type == OUTPUT_TEXT_DELTA:
            ...
    streamed.final_output

Anything implementing AgentRunner can drive the orchestrator: the LLM-backed
runner below, a remote agent service, or a scripted fake in tests.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from ..llm import ChatPrompt, LLMClient
from ..messages import InputItem
from .definitions import AgentSpec

logger = logging.getLogger(__name__)

OUTPUT_TEXT_DELTA = "output_text_delta"
AGENT_UPDATED = "agent_updated"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class RunEvent:
    """One event from a streamed agent run."""

    type: str
    delta: str = ""
    agent_name: str = ""


@dataclass
class RunResult:
    """Outcome of a non-streaming agent run."""

    agent_name: str
    final_output: Any


class StreamedRun:
    """
    Live agent run. Iterate it for RunEvents; final_output is set once the
    iteration completes (the joined text deltas unless the runner supplied
    its own value).
    """

    def __init__(self, agent_name: str, events: AsyncIterator[RunEvent]):
        self.agent_name = agent_name
        self.final_output: Any = None
        self._events = events
        self._chunks: list[str] = []
        self._complete = False

    async def _iterate(self) -> AsyncIterator[RunEvent]:
        async for event in self._events:
            if event.type == OUTPUT_TEXT_DELTA and event.delta:
                self._chunks.append(event.delta)
            yield event
        self._complete = True
        if self.final_output is None:
            self.final_output = "".join(self._chunks)

    def __aiter__(self) -> AsyncIterator[RunEvent]:
        return self._iterate()

    @property
    def is_complete(self) -> bool:
        return self._complete


@runtime_checkable
class AgentRunner(Protocol):
    """Invoke an agent over input items, optionally streaming."""

    async def run(
        self,
        agent: AgentSpec,
        input_items: list[InputItem],
        stream: bool = False,
    ) -> RunResult | StreamedRun: ...


def parse_json_output(text: str) -> Any:
    """
    Parse a model's JSON answer, tolerating code fences and surrounding prose.

    Raises:
        ValueError: if no JSON object can be decoded.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in model output")
        try:
            return json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in model output: {e}") from e


class LLMAgentRunner:
    """AgentRunner backed by an LLMClient."""

    def __init__(self, llm: LLMClient, max_tokens: int = 4096):
        self._llm = llm
        self._max_tokens = max_tokens

    async def run(
        self,
        agent: AgentSpec,
        input_items: list[InputItem],
        stream: bool = False,
    ) -> RunResult | StreamedRun:
        prompt = ChatPrompt(system=agent.instructions, items=list(input_items))

        if stream:
            return StreamedRun(agent.name, self._stream_events(agent, prompt))

        response = await self._llm.call(
            prompt,
            role=agent.name,
            model=agent.model,
            temperature=agent.temperature,
            max_tokens=self._max_tokens,
            response_schema=agent.output_schema,
            tools=agent.tools,
        )
        output: Any = response.content
        if agent.output_schema is not None:
            output = parse_json_output(response.content)
        return RunResult(agent_name=agent.name, final_output=output)

    async def _stream_events(
        self, agent: AgentSpec, prompt: ChatPrompt
    ) -> AsyncIterator[RunEvent]:
        async for delta in self._llm.stream(
            prompt,
            role=agent.name,
            model=agent.model,
            temperature=agent.temperature,
            max_tokens=self._max_tokens,
            tools=agent.tools,
        ):
            yield RunEvent(type=OUTPUT_TEXT_DELTA, delta=delta)
