"""
LeadSynthesizer -- streams the one user-visible answer.

Runs the lead agent in streaming mode, forwards every output-text delta
and accumulates them. Agent-updated events change the author (direct mode
handoffs); everything else is ignored. Exceptions propagate: a failed
synthesis is surfaced to the client by the orchestrator.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..agents.definitions import AgentSpec
from ..agents.runner import AGENT_UPDATED, OUTPUT_TEXT_DELTA, AgentRunner, StreamedRun
from ..messages import InputItem

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Awaitable[None]]
AuthorCallback = Callable[[str], Awaitable[None]]


@dataclass
class SynthesisResult:
    final_text: str
    author: str


def resolve_final_text(final_output: Any, accumulated: str) -> str:
    """Prefer the run's own string output, then its JSON form, then the deltas."""
    if isinstance(final_output, str):
        return final_output
    if final_output:
        return json.dumps(final_output, default=str)
    return accumulated or ""


class LeadSynthesizer:
    def __init__(self, runner: AgentRunner):
        self._runner = runner

    async def run(
        self,
        lead: AgentSpec,
        items: list[InputItem],
        on_delta: DeltaCallback,
        on_author_change: AuthorCallback | None = None,
    ) -> SynthesisResult:
        streamed = await self._runner.run(lead, items, stream=True)
        if not isinstance(streamed, StreamedRun):
            raise TypeError(
                f"Runner returned {type(streamed).__name__} for a streaming run"
            )

        author = lead.name
        chunks: list[str] = []

        async for event in streamed:
            if event.type == AGENT_UPDATED and event.agent_name:
                author = event.agent_name
                if on_author_change is not None:
                    await on_author_change(author)
            elif event.type == OUTPUT_TEXT_DELTA and event.delta:
                chunks.append(event.delta)
                await on_delta(event.delta)

        final_text = resolve_final_text(streamed.final_output, "".join(chunks))
        logger.debug(
            f"[Synthesizer] {author} finished: {len(chunks)} deltas, {len(final_text)} chars"
        )
        return SynthesisResult(final_text=final_text, author=author)
