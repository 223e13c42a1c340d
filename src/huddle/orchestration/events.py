"""
Outbound stream contract -- phases, frames and the ordered event channel.

Every frame is one Server-Sent Event:

    data: {"author": "chief_of_staff", "phase": "answering", "content": "Hi", "partial": true, "isFinal": false}\\n\\n

Fields are camelCase on the wire and present only when relevant.
`partial` and `isFinal` are always present. At most one frame has
isFinal=true and it is always the last frame before the stream closes.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import AsyncIterator

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    PLANNING = "planning"
    CONSULTING = "consulting"
    ANSWERING = "answering"
    DONE = "done"


PHASE_ORDER = [Phase.PLANNING, Phase.CONSULTING, Phase.ANSWERING, Phase.DONE]


class ConsultingStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"


class PhaseTransitionError(RuntimeError):
    """Raised when the orchestration is asked to revisit an earlier phase."""

    pass


# =============================================================================
# FRAMES
# =============================================================================


class StreamEvent(BaseModel):
    """One outbound frame."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    author: str = ""
    phase: Phase | None = None
    content: str | None = None
    partial: bool = True
    is_final: bool = False
    plan_text: str | None = None
    consulted_agents: list[str] | None = None
    consulting_agent: str | None = None
    consulting_status: ConsultingStatus | None = None
    error: str | None = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_wire())}\n\n"


def planning_event(author: str, plan_text: str, consulted_agents: list[str]) -> StreamEvent:
    return StreamEvent(
        author=author,
        phase=Phase.PLANNING,
        plan_text=plan_text,
        consulted_agents=list(consulted_agents),
    )


def consulting_event(author: str, agent_id: str, status: ConsultingStatus) -> StreamEvent:
    return StreamEvent(
        author=author,
        phase=Phase.CONSULTING,
        consulting_agent=agent_id,
        consulting_status=status,
    )


def delta_event(author: str, delta: str) -> StreamEvent:
    return StreamEvent(author=author, phase=Phase.ANSWERING, content=delta)


def agent_updated_event(author: str) -> StreamEvent:
    """Author switch notice (direct mode handoffs). Carries no phase."""
    return StreamEvent(author=author, content="")


def done_event(
    author: str,
    final_text: str,
    plan_text: str | None = None,
    consulted_agents: list[str] | None = None,
) -> StreamEvent:
    return StreamEvent(
        author=author,
        phase=Phase.DONE,
        content=final_text,
        partial=False,
        is_final=True,
        plan_text=plan_text,
        consulted_agents=list(consulted_agents) if consulted_agents is not None else None,
    )


def error_event(author: str, message: str) -> StreamEvent:
    """Failure frame. Ends the stream in place of the final frame."""
    return StreamEvent(
        author=author,
        phase=Phase.DONE,
        partial=False,
        is_final=False,
        error=message,
    )


# =============================================================================
# PHASE TRACKING
# =============================================================================


class PhaseTracker:
    """
    Owns the current phase of one request.

    Phases only move forward through PHASE_ORDER; any may be skipped.
    Re-entering the current phase is a no-op.
    """

    def __init__(self):
        self._current: Phase | None = None
        self._visited: list[Phase] = []

    @property
    def current(self) -> Phase | None:
        return self._current

    @property
    def visited(self) -> list[Phase]:
        return list(self._visited)

    def enter(self, phase: Phase) -> bool:
        """Move to phase. Returns True on a transition, False if already there."""
        if phase == self._current:
            return False
        if self._current is not None and PHASE_ORDER.index(phase) < PHASE_ORDER.index(self._current):
            raise PhaseTransitionError(
                f"Cannot move from {self._current.value} back to {phase.value}"
            )
        logger.debug(f"[PhaseTracker] {self._current} -> {phase.value}")
        self._current = phase
        self._visited.append(phase)
        return True


# =============================================================================
# CHANNEL
# =============================================================================


class EventChannel:
    """
    Single ordered channel between the request's producer and the client.

    Concurrent specialist tasks write through send(); frames are delivered
    in the order they were sent. close() ends iteration.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def send(self, event: StreamEvent) -> None:
        if self._closed:
            raise RuntimeError("EventChannel is closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item
