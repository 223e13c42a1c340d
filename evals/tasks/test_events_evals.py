"""
Stream contract evals -- wire shape, SSE framing, phase tracking, channel order.
"""

import json

import pytest

from huddle.orchestration import (
    ConsultingStatus,
    EventChannel,
    Phase,
    PhaseTracker,
    PhaseTransitionError,
)
from huddle.orchestration.events import (
    agent_updated_event,
    consulting_event,
    delta_event,
    done_event,
    error_event,
    planning_event,
)


class TestWireShape:
    def test_planning_frame(self):
        wire = planning_event("chief_of_staff", "I will consult GTM.", ["gtm"]).to_wire()
        assert wire == {
            "author": "chief_of_staff",
            "phase": "planning",
            "partial": True,
            "isFinal": False,
            "planText": "I will consult GTM.",
            "consultedAgents": ["gtm"],
        }

    def test_consulting_frame(self):
        wire = consulting_event("chief_of_staff", "gtm", ConsultingStatus.STARTED).to_wire()
        assert wire["phase"] == "consulting"
        assert wire["consultingAgent"] == "gtm"
        assert wire["consultingStatus"] == "started"
        assert "content" not in wire

    def test_delta_and_final_frames(self):
        delta = delta_event("chief_of_staff", "Hel").to_wire()
        assert delta == {
            "author": "chief_of_staff",
            "phase": "answering",
            "content": "Hel",
            "partial": True,
            "isFinal": False,
        }
        final = done_event("chief_of_staff", "Hello", "plan", ["gtm"]).to_wire()
        assert final["isFinal"] is True and final["partial"] is False
        assert final["content"] == "Hello"
        assert final["consultedAgents"] == ["gtm"]

    def test_error_frame(self):
        wire = error_event("chief_of_staff", "stream reset").to_wire()
        assert wire == {
            "author": "chief_of_staff",
            "phase": "done",
            "partial": False,
            "isFinal": False,
            "error": "stream reset",
        }

    def test_agent_updated_frame_has_no_phase(self):
        wire = agent_updated_event("legal").to_wire()
        assert "phase" not in wire
        assert wire["content"] == ""

    def test_sse_framing(self):
        sse = delta_event("a", "hi").to_sse()
        assert sse.startswith("data: ")
        assert sse.endswith("\n\n")
        assert json.loads(sse[len("data: "):])["content"] == "hi"


class TestPhaseTracker:
    def test_forward_with_skips(self):
        tracker = PhaseTracker()
        assert tracker.enter(Phase.PLANNING)
        assert tracker.enter(Phase.ANSWERING)
        assert not tracker.enter(Phase.ANSWERING)
        assert tracker.enter(Phase.DONE)
        assert tracker.visited == [Phase.PLANNING, Phase.ANSWERING, Phase.DONE]

    def test_backwards_raises(self):
        tracker = PhaseTracker()
        tracker.enter(Phase.ANSWERING)
        with pytest.raises(PhaseTransitionError):
            tracker.enter(Phase.CONSULTING)


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_delivers_in_send_order_until_closed(self):
        channel = EventChannel()
        for text in ("a", "b", "c"):
            await channel.send(delta_event("x", text))
        channel.close()
        received = [e.content async for e in channel]
        assert received == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self):
        channel = EventChannel()
        channel.close()
        with pytest.raises(RuntimeError):
            await channel.send(delta_event("x", "late"))
