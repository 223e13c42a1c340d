"""
ConsultationCoordinator -- private specialist fan-out and the internal briefing.

All selected specialists run concurrently against one shared consultation
prompt. Each call is wrapped on its own (timeout + error capture) so the
join never fails fast: a specialist that raises or hangs contributes an
inline error note instead of disappearing.

Progress callbacks fire per specialist in real completion order; the notes
come back in selection order, so the briefing text is deterministic
regardless of network timing.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..agents.definitions import AgentSpec
from ..agents.runner import AgentRunner
from ..messages import ROLE_ASSISTANT, ROLE_USER, InputItem
from ..security.prompt_guard import wrap_user_content
from .config import ConsultConfig
from .events import ConsultingStatus
from .outcomes import DegradedReason, StepOutcome
from .transcript import to_transcript_text, truncate

logger = logging.getLogger(__name__)

BRIEFING_HEADER = (
    "[Internal team briefing - not visible to the user]\n"
    "Private notes from specialists consulted for the latest message."
)

ProgressCallback = Callable[[str, ConsultingStatus], Awaitable[None]]


@dataclass(frozen=True)
class ConsultationNote:
    """One specialist's private notes (or an inline error)."""

    specialist_id: str
    text: str


def build_consultation_prompt(transcript: str) -> str:
    return (
        "The team lead is privately consulting you before answering the user. "
        "Never address the user directly; the lead will decide what to say.\n\n"
        "Reply with exactly these four sections:\n"
        "1. Key insights\n"
        "2. Risks\n"
        "3. Recommended angle\n"
        "4. Clarifying questions (only if critical)\n\n"
        "Keep each section brief and specific to your expertise.\n\n"
        f"{wrap_user_content(transcript)}"
    )


def build_briefing(notes: list[ConsultationNote], max_chars_per_note: int) -> str:
    blocks = [
        f"[{note.specialist_id}]\n{truncate(note.text, max_chars_per_note)}"
        for note in notes
    ]
    return "\n\n".join([BRIEFING_HEADER, *blocks])


def briefing_item(notes: list[ConsultationNote], max_chars_per_note: int) -> InputItem:
    """The briefing as a synthetic assistant-role input item."""
    return InputItem.from_text(ROLE_ASSISTANT, build_briefing(notes, max_chars_per_note))


def _output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if output is None:
        return ""
    return json.dumps(output, default=str)


class ConsultationCoordinator:
    """
    Runs specialists in parallel and collects their notes.

    Usage:
        coordinator = ConsultationCoordinator(runner, config)
        outcomes = await coordinator.consult(specialists, items, on_progress)
        notes = [o.value for o in outcomes]
    """

    def __init__(self, runner: AgentRunner, config: ConsultConfig | None = None):
        self._runner = runner
        self._config = config or ConsultConfig()

    async def consult(
        self,
        specialists: list[AgentSpec],
        items: list[InputItem],
        on_progress: ProgressCallback | None = None,
    ) -> list[StepOutcome[ConsultationNote]]:
        """One outcome per specialist, in the order given."""
        if not specialists:
            return []

        transcript = to_transcript_text(
            items,
            self._config.max_transcript_items_for_specialists,
            self._config.max_transcript_chars_for_specialists,
        )
        request = InputItem.from_text(ROLE_USER, build_consultation_prompt(transcript))

        outcomes = await asyncio.gather(
            *[self._consult_one(s, request, on_progress) for s in specialists]
        )

        failed = [o.value.specialist_id for o in outcomes if not o.ok]
        logger.debug(
            f"[Consultation] {len(outcomes) - len(failed)}/{len(outcomes)} "
            f"specialists answered"
        )
        return list(outcomes)

    async def _consult_one(
        self,
        specialist: AgentSpec,
        request: InputItem,
        on_progress: ProgressCallback | None,
    ) -> StepOutcome[ConsultationNote]:
        agent_id = specialist.name
        timeout = self._config.specialist_timeout_seconds
        limit = self._config.max_specialist_output_chars

        if on_progress is not None:
            await on_progress(agent_id, ConsultingStatus.STARTED)

        try:
            result = await asyncio.wait_for(
                self._runner.run(specialist, [request]),
                timeout=timeout if timeout > 0 else None,
            )
            text = _output_text(result.final_output).strip() or "(no notes)"
            outcome = StepOutcome.success(ConsultationNote(agent_id, truncate(text, limit)))
        except asyncio.TimeoutError:
            logger.warning(f"[Consultation] {agent_id} timed out after {timeout}s")
            outcome = StepOutcome.degrade(
                ConsultationNote(
                    agent_id, f"[Consultation failed: {agent_id} timed out after {timeout:g}s]"
                ),
                DegradedReason.SPECIALIST_TIMEOUT,
                f"timeout after {timeout}s",
            )
        except Exception as e:
            logger.warning(
                f"[Consultation] {agent_id} consultation failed: {type(e).__name__}: {e}"
            )
            outcome = StepOutcome.degrade(
                ConsultationNote(agent_id, f"[Consultation failed: {agent_id}: {e}]"),
                DegradedReason.SPECIALIST_FAILED,
                str(e),
            )

        if on_progress is not None:
            await on_progress(agent_id, ConsultingStatus.COMPLETED)
        return outcome
