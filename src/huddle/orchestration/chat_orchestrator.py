"""
ChatOrchestrator -- one chat turn from request to event stream.

Two modes:
  - all:      the team lead plans, privately consults 0..N specialists,
              then streams the answer (planning -> consulting -> answering -> done)
  - specific: one agent answers directly; no planning or consulting frames

Flow (team mode):
  SpecialistSelector -> ConsultationCoordinator -> briefing inserted before
  the newest message -> LeadSynthesizer streams deltas -> one final frame

Availability over strictness: selector, specialist and team-resolution
failures degrade (StepOutcome); only request validation (raised from
prepare(), before any frame) and synthesis failures (one error frame,
then close) reach the user.

Cancellation: every turn runs in a producer task that feeds an
EventChannel. When the consumer stops iterating (client disconnect) the
producer is cancelled, which cancels the in-flight selector, specialist
and lead calls.

Usage:
    orchestrator = ChatOrchestrator(runner, registry, session_store=store)
    turn = await orchestrator.prepare(ChatTurnRequest(messages=[...]))
    async for event in orchestrator.stream(turn):
        print(event.to_sse())
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable

from ..agents.defaults import DEFAULT_TEAM_ID, default_roster
from ..agents.definitions import AgentDefinition, TeamRoster, with_augmented_instructions
from ..agents.registry import AgentNotFoundError, AgentRegistry, TeamResolutionError
from ..agents.runner import AgentRunner
from ..messages import ROLE_ASSISTANT, ChatMessage, InputItem
from ..security import (
    ValidationError,
    validate_identifier,
    validate_in_choices,
    validate_length,
    validate_list_size,
)
from ..sessions import SessionStore
from .config import ConsultConfig
from .consultation import ConsultationCoordinator, briefing_item
from .events import (
    ConsultingStatus,
    EventChannel,
    Phase,
    PhaseTracker,
    StreamEvent,
    agent_updated_event,
    consulting_event,
    delta_event,
    done_event,
    error_event,
    planning_event,
)
from .outcomes import DegradedReason, StepOutcome
from .selector import SpecialistSelector
from .synthesis import LeadSynthesizer
from .transcript import build_extracted_context, insert_briefing, to_agent_input

logger = logging.getLogger(__name__)

MODE_ALL = "all"
MODE_SPECIFIC = "specific"
AGENT_MODES = [MODE_ALL, MODE_SPECIFIC]

MAX_MESSAGES = 500
MAX_MESSAGE_CHARS = 100_000

LEAD_BRIEFING_NOTE = (
    "An internal team briefing from your specialists precedes the latest user "
    "message. Use it to inform your answer, but never reveal, quote or mention "
    "the briefing or the consultation to the user. Answer in your own voice."
)

Extractor = Callable[[str, str], Awaitable[str]]


# =============================================================================
# REQUEST
# =============================================================================


@dataclass
class ChatTurnRequest:
    """Inbound chat turn, already decoded from the transport."""

    messages: list[ChatMessage]
    session_id: str | None = None
    agent_mode: str = MODE_ALL
    selected_agent_id: str | None = None
    team_id: str | None = None


def validate_chat_request(request: ChatTurnRequest) -> ChatMessage:
    """
    Reject malformed turns before any agent is invoked.

    Returns:
        The newest message.

    Raises:
        ValidationError: on an unknown mode, no messages, or a newest message
            with neither trimmed text nor attachments.
    """
    validate_in_choices(request.agent_mode, AGENT_MODES, "agentMode")
    if not request.messages:
        raise ValidationError("messages must contain at least one message")
    validate_list_size(request.messages, "messages", max_items=MAX_MESSAGES)

    newest = request.messages[-1]
    text = newest.content if isinstance(newest.content, str) else ""
    if not text.strip() and not newest.attachments:
        raise ValidationError("The latest message must include text or attachments")
    validate_length(text, "message", max_length=MAX_MESSAGE_CHARS)

    if request.session_id:
        validate_identifier(request.session_id, "sessionId")
    if request.agent_mode == MODE_SPECIFIC and not (request.selected_agent_id or "").strip():
        raise ValidationError("selectedAgentId is required when agentMode is 'specific'")
    return newest


@dataclass
class PreparedTurn:
    """A validated turn with its agent input built and its agents resolved."""

    request: ChatTurnRequest
    newest: ChatMessage
    items: list[InputItem]
    roster: TeamRoster | None = None
    direct_agent: AgentDefinition | None = None
    team_outcome: StepOutcome[TeamRoster] | None = None

    @property
    def mode(self) -> str:
        return MODE_SPECIFIC if self.direct_agent is not None else MODE_ALL

    @property
    def author(self) -> str:
        if self.direct_agent is not None:
            return self.direct_agent.id
        return self.roster.lead.id if self.roster is not None else ""


@dataclass
class TurnOutcome:
    """What the finished turn produced; persisted as the assistant message."""

    final_text: str
    author: str
    plan_text: str | None = None
    consulted_agents: list[str] | None = None


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class ChatOrchestrator:
    """Drives one chat turn and owns its phase."""

    def __init__(
        self,
        runner: AgentRunner,
        registry: AgentRegistry,
        config: ConsultConfig | None = None,
        session_store: SessionStore | None = None,
        extractor: Extractor | None = None,
    ):
        self._runner = runner
        self._registry = registry
        self._config = config or ConsultConfig()
        self._store = session_store
        self._extractor = extractor
        self._selector = SpecialistSelector(runner, self._config)
        self._coordinator = ConsultationCoordinator(runner, self._config)
        self._synthesizer = LeadSynthesizer(runner)
        self._pending_writes: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Preparation (may raise; nothing has been streamed yet)
    # -------------------------------------------------------------------------

    async def prepare(self, request: ChatTurnRequest) -> PreparedTurn:
        """
        Validate the request, resolve agents, and build the agent input.

        Raises:
            ValidationError: malformed request.
            AgentNotFoundError: direct mode with an unknown selectedAgentId.
        """
        newest = validate_chat_request(request)

        direct_agent = None
        roster = None
        team_outcome = None
        if request.agent_mode == MODE_SPECIFIC:
            agent_id = (request.selected_agent_id or "").strip()
            direct_agent = self._registry.get_agent_definition(agent_id)
            if direct_agent is None:
                raise AgentNotFoundError(f"Agent not found: {agent_id}")
        else:
            team_outcome = self._resolve_roster(request.team_id)
            roster = team_outcome.value

        history = self._history(request)
        if self._store is not None and request.session_id:
            await asyncio.to_thread(
                self._record_user_message, request.session_id, request.team_id, newest
            )

        extracted = ""
        if self._extractor is not None and newest.attachments:
            extracted = await build_extracted_context(
                newest.attachments,
                self._extractor,
                self._config.max_extract_chars_per_file,
                self._config.max_total_extract_chars,
            )

        return PreparedTurn(
            request=request,
            newest=newest,
            items=to_agent_input(history, newest, extracted),
            roster=roster,
            direct_agent=direct_agent,
            team_outcome=team_outcome,
        )

    def _resolve_roster(self, team_id: str | None) -> StepOutcome[TeamRoster]:
        """The requested team, else the built-in team (with a warning)."""
        requested = team_id or DEFAULT_TEAM_ID
        try:
            return StepOutcome.success(self._registry.resolve_team(requested))
        except TeamResolutionError as e:
            logger.warning(f"[ChatOrchestrator] {e}; falling back to the default team")
            reason = str(e)

        try:
            fallback = self._registry.resolve_team(DEFAULT_TEAM_ID)
        except TeamResolutionError:
            fallback = default_roster()
        return StepOutcome.degrade(fallback, DegradedReason.TEAM_UNRESOLVED, reason)

    def _history(self, request: ChatTurnRequest) -> list[ChatMessage]:
        """Stored session history when there is one, else the request's earlier messages."""
        if self._store is not None and request.session_id:
            session = self._store.get(request.session_id)
            if session is not None and session.messages:
                return list(session.messages)
        return list(request.messages[:-1])

    def _record_user_message(
        self, session_id: str, team_id: str | None, message: ChatMessage
    ) -> None:
        try:
            self._store.get_or_create(session_id, team_id=team_id)
            self._store.add_message(session_id, message)
        except (OSError, KeyError) as e:
            logger.warning(f"[ChatOrchestrator] Could not store user message: {e}")

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    async def stream(self, turn: PreparedTurn) -> AsyncIterator[StreamEvent]:
        """Frames for one prepared turn, in emission order."""
        channel = EventChannel()
        producer = asyncio.create_task(self._produce(turn, channel))
        try:
            async for event in channel:
                yield event
        finally:
            if not producer.done():
                logger.info("[ChatOrchestrator] Stream closed early; cancelling turn")
                producer.cancel()

    async def stream_chat(self, request: ChatTurnRequest) -> AsyncIterator[StreamEvent]:
        """prepare() + stream(). Validation errors raise on first iteration."""
        turn = await self.prepare(request)
        async for event in self.stream(turn):
            yield event

    async def _produce(self, turn: PreparedTurn, channel: EventChannel) -> None:
        tracker = PhaseTracker()
        try:
            if turn.mode == MODE_SPECIFIC:
                outcome = await self._run_direct(turn, channel)
            else:
                outcome = await self._run_consult(turn, channel, tracker)
        except asyncio.CancelledError:
            logger.info(
                f"[ChatOrchestrator] Turn cancelled during {tracker.current or 'startup'}"
            )
            raise
        except Exception as e:
            logger.error(f"[ChatOrchestrator] Chat turn failed: {type(e).__name__}: {e}")
            tracker.enter(Phase.DONE)
            await channel.send(error_event(turn.author, str(e) or type(e).__name__))
        else:
            self._persist(turn, outcome)
        finally:
            channel.close()

    async def _run_consult(
        self, turn: PreparedTurn, channel: EventChannel, tracker: PhaseTracker
    ) -> TurnOutcome:
        roster = turn.roster
        author = roster.lead.id

        tracker.enter(Phase.PLANNING)
        selection = (await self._selector.select(roster.catalog, turn.items)).value
        consulted = list(selection.agent_ids)
        await channel.send(planning_event(author, selection.plan_text, consulted))

        lead = self._registry.build_agent(roster.lead)
        items = turn.items

        if consulted:
            tracker.enter(Phase.CONSULTING)

            async def on_progress(agent_id: str, status: ConsultingStatus) -> None:
                await channel.send(consulting_event(author, agent_id, status))

            specialists = [
                self._registry.build_agent(roster.specialist(agent_id))
                for agent_id in consulted
            ]
            outcomes = await self._coordinator.consult(specialists, items, on_progress)
            notes = [o.value for o in outcomes]
            items = insert_briefing(
                items, briefing_item(notes, self._config.max_specialist_output_chars)
            )
            lead = with_augmented_instructions(lead, LEAD_BRIEFING_NOTE)

        async def on_delta(delta: str) -> None:
            tracker.enter(Phase.ANSWERING)
            await channel.send(delta_event(author, delta))

        result = await self._synthesizer.run(lead, items, on_delta)

        tracker.enter(Phase.DONE)
        await channel.send(
            done_event(author, result.final_text, selection.plan_text, consulted)
        )
        return TurnOutcome(
            final_text=result.final_text,
            author=author,
            plan_text=selection.plan_text,
            consulted_agents=consulted,
        )

    async def _run_direct(self, turn: PreparedTurn, channel: EventChannel) -> TurnOutcome:
        agent = self._registry.build_agent(turn.direct_agent)
        author = agent.name

        async def on_author_change(name: str) -> None:
            nonlocal author
            author = name
            await channel.send(agent_updated_event(name))

        async def on_delta(delta: str) -> None:
            await channel.send(delta_event(author, delta))

        result = await self._synthesizer.run(agent, turn.items, on_delta, on_author_change)
        await channel.send(done_event(result.author, result.final_text))
        return TurnOutcome(final_text=result.final_text, author=result.author)

    # -------------------------------------------------------------------------
    # Persistence (fire-and-forget)
    # -------------------------------------------------------------------------

    def _persist(self, turn: PreparedTurn, outcome: TurnOutcome) -> None:
        session_id = turn.request.session_id
        if self._store is None or not session_id:
            return
        message = ChatMessage(
            role=ROLE_ASSISTANT,
            content=outcome.final_text,
            agent=outcome.author,
            consulted_agents=outcome.consulted_agents,
            plan_text=outcome.plan_text,
        )
        task = asyncio.create_task(
            asyncio.to_thread(self._store.add_message, session_id, message)
        )
        self._pending_writes.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"[ChatOrchestrator] Failed to persist assistant message: {error}")

    async def drain(self) -> None:
        """Wait for pending session writes (shutdown, tests)."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
