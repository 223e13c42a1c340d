"""
SpecialistSelector -- decides whether and whom the lead should consult.

One structured-output call to a tool-less, low-temperature meta-agent that
sees the specialist catalog and a bounded transcript, and answers
{"agentIds": [...], "planText": "..."}.

The model's answer is never trusted as-is. Ids are trimmed, de-duplicated,
filtered to the catalog and capped, in first-seen order. Unknown ids are
dropped silently. A failed or malformed call degrades to "no consult".
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..agents.definitions import AgentSpec, SpecialistDescriptor
from ..agents.runner import AgentRunner, parse_json_output
from ..messages import ROLE_USER, InputItem
from ..security.prompt_guard import detect_injection_attempt, wrap_user_content
from .config import ConsultConfig
from .outcomes import DegradedReason, StepOutcome
from .transcript import to_transcript_text

logger = logging.getLogger(__name__)

SELECTOR_AGENT_NAME = "specialist_selector"
NO_CONSULT_PLAN_TEXT = "Plan: I can answer directly—no specialist consult needed."


class SelectionPayload(BaseModel):
    """Schema the selector meta-agent must answer with."""

    model_config = ConfigDict(populate_by_name=True)

    agent_ids: list[str] = Field(default_factory=list, alias="agentIds")
    plan_text: str = Field("", alias="planText")

    # Non-string ids are dropped; a null plan counts as empty.
    @field_validator("agent_ids", mode="before")
    @classmethod
    def _keep_string_ids(cls, value):
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [v for v in value if isinstance(v, str)]
        return value

    @field_validator("plan_text", mode="before")
    @classmethod
    def _missing_plan_is_empty(cls, value):
        return "" if value is None else value


@dataclass(frozen=True)
class SelectionResult:
    """Catalog-validated selection plus the one-sentence plan shown to the user."""

    agent_ids: tuple[str, ...] = ()
    plan_text: str = NO_CONSULT_PLAN_TEXT


def default_plan_text(agent_ids: list[str] | tuple[str, ...]) -> str:
    if agent_ids:
        return f"Plan: I'll consult {', '.join(agent_ids)}, then respond."
    return NO_CONSULT_PLAN_TEXT


def normalize_agent_ids(
    raw_ids: list,
    catalog: list[SpecialistDescriptor],
    limit: int,
) -> list[str]:
    """Trim, de-duplicate, keep catalog members only, cap at limit."""
    allowed = {d.id for d in catalog}
    selected: list[str] = []
    for raw in raw_ids:
        if len(selected) >= limit:
            break
        if not isinstance(raw, str):
            continue
        agent_id = raw.strip()
        if agent_id in allowed and agent_id not in selected:
            selected.append(agent_id)
    return selected


def build_selection(
    catalog: list[SpecialistDescriptor],
    raw_ids: list,
    plan_text: str,
    limit: int,
) -> SelectionResult:
    agent_ids = normalize_agent_ids(raw_ids, catalog, limit)
    plan = (plan_text or "").strip() or default_plan_text(agent_ids)
    return SelectionResult(agent_ids=tuple(agent_ids), plan_text=plan)


def _catalog_text(catalog: list[SpecialistDescriptor]) -> str:
    lines = []
    for d in catalog:
        line = f"- {d.id}"
        if d.name and d.name != d.id:
            line += f" ({d.name})"
        if d.description:
            line += f": {d.description}"
        lines.append(line)
    return "\n".join(lines)


class SpecialistSelector:
    """
    Picks 0..max_consulted_specialists specialists for the latest turn.

    Usage:
        selector = SpecialistSelector(runner, config)
        outcome = await selector.select(roster.catalog, items)
        outcome.value.agent_ids, outcome.value.plan_text
    """

    def __init__(self, runner: AgentRunner, config: ConsultConfig | None = None):
        self._runner = runner
        self._config = config or ConsultConfig()

    def selector_agent(self, catalog: list[SpecialistDescriptor]) -> AgentSpec:
        limit = self._config.max_consulted_specialists
        instructions = (
            "You are the planning step of a team lead. Decide which specialists, "
            "if any, the lead should privately consult before answering the "
            "latest user message.\n\n"
            "Rules:\n"
            f"- Select between 0 and {limit} specialist ids.\n"
            "- Only use ids from the catalog below, exactly as written.\n"
            "- Select none for greetings, simple questions, or anything the lead "
            "can answer alone.\n"
            "- planText is one short sentence addressed to the user describing "
            "what you will do.\n\n"
            f"Specialist catalog:\n{_catalog_text(catalog)}"
        )
        return AgentSpec(
            name=SELECTOR_AGENT_NAME,
            instructions=instructions,
            tools=(),
            temperature=self._config.selector_temperature,
            output_schema=SelectionPayload.model_json_schema(by_alias=True),
        )

    async def select(
        self,
        catalog: list[SpecialistDescriptor],
        items: list[InputItem],
    ) -> StepOutcome[SelectionResult]:
        limit = self._config.max_consulted_specialists
        no_consult = build_selection(catalog, [], "", limit)

        if not catalog or limit <= 0:
            return StepOutcome.success(no_consult)

        transcript = to_transcript_text(
            items,
            self._config.max_transcript_items_for_selector,
            self._config.max_transcript_chars_for_selector,
        )
        detect_injection_attempt(transcript)
        request = InputItem.from_text(
            ROLE_USER,
            f"Recent conversation:\n{wrap_user_content(transcript)}",
        )

        try:
            result = await self._runner.run(self.selector_agent(catalog), [request])
        except Exception as e:
            logger.warning(
                f"[Selector] Selector call failed, answering without consult: "
                f"{type(e).__name__}: {e}"
            )
            return StepOutcome.degrade(no_consult, DegradedReason.SELECTOR_FAILED, str(e))

        try:
            output = result.final_output
            if isinstance(output, str):
                output = parse_json_output(output)
            payload = SelectionPayload.model_validate(output)
        except ValueError as e:
            logger.warning(f"[Selector] Unusable selector output: {e}")
            return StepOutcome.degrade(
                no_consult, DegradedReason.SELECTOR_INVALID_OUTPUT, str(e)
            )

        selection = build_selection(catalog, payload.agent_ids, payload.plan_text, limit)
        dropped = [i for i in payload.agent_ids if i not in selection.agent_ids]
        if dropped:
            logger.debug(f"[Selector] Dropped ids not selectable: {dropped}")
        logger.debug(f"[Selector] Selected {list(selection.agent_ids)}")
        return StepOutcome.success(selection)
