"""
MemorySuggester -- proposes durable memories for an agent after a turn.

One structured-output call to a tool-less meta-agent that sees the agent's
system prompt, its saved memories and the answer the user just saw, and
answers {"suggestions": [...]}. Output is filtered with
dedupe_memory_suggestions: nothing already saved, nothing already in the
system prompt, at most MAX_SUGGESTIONS. Suggestions are returned to the
client, never saved here.

Any failure yields an empty list; suggesting memories is optional.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..messages import ROLE_USER, InputItem
from ..security.prompt_guard import wrap_user_content
from .definitions import AgentDefinition, AgentSpec, dedupe_memory_suggestions
from .runner import AgentRunner, parse_json_output

logger = logging.getLogger(__name__)

MEMORY_SUGGESTER_AGENT_NAME = "memory_suggester"
MAX_SUGGESTIONS = 3
SUGGESTER_TEMPERATURE = 0.2


class SuggestionPayload(BaseModel):
    suggestions: list[Any] = Field(default_factory=list)


def _suggester_agent() -> AgentSpec:
    instructions = (
        "You are a memory suggestion agent for a specific AI sub-agent. Propose "
        "durable, reusable memories that would improve the agent's future "
        "responses.\n\n"
        "Memories must be specific and stable facts, preferences, standing "
        "decisions or important context, grounded in the agent's role as its "
        "system prompt describes it. Avoid secrets, credentials and personal "
        "identifiers.\n\n"
        "Rules:\n"
        f"- Suggest 0 to {MAX_SUGGESTIONS} memories.\n"
        "- Do not repeat or paraphrase existing memories or the system prompt.\n"
        "- If nothing role-specific and durable comes to mind, return an empty list.\n"
        '- Answer with JSON: {"suggestions": ["...", "..."]}'
    )
    return AgentSpec(
        name=MEMORY_SUGGESTER_AGENT_NAME,
        instructions=instructions,
        tools=(),
        temperature=SUGGESTER_TEMPERATURE,
        output_schema=SuggestionPayload.model_json_schema(),
    )


def _suggestion_request(
    definition: AgentDefinition,
    existing: list[str],
    assistant_final_text: str,
    conversation_snippet: str,
) -> str:
    memories = "\n".join(f"- {m}" for m in existing) or "(none)"
    return "\n".join([
        f"AGENT: {definition.name or definition.id}",
        "",
        "AGENT SYSTEM PROMPT (ground truth):",
        definition.system_prompt.strip() or "(unknown)",
        "",
        "EXISTING MEMORIES (do not repeat):",
        memories,
        "",
        "CONVERSATION SNIPPET:",
        wrap_user_content(conversation_snippet.strip() or "(none)"),
        "",
        "ASSISTANT FINAL RESPONSE (what the user saw):",
        wrap_user_content(assistant_final_text.strip(), label="RESPONSE"),
    ])


class MemorySuggester:
    """
    Usage:
        suggester = MemorySuggester(runner)
        suggestions = await suggester.suggest(definition, existing, final_text)
    """

    def __init__(self, runner: AgentRunner):
        self._runner = runner

    async def suggest(
        self,
        definition: AgentDefinition,
        existing_memories: list[str],
        assistant_final_text: str,
        conversation_snippet: str = "",
    ) -> list[str]:
        request = InputItem.from_text(
            ROLE_USER,
            _suggestion_request(
                definition, existing_memories, assistant_final_text, conversation_snippet
            ),
        )
        try:
            result = await self._runner.run(_suggester_agent(), [request])
            output = result.final_output
            if isinstance(output, str):
                output = parse_json_output(output)
            if isinstance(output, dict) and isinstance(output.get("suggestions"), str):
                output = {"suggestions": [output["suggestions"]]}
            payload = SuggestionPayload.model_validate(output)
        except Exception as e:
            logger.warning(
                f"[MemorySuggester] No suggestions for {definition.id}: {type(e).__name__}: {e}"
            )
            return []

        suggestions = dedupe_memory_suggestions(
            payload.suggestions,
            existing_memories,
            MAX_SUGGESTIONS,
            system_prompt=definition.system_prompt,
        )
        logger.debug(f"[MemorySuggester] {definition.id}: {len(suggestions)} suggestion(s)")
        return suggestions
