"""
Transcript codec -- conversation messages to agent input and to meta-prompt text.

  to_agent_input()     -- stored history + newest message -> [InputItem]
  to_transcript_text() -- last N items as "ROLE: text" blocks, bounded
  insert_briefing()    -- place the internal briefing just before the newest message
  truncate()           -- bounded text with a visible omission marker
  build_extracted_context() -- attachment text appended to the newest message

Pure functions. Malformed input is coerced (missing text -> "", attachments
without a URL are dropped) rather than rejected; rejection happens at the
request boundary.
"""

import logging
import re
from typing import Awaitable, Callable

from ..messages import (
    PART_INPUT_FILE,
    PART_INPUT_IMAGE,
    PART_INPUT_TEXT,
    PART_OUTPUT_TEXT,
    ROLE_ASSISTANT,
    ROLE_USER,
    Attachment,
    ChatMessage,
    ContentPart,
    InputItem,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_DETAIL = "auto"
ATTACHMENT_ONLY_TEXT = "User uploaded attachment(s). Please analyze them and respond."

_TRUNCATION_MARKER_RE = re.compile(r"\n\n\[Truncated: \d{1,20} more characters omitted\]\Z")


def truncate(text: str, max_chars: int) -> str:
    """
    Cut text to max_chars and append "[Truncated: K more characters omitted]".

    Text that is exactly a max_chars prefix plus the marker (what this
    function returns) comes back as is, so truncating twice with the same
    budget changes nothing. Anything else over budget is cut again.
    """
    max_chars = max(0, max_chars)
    if len(text) <= max_chars:
        return text
    marker = _TRUNCATION_MARKER_RE.search(text)
    if marker is not None and marker.start() == max_chars:
        return text
    omitted = len(text) - max_chars
    return f"{text[:max_chars]}\n\n[Truncated: {omitted} more characters omitted]"


def attachment_parts(attachments: list[Attachment]) -> tuple[ContentPart, ...]:
    """Images first, then other files; attachments without a URL are skipped."""
    usable = [a for a in attachments if a.url]
    images = [
        ContentPart(type=PART_INPUT_IMAGE, url=a.url, detail=DEFAULT_IMAGE_DETAIL, name=a.name)
        for a in usable
        if a.is_image
    ]
    files = [
        ContentPart(type=PART_INPUT_FILE, url=a.url, name=a.name)
        for a in usable
        if not a.is_image
    ]
    return tuple(images + files)


def message_to_item(message: ChatMessage) -> InputItem:
    """History message -> input item. Assistant turns are replayed as text only."""
    text = message.content if isinstance(message.content, str) else ""
    if message.role == ROLE_ASSISTANT:
        return InputItem(
            role=ROLE_ASSISTANT,
            content=(ContentPart(type=PART_OUTPUT_TEXT, text=text),),
        )
    return InputItem(
        role=ROLE_USER,
        content=(ContentPart(type=PART_INPUT_TEXT, text=text),)
        + attachment_parts(message.attachments),
    )


def newest_message_item(message: ChatMessage, extracted_context: str = "") -> InputItem:
    """
    The newest user message, with extracted attachment text appended.

    An attachment-only message gets a default instruction so the model has
    something to respond to.
    """
    text = message.content if isinstance(message.content, str) else ""
    base = text if text.strip() else ATTACHMENT_ONLY_TEXT
    return InputItem(
        role=ROLE_USER,
        content=(ContentPart(type=PART_INPUT_TEXT, text=f"{base}{extracted_context}"),)
        + attachment_parts(message.attachments),
    )


def to_agent_input(
    history: list[ChatMessage],
    new_message: ChatMessage,
    extracted_context: str = "",
) -> list[InputItem]:
    """Map stored history to input items and append the newest message last."""
    items = [message_to_item(m) for m in history]
    items.append(newest_message_item(new_message, extracted_context))
    return items


def to_transcript_text(items: list[InputItem], max_items: int, max_chars: int) -> str:
    """
    Plain-text transcript of the last max_items items for meta-prompting.

    Items with no text are skipped. The result is truncated to max_chars.
    """
    recent = items[-max_items:] if max_items > 0 else []
    blocks = [f"{item.role.upper()}: {item.text}" for item in recent if item.text.strip()]
    return truncate("\n\n".join(blocks), max_chars)


def insert_briefing(items: list[InputItem], briefing: InputItem) -> list[InputItem]:
    """New list with briefing placed immediately before the newest item."""
    if not items:
        return [briefing]
    return [*items[:-1], briefing, items[-1]]


async def build_extracted_context(
    attachments: list[Attachment],
    extractor: Callable[[str, str], Awaitable[str]],
    max_chars_per_file: int,
    max_total_chars: int,
) -> str:
    """
    Labelled text blocks for every non-image attachment the extractor can read.

    Extraction is best-effort: a failing file is logged and skipped (it is
    still attached by reference). Returns "" when nothing was extracted.
    """
    blocks: list[str] = []
    extracted_so_far = 0

    for attachment in attachments:
        if not attachment.url or attachment.is_image:
            continue
        if extracted_so_far >= max_total_chars:
            break

        try:
            raw = await extractor(attachment.url, attachment.content_type)
        except Exception as e:
            logger.warning(
                f"[Transcript] Text extraction failed for "
                f"{attachment.name or 'uploaded_file'}: {type(e).__name__}: {e}"
            )
            continue

        trimmed = (raw or "").strip()
        if not trimmed:
            continue

        remaining = max(0, max_total_chars - extracted_so_far)
        chunk = truncate(trimmed, min(max_chars_per_file, remaining))
        extracted_so_far += len(chunk)
        blocks.append(
            f"---\nFILE: {attachment.name or 'uploaded_file'}\n"
            f"TYPE: {attachment.content_type}\n---\n{chunk}\n"
        )

    if not blocks:
        return ""
    return "\n\n[Uploaded file text (best-effort extraction)]\n" + "\n".join(blocks)
