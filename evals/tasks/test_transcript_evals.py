"""
Transcript codec evals -- agent input, meta-prompt text, truncation, extraction.
"""

import pytest

from huddle.messages import (
    PART_INPUT_FILE,
    PART_INPUT_IMAGE,
    PART_INPUT_TEXT,
    PART_OUTPUT_TEXT,
    Attachment,
    ChatMessage,
    InputItem,
)
from huddle.orchestration.transcript import (
    ATTACHMENT_ONLY_TEXT,
    build_extracted_context,
    insert_briefing,
    to_agent_input,
    to_transcript_text,
    truncate,
)

MARKER_ALLOWANCE = len("\n\n[Truncated: " + "9" * 20 + " more characters omitted]")


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("hello", 10) == "hello"
        assert truncate("", 0) == ""

    def test_long_text_gets_marker(self):
        result = truncate("a" * 100, 40)
        assert result.startswith("a" * 40)
        assert result.endswith("[Truncated: 60 more characters omitted]")

    @pytest.mark.parametrize("n", [0, 1, 5, 39, 40, 41, 500])
    def test_idempotent(self, n):
        text = "The quick brown fox jumps over the lazy dog. " * 3
        once = truncate(text, n)
        assert truncate(once, n) == once

    @pytest.mark.parametrize("n", [0, 3, 10, 17, 1000])
    @pytest.mark.parametrize(
        "text",
        [
            "x" * 2000,
            "x\n\n[Truncated: " + "9" * 50_000 + " more characters omitted]",
            "y" * 5000 + "\n\n[Truncated: 12 more characters omitted]",
            "\n\n[Truncated: 1 more characters omitted]" + "z" * 3000,
        ],
    )
    def test_length_bounded(self, n, text):
        assert len(truncate(text, n)) <= n + MARKER_ALLOWANCE

    def test_lookalike_marker_is_cut_again(self):
        text = "y" * 5000 + "\n\n[Truncated: 12 more characters omitted]"
        result = truncate(text, 10)
        assert result.startswith("y" * 10 + "\n\n[Truncated: ")
        assert result.endswith(f"[Truncated: {len(text) - 10} more characters omitted]")

    def test_negative_budget_treated_as_zero(self):
        assert truncate("abc", -5) == truncate("abc", 0)


class TestToAgentInput:
    def test_history_then_newest_last(self):
        history = [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello! How can I help?"),
        ]
        items = to_agent_input(history, ChatMessage(role="user", content="Pricing?"))
        assert [i.role for i in items] == ["user", "assistant", "user"]
        assert items[-1].text == "Pricing?"
        assert items[1].content[0].type == PART_OUTPUT_TEXT

    def test_images_before_files_and_missing_urls_dropped(self):
        message = ChatMessage(
            role="user",
            content="See attached",
            attachments=[
                Attachment(kind="file", url="https://f.example.com/a.pdf", name="a.pdf"),
                Attachment(kind="image", url="https://f.example.com/b.png", name="b.png"),
                Attachment(kind="file", url="", name="broken.txt"),
            ],
        )
        item = to_agent_input([], message)[0]
        types = [p.type for p in item.content]
        assert types == [PART_INPUT_TEXT, PART_INPUT_IMAGE, PART_INPUT_FILE]
        assert item.content[1].detail == "auto"

    def test_assistant_history_is_text_only(self):
        history = [
            ChatMessage(
                role="assistant",
                content="Here you go",
                attachments=[Attachment(kind="image", url="https://f.example.com/x.png")],
            )
        ]
        items = to_agent_input(history, ChatMessage(role="user", content="thanks"))
        assert len(items[0].content) == 1
        assert items[0].content[0].type == PART_OUTPUT_TEXT

    def test_attachment_only_message_gets_default_text(self):
        message = ChatMessage(
            role="user",
            content="   ",
            attachments=[Attachment(kind="file", url="https://f.example.com/deck.pdf")],
        )
        item = to_agent_input([], message)[0]
        assert item.text == ATTACHMENT_ONLY_TEXT

    def test_extracted_context_appended_to_newest(self):
        items = to_agent_input(
            [ChatMessage(role="user", content="earlier")],
            ChatMessage(role="user", content="Summarize"),
            extracted_context="\n\n[file text]",
        )
        assert items[0].text == "earlier"
        assert items[-1].text == "Summarize\n\n[file text]"


class TestTranscriptText:
    def test_role_prefixed_blocks(self):
        items = [
            InputItem.from_text("user", "What should I price my SaaS at?"),
            InputItem.from_text("assistant", "Tell me about your customers."),
        ]
        text = to_transcript_text(items, max_items=12, max_chars=12_000)
        assert text == (
            "USER: What should I price my SaaS at?\n\n"
            "ASSISTANT: Tell me about your customers."
        )

    def test_only_last_n_items_and_empty_skipped(self):
        items = [InputItem.from_text("user", f"m{i}") for i in range(5)]
        items.append(InputItem.from_text("assistant", "   "))
        text = to_transcript_text(items, max_items=3, max_chars=1000)
        assert text == "USER: m3\n\nUSER: m4"

    def test_bounded_by_max_chars(self):
        items = [InputItem.from_text("user", "y" * 500)]
        text = to_transcript_text(items, max_items=12, max_chars=100)
        assert "[Truncated:" in text
        assert text.startswith("USER: ")


def test_insert_briefing_goes_before_newest():
    items = [InputItem.from_text("user", "a"), InputItem.from_text("user", "b")]
    briefing = InputItem.from_text("assistant", "briefing")
    result = insert_briefing(items, briefing)
    assert [i.text for i in result] == ["a", "briefing", "b"]
    assert [i.text for i in items] == ["a", "b"]


class TestExtractedContext:
    @pytest.mark.asyncio
    async def test_skips_images_and_labels_files(self):
        seen = []

        async def extractor(url, content_type):
            seen.append(url)
            return "col1,col2\n1,2"

        context = await build_extracted_context(
            [
                Attachment(kind="image", url="https://f.example.com/p.png", content_type="image/png"),
                Attachment(kind="file", url="https://f.example.com/d.csv", name="d.csv", content_type="text/csv"),
            ],
            extractor,
            max_chars_per_file=1000,
            max_total_chars=5000,
        )
        assert seen == ["https://f.example.com/d.csv"]
        assert context.startswith("\n\n[Uploaded file text (best-effort extraction)]\n")
        assert "FILE: d.csv\nTYPE: text/csv" in context
        assert "col1,col2" in context

    @pytest.mark.asyncio
    async def test_failing_file_is_skipped(self):
        async def extractor(url, content_type):
            if "bad" in url:
                raise RuntimeError("fetch failed")
            return "good text"

        context = await build_extracted_context(
            [
                Attachment(kind="file", url="https://f.example.com/bad.txt", name="bad.txt"),
                Attachment(kind="file", url="https://f.example.com/ok.txt", name="ok.txt"),
            ],
            extractor,
            max_chars_per_file=1000,
            max_total_chars=5000,
        )
        assert "bad.txt" not in context
        assert "good text" in context

    @pytest.mark.asyncio
    async def test_per_file_cap(self):
        async def extractor(url, content_type):
            return "z" * 500

        context = await build_extracted_context(
            [Attachment(kind="file", url="https://f.example.com/z.txt", name="z.txt")],
            extractor,
            max_chars_per_file=100,
            max_total_chars=5000,
        )
        assert "[Truncated: 400 more characters omitted]" in context

    @pytest.mark.asyncio
    async def test_nothing_extracted_returns_empty(self):
        async def extractor(url, content_type):
            return ""

        context = await build_extracted_context(
            [Attachment(kind="file", url="https://f.example.com/e.pdf")],
            extractor,
            max_chars_per_file=100,
            max_total_chars=100,
        )
        assert context == ""
