"""
LLM runner evals -- AgentSpec to provider call, streaming, JSON output, message conversion.
"""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from huddle.agents import OUTPUT_TEXT_DELTA, AgentSpec, LLMAgentRunner, RunResult, StreamedRun
from huddle.agents.runner import parse_json_output
from huddle.llm import LLMResponse, TokenUsage, create_client
from huddle.llm.client import _to_anthropic_messages, _to_openai_messages, is_retryable
from huddle.messages import PART_INPUT_FILE, PART_INPUT_IMAGE, ContentPart, InputItem


@pytest.fixture
def mock_llm():
    """Mock LLM client that returns configurable responses without API calls."""
    client = MagicMock()
    client.call = AsyncMock(return_value=LLMResponse(content="Notes.", model="mock-model"))

    async def stream(prompt, **kwargs):
        for delta in ("Hel", "lo"):
            yield delta

    client.stream = MagicMock(side_effect=stream)
    return client


class TestLLMAgentRunner:
    @pytest.mark.asyncio
    async def test_non_streaming_passes_agent_config(self, mock_llm):
        agent = AgentSpec(
            name="gtm", instructions="You are GTM.", tools=("web_search",), temperature=0.7
        )
        result = await LLMAgentRunner(mock_llm).run(agent, [InputItem.from_text("user", "hi")])

        assert isinstance(result, RunResult)
        assert result.final_output == "Notes."
        kwargs = mock_llm.call.call_args.kwargs
        assert kwargs["role"] == "gtm"
        assert kwargs["temperature"] == 0.7
        assert kwargs["tools"] == ("web_search",)
        prompt = mock_llm.call.call_args.args[0]
        assert prompt.system == "You are GTM."

    @pytest.mark.asyncio
    async def test_structured_output_parsed(self, mock_llm):
        mock_llm.call.return_value = LLMResponse(content='{"agentIds": ["gtm"]}')
        agent = AgentSpec(name="selector", instructions="x", output_schema={"type": "object"})
        result = await LLMAgentRunner(mock_llm).run(agent, [])
        assert result.final_output == {"agentIds": ["gtm"]}

    @pytest.mark.asyncio
    async def test_streaming_run(self, mock_llm):
        agent = AgentSpec(name="lead", instructions="x")
        streamed = await LLMAgentRunner(mock_llm).run(agent, [], stream=True)
        assert isinstance(streamed, StreamedRun)

        events = [e async for e in streamed]
        assert [e.delta for e in events if e.type == OUTPUT_TEXT_DELTA] == ["Hel", "lo"]
        assert streamed.is_complete
        assert streamed.final_output == "Hello"


class TestParseJsonOutput:
    def test_fenced(self):
        assert parse_json_output('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert parse_json_output('Sure! {"a": 1} Hope that helps.') == {"a": 1}

    def test_garbage_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_output("no json here")


class TestMessageConversion:
    ITEMS = [
        InputItem.from_text("assistant", "[Internal team briefing]"),
        InputItem(
            role="user",
            content=(
                ContentPart(type="input_text", text="Look"),
                ContentPart(type=PART_INPUT_IMAGE, url="https://f.example.com/a.png", detail="auto"),
                ContentPart(type=PART_INPUT_FILE, url="https://f.example.com/b.pdf", name="b.pdf"),
            ),
        ),
    ]

    def test_anthropic_opens_with_user_turn(self):
        messages = _to_anthropic_messages(self.ITEMS)
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert [b["type"] for b in messages[-1]["content"]] == ["text", "image", "document"]

    def test_openai_parts(self):
        messages = _to_openai_messages(self.ITEMS)
        assert messages[0] == {"role": "assistant", "content": "[Internal team briefing]"}
        parts = messages[1]["content"]
        assert parts[1] == {
            "type": "image_url",
            "image_url": {"url": "https://f.example.com/a.png", "detail": "auto"},
        }
        assert parts[2]["text"].startswith("[Attached file: b.pdf]")


class TestProviderClient:
    REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")

    def _status_error(self, cls, status):
        return cls("provider error", response=httpx.Response(status, request=self.REQUEST), body=None)

    def test_transient_errors_retryable(self):
        assert is_retryable(self._status_error(anthropic.RateLimitError, 429))
        assert is_retryable(self._status_error(anthropic.InternalServerError, 500))
        assert is_retryable(anthropic.APIConnectionError(request=self.REQUEST))
        assert is_retryable(httpx.ConnectError("refused"))

    def test_client_errors_not_retryable(self):
        assert not is_retryable(self._status_error(anthropic.BadRequestError, 400))
        assert not is_retryable(ValueError("bad schema"))

    def test_usage_priced_per_provider(self):
        usage = TokenUsage.priced("anthropic", 1000, 1000)
        assert usage.total_tokens == 2000
        assert usage.estimated_cost_usd == pytest.approx(0.018)

    def test_provider_from_environment(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("HUDDLE_LLM_PROVIDER", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("HUDDLE_LLM_MODEL", "gpt-4o-mini")
        client = create_client()
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            create_client(provider="gemini", api_key="k")
