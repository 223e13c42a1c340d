"""
Anthropic / OpenAI client used by every agent in a turn.

One client serves the selector, the consulted specialists and the lead:

  call()   -- one completion, optionally constrained to a JSON schema
  stream() -- text deltas for the lead's visible answer

    prompt = ChatPrompt(
        system="You are a pricing strategist...",
        items=[InputItem.from_text("user", "What should I charge?")],
    )
    response = await client.call(prompt, role="specialist", temperature=0.3)
    async for delta in client.stream(prompt, role="lead"):
        ...

Transient provider errors (429, 5xx, connection drops, timeouts) are retried
with exponential backoff. A stream is only retried before its first delta.
Once retries run out the client raises LLMCallError; the orchestrator
decides what degrades and what surfaces. API keys and prompt text are never
logged.
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import anthropic
import httpx
import openai

from ..messages import (
    PART_INPUT_FILE,
    PART_INPUT_IMAGE,
    ROLE_ASSISTANT,
    ContentPart,
    InputItem,
)
from ..security.prompt_guard import sanitize_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_PROMPT_LENGTH = 200_000
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

ANTHROPIC_TOOLS = {
    "web_search": {"type": "web_search_20250305", "name": "web_search", "max_uses": 5},
}


@dataclass(frozen=True)
class ProviderDefaults:
    key_env: str
    model: str
    usd_per_1k_input: float
    usd_per_1k_output: float


PROVIDERS = {
    "anthropic": ProviderDefaults("ANTHROPIC_API_KEY", "claude-sonnet-4-20250514", 0.003, 0.015),
    "openai": ProviderDefaults("OPENAI_API_KEY", "gpt-4o", 0.005, 0.015),
}


class LLMCallError(RuntimeError):
    """A provider call failed for good (non-retryable, or retries exhausted)."""


def is_retryable(error: Exception) -> bool:
    """Connection problems, timeouts, 429 and 5xx are worth another attempt."""
    if isinstance(error, (anthropic.APIConnectionError, openai.APIConnectionError, httpx.TransportError)):
        return True
    if isinstance(error, (anthropic.APIStatusError, openai.APIStatusError)):
        return error.status_code == 429 or error.status_code >= 500
    return False


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class ChatPrompt:
    """
    System instructions plus the ordered conversation items for one call.

    The system string is stable per agent and is marked cacheable where the
    provider supports it; items change every call.
    """

    system: str = ""
    items: list[InputItem] = field(default_factory=list)

    @property
    def total_length(self) -> int:
        return len(self.system) + sum(len(i.text) for i in self.items)


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def priced(cls, provider: str, input_tokens: int, output_tokens: int) -> "TokenUsage":
        rates = PROVIDERS[provider]
        cost = (
            input_tokens * rates.usd_per_1k_input + output_tokens * rates.usd_per_1k_output
        ) / 1000
        return cls(input_tokens, output_tokens, round(cost, 6))

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.estimated_cost_usd += other.estimated_cost_usd


@dataclass
class LLMResponse:
    """Response from a non-streaming call."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    Usage:
        client = LLMClient(provider="anthropic")
        response = await client.call(ChatPrompt(system=..., items=[...]), role="selector")
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ):
        self._provider = provider.lower()
        if self._provider not in PROVIDERS:
            raise ValueError(
                f"Unsupported provider: {provider} (expected one of {', '.join(PROVIDERS)})"
            )
        defaults = PROVIDERS[self._provider]
        self._model = model or defaults.model
        self._max_retries = max_retries
        self._max_prompt_length = max_prompt_length
        self._total_usage = TokenUsage()

        key = api_key or os.environ.get(defaults.key_env, "")
        if not key:
            logger.warning(f"[LLM] {defaults.key_env} not set -- calls will fail")

        # Retries happen here, so the SDKs' own retry loops are turned off.
        if self._provider == "anthropic":
            self._client: Any = anthropic.AsyncAnthropic(
                api_key=key, timeout=timeout, max_retries=0
            )
        else:
            self._client = openai.AsyncOpenAI(api_key=key, timeout=timeout, max_retries=0)

        logger.info(
            f"[LLM] Initialized {self._provider} client (model={self._model}, timeout={timeout}s)"
        )

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model

    @property
    def total_usage(self) -> TokenUsage:
        """Cumulative token usage across all calls in this client's lifetime."""
        return self._total_usage

    async def call(
        self,
        prompt: ChatPrompt,
        role: str = "assistant",
        model: str | None = None,
        temperature: float = 0.5,
        max_tokens: int = 4096,
        response_schema: dict | None = None,
        tools: tuple[str, ...] = (),
    ) -> LLMResponse:
        """
        One completion, retried on transient errors.

        Args:
            prompt: System instructions plus conversation items.
            role: Agent name, used in logs only.
            model: Per-agent model override.
            temperature: Sampling temperature.
            max_tokens: Output token cap.
            response_schema: JSON schema the output must satisfy.
            tools: Hosted tool names the agent may use (e.g. "web_search").

        Raises:
            LLMCallError: non-retryable error, or the last retry failed.
        """
        prompt = self._bounded(prompt)
        model = model or self._model
        started = time.monotonic()
        attempt = 0

        while True:
            try:
                if self._provider == "anthropic":
                    response = await self._call_anthropic(
                        prompt, model, temperature, max_tokens, response_schema, tools
                    )
                else:
                    response = await self._call_openai(
                        prompt, model, temperature, max_tokens, response_schema
                    )
                break
            except Exception as e:
                if not is_retryable(e) or attempt >= self._max_retries:
                    logger.error(
                        f"[LLM] {role} call failed after {attempt + 1} attempt(s): "
                        f"{type(e).__name__}"
                    )
                    raise LLMCallError(f"{type(e).__name__}: {e}") from e
                await self._backoff(attempt, e)
                attempt += 1

        response.latency_ms = (time.monotonic() - started) * 1000
        self._total_usage.add(response.usage)
        logger.debug(
            f"[LLM] {self._provider}/{role}: {response.usage.input_tokens}in + "
            f"{response.usage.output_tokens}out "
            f"${response.usage.estimated_cost_usd:.4f} ({response.latency_ms:.0f}ms)"
        )
        return response

    async def stream(
        self,
        prompt: ChatPrompt,
        role: str = "assistant",
        model: str | None = None,
        temperature: float = 0.5,
        max_tokens: int = 4096,
        tools: tuple[str, ...] = (),
    ) -> AsyncIterator[str]:
        """
        Text deltas as the provider produces them.

        A failure after the first delta is raised at once: the caller has
        already forwarded partial text and a retry would duplicate it.
        """
        prompt = self._bounded(prompt)
        model = model or self._model
        attempt = 0

        while True:
            emitted = False
            try:
                if self._provider == "anthropic":
                    deltas = self._stream_anthropic(prompt, model, temperature, max_tokens, tools)
                else:
                    deltas = self._stream_openai(prompt, model, temperature, max_tokens)
                async for delta in deltas:
                    emitted = True
                    yield delta
                return
            except Exception as e:
                if emitted or not is_retryable(e) or attempt >= self._max_retries:
                    logger.error(f"[LLM] {role} stream failed: {type(e).__name__}")
                    raise LLMCallError(f"{type(e).__name__}: {e}") from e
                await self._backoff(attempt, e)
                attempt += 1

    async def _backoff(self, attempt: int, error: Exception) -> None:
        delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
        logger.warning(
            f"[LLM] Retryable {type(error).__name__} (attempt {attempt + 1}), "
            f"retrying in {delay:.1f}s"
        )
        await asyncio.sleep(delay)

    def _bounded(self, prompt: ChatPrompt) -> ChatPrompt:
        """Copy of prompt with NULs stripped and every text part capped."""
        limit = self._max_prompt_length // 2
        items = [
            InputItem(
                role=item.role,
                content=tuple(
                    ContentPart(
                        type=p.type,
                        text=sanitize_for_prompt(p.text, max_length=limit),
                        url=p.url,
                        detail=p.detail,
                        name=p.name,
                    )
                    if p.is_text
                    else p
                    for p in item.content
                ),
            )
            for item in prompt.items
        ]
        return ChatPrompt(system=sanitize_for_prompt(prompt.system, max_length=limit), items=items)

    # -------------------------------------------------------------------------
    # Anthropic
    # -------------------------------------------------------------------------

    def _anthropic_request(
        self,
        prompt: ChatPrompt,
        model: str,
        temperature: float,
        max_tokens: int,
        tools: tuple[str, ...],
        response_schema: dict | None = None,
    ) -> dict:
        # Anthropic has no native JSON-schema mode; the schema goes in the system text.
        system = prompt.system
        if response_schema is not None:
            system = (
                f"{system}\n\nRespond with a single JSON object that matches this "
                f"JSON schema, and nothing else:\n{json.dumps(response_schema)}"
            )

        request: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": _to_anthropic_messages(prompt.items),
        }
        if system:
            request["system"] = [
                {"type": "text", "text": system, "cache_control": {"type": "ephemeral"}}
            ]
        hosted = [ANTHROPIC_TOOLS[t] for t in tools if t in ANTHROPIC_TOOLS]
        if hosted:
            request["tools"] = hosted
        return request

    async def _call_anthropic(
        self,
        prompt: ChatPrompt,
        model: str,
        temperature: float,
        max_tokens: int,
        response_schema: dict | None,
        tools: tuple[str, ...],
    ) -> LLMResponse:
        message = await self._client.messages.create(
            **self._anthropic_request(prompt, model, temperature, max_tokens, tools, response_schema)
        )
        text = "".join(
            getattr(block, "text", "")
            for block in message.content
            if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            content=text,
            usage=_anthropic_usage(message.usage),
            model=model,
            provider="anthropic",
        )

    async def _stream_anthropic(
        self,
        prompt: ChatPrompt,
        model: str,
        temperature: float,
        max_tokens: int,
        tools: tuple[str, ...],
    ) -> AsyncIterator[str]:
        request = self._anthropic_request(prompt, model, temperature, max_tokens, tools)
        async with self._client.messages.stream(**request) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text
            final = await stream.get_final_message()
        self._total_usage.add(_anthropic_usage(final.usage))

    # -------------------------------------------------------------------------
    # OpenAI
    # -------------------------------------------------------------------------

    async def _call_openai(
        self,
        prompt: ChatPrompt,
        model: str,
        temperature: float,
        max_tokens: int,
        response_schema: dict | None,
    ) -> LLMResponse:
        extra: dict[str, Any] = {}
        if response_schema is not None:
            extra["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "structured_output", "schema": response_schema},
            }
        completion = await self._client.chat.completions.create(
            model=model,
            messages=_openai_request_messages(prompt),
            temperature=temperature,
            max_tokens=max_tokens,
            **extra,
        )
        return LLMResponse(
            content=completion.choices[0].message.content or "",
            usage=_openai_usage(completion.usage),
            model=model,
            provider="openai",
        )

    async def _stream_openai(
        self,
        prompt: ChatPrompt,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        chunks = await self._client.chat.completions.create(
            model=model,
            messages=_openai_request_messages(prompt),
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
            stream_options={"include_usage": True},
        )
        async for chunk in chunks:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content
            if getattr(chunk, "usage", None):
                self._total_usage.add(_openai_usage(chunk.usage))


def _anthropic_usage(usage: Any) -> TokenUsage:
    return TokenUsage.priced(
        "anthropic",
        getattr(usage, "input_tokens", 0) or 0,
        getattr(usage, "output_tokens", 0) or 0,
    )


def _openai_usage(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    return TokenUsage.priced("openai", usage.prompt_tokens or 0, usage.completion_tokens or 0)


# =============================================================================
# MESSAGE CONVERSION
# =============================================================================


def _to_anthropic_messages(items: list[InputItem]) -> list[dict]:
    messages = []
    for item in items:
        if item.role == ROLE_ASSISTANT:
            messages.append({"role": "assistant", "content": item.text or "(no content)"})
            continue

        blocks: list[dict] = []
        for part in item.content:
            if part.is_text and part.text:
                blocks.append({"type": "text", "text": part.text})
            elif part.type == PART_INPUT_IMAGE:
                blocks.append({"type": "image", "source": {"type": "url", "url": part.url}})
            elif part.type == PART_INPUT_FILE:
                blocks.append({"type": "document", "source": {"type": "url", "url": part.url}})
        if not blocks:
            blocks.append({"type": "text", "text": "(no content)"})
        messages.append({"role": "user", "content": blocks})

    # Anthropic requires the conversation to open with a user turn.
    if messages and messages[0]["role"] == "assistant":
        messages.insert(0, {"role": "user", "content": "(continuing conversation)"})
    return messages


def _to_openai_messages(items: list[InputItem]) -> list[dict]:
    messages = []
    for item in items:
        if item.role == ROLE_ASSISTANT:
            messages.append({"role": "assistant", "content": item.text})
            continue

        parts: list[dict] = []
        for part in item.content:
            if part.is_text and part.text:
                parts.append({"type": "text", "text": part.text})
            elif part.type == PART_INPUT_IMAGE:
                parts.append({
                    "type": "image_url",
                    "image_url": {"url": part.url, "detail": part.detail or "auto"},
                })
            elif part.type == PART_INPUT_FILE:
                label = part.name or "uploaded_file"
                parts.append({"type": "text", "text": f"[Attached file: {label}] {part.url}"})
        messages.append({"role": "user", "content": parts or ""})
    return messages


def _openai_request_messages(prompt: ChatPrompt) -> list[dict]:
    system = [{"role": "system", "content": prompt.system}] if prompt.system else []
    return system + _to_openai_messages(prompt.items)


# =============================================================================
# FACTORY
# =============================================================================


def create_client(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    **kwargs,
) -> LLMClient:
    """
    Build a client, picking the provider from the environment when not given.

      1. provider argument, else HUDDLE_LLM_PROVIDER
      2. ANTHROPIC_API_KEY set -> anthropic
      3. OPENAI_API_KEY set -> openai
      4. anthropic (calls fail until a key is set)

    HUDDLE_LLM_MODEL overrides the provider's default model.
    """
    provider = provider or os.environ.get("HUDDLE_LLM_PROVIDER", "").strip() or None
    if provider is None:
        if os.environ.get("ANTHROPIC_API_KEY"):
            provider = "anthropic"
        elif os.environ.get("OPENAI_API_KEY"):
            provider = "openai"
        else:
            provider = "anthropic"
            logger.warning("[LLM] No API key found. Defaulting to anthropic.")

    model = model or os.environ.get("HUDDLE_LLM_MODEL", "").strip() or None
    return LLMClient(provider=provider, model=model, api_key=api_key, **kwargs)
