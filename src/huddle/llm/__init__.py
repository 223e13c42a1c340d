"""
LLM Client -- Provider-agnostic wrapper with streaming and structured output.

Supports Anthropic (Claude) and OpenAI (GPT). Provider and model come from
the environment (HUDDLE_LLM_PROVIDER, HUDDLE_LLM_MODEL, API keys).

Usage:
    from .llm import create_client, ChatPrompt

    client = create_client()  # Auto-detects provider from env
    response = await client.call(ChatPrompt(system="...", items=items), role="selector")
    async for delta in client.stream(prompt, role="lead"):
        print(delta, end="")
"""

from .client import ChatPrompt, LLMCallError, LLMClient, LLMResponse, TokenUsage, create_client
