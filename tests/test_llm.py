"""Tests for provider adapters and provider construction."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import openai
import pytest

from app.core.config import get_settings
from app.core.exceptions import ConfigurationError, ProviderError
from app.core.llm import (
    AnthropicProvider,
    FunctionDefinition,
    OpenAIProvider,
    ToolCall,
    build_provider,
)

TRANSCRIPT = [
    {"role": "system", "content": "You are helpful"},
    {"role": "user", "content": "Who is overloaded?"},
    {
        "role": "assistant",
        "content": "",
        "tool_calls": [
            ToolCall(id="c1", name="get_overloaded_users", arguments={}),
            ToolCall(id="c2", name="get_team_capacity", arguments={"weekStart": "2025-03-10"}),
        ],
    },
    {"role": "tool", "tool_call_id": "c1", "content": '{"success": true}'},
    {"role": "tool", "tool_call_id": "c2", "content": '{"success": true}'},
    {"role": "system", "content": "Injected context"},
]

TOOLS = [FunctionDefinition(name="get_team_capacity", description="Capacity", parameters={"type": "object"})]


# ──────────────────────────────────────────────────────────────────────
# build_provider
# ──────────────────────────────────────────────────────────────────────


class TestBuildProvider:
    def test_openai_default(self):
        provider = build_provider(get_settings())
        assert isinstance(provider, OpenAIProvider)
        assert provider.default_model == "gpt-4o-mini"

    def test_missing_key(self):
        settings = get_settings().model_copy(update={"OPENAI_API_KEY": None})
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            build_provider(settings)

    def test_anthropic_override(self):
        settings = get_settings().model_copy(update={"ANTHROPIC_API_KEY": "test-anthropic-key"})
        provider = build_provider(settings, provider_name="anthropic", model="claude-sonnet-4-5-20250929")
        assert isinstance(provider, AnthropicProvider)
        assert provider.default_model == "claude-sonnet-4-5-20250929"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown AI provider: mistral"):
            build_provider(get_settings(), provider_name="mistral")

    def test_fresh_instance_each_time(self):
        settings = get_settings()
        assert build_provider(settings) is not build_provider(settings)


# ──────────────────────────────────────────────────────────────────────
# OpenAI
# ──────────────────────────────────────────────────────────────────────


class TestOpenAIProvider:
    def test_message_conversion(self):
        converted = OpenAIProvider._to_openai_messages(TRANSCRIPT)

        assert converted[2]["content"] is None
        assert converted[2]["tool_calls"][1] == {
            "id": "c2",
            "type": "function",
            "function": {"name": "get_team_capacity", "arguments": '{"weekStart": "2025-03-10"}'},
        }
        assert converted[3] == {"role": "tool", "content": '{"success": true}', "tool_call_id": "c1"}
        assert converted[5] == {"role": "system", "content": "Injected context"}

    @pytest.mark.asyncio
    async def test_chat_parses_tool_calls(self):
        provider = OpenAIProvider("test-key")
        completion = SimpleNamespace(
            choices=[
                SimpleNamespace(
                    message=SimpleNamespace(
                        content=None,
                        tool_calls=[
                            SimpleNamespace(
                                id="call_1",
                                type="function",
                                function=SimpleNamespace(name="get_team_capacity", arguments='{"weekStart": "2025-03-10"}'),
                            ),
                            SimpleNamespace(
                                id="call_2",
                                type="function",
                                function=SimpleNamespace(name="get_backlog_tasks", arguments="{not json"),
                            ),
                        ],
                    )
                )
            ],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=15),
            model="gpt-4o-mini-2024-07-18",
        )
        provider.client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=completion)))
        )

        response = await provider.chat(TRANSCRIPT[:2], tools=TOOLS, temperature=0.2, max_tokens=300)

        assert response.content == ""
        assert [tc.arguments for tc in response.tool_calls] == [{"weekStart": "2025-03-10"}, {}]
        assert (response.usage.input_tokens, response.usage.output_tokens) == (120, 15)
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["tools"][0]["function"]["name"] == "get_team_capacity"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 300

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_provider_error(self):
        provider = OpenAIProvider("test-key")
        provider.client = SimpleNamespace(
            chat=SimpleNamespace(
                completions=SimpleNamespace(create=AsyncMock(side_effect=openai.OpenAIError("rate limited")))
            )
        )

        with pytest.raises(ProviderError, match="rate limited"):
            await provider.chat(TRANSCRIPT[:2])


# ──────────────────────────────────────────────────────────────────────
# Anthropic
# ──────────────────────────────────────────────────────────────────────


class TestAnthropicProvider:
    def test_message_conversion(self):
        system, converted = AnthropicProvider._to_anthropic_messages(TRANSCRIPT)

        assert system == "You are helpful\n\nInjected context"
        assert converted[0] == {"role": "user", "content": "Who is overloaded?"}
        assert [b["type"] for b in converted[1]["content"]] == ["tool_use", "tool_use"]
        # Both tool results share one user turn
        assert len(converted) == 3
        assert [b["tool_use_id"] for b in converted[2]["content"]] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_chat_parses_blocks(self):
        provider = AnthropicProvider("test-key")
        message = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Checking capacity."),
                SimpleNamespace(type="tool_use", id="tu_1", name="get_team_capacity", input={}),
            ],
            usage=SimpleNamespace(input_tokens=90, output_tokens=12),
            model="claude-3-5-haiku-20241022",
        )
        provider.client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=message)))

        response = await provider.chat(TRANSCRIPT[:2], tools=TOOLS)

        assert response.content == "Checking capacity."
        assert response.tool_calls == [ToolCall(id="tu_1", name="get_team_capacity", arguments={})]
        kwargs = provider.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are helpful"
        assert kwargs["tools"][0]["input_schema"] == {"type": "object"}

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_provider_error(self):
        provider = AnthropicProvider("test-key")
        provider.client = SimpleNamespace(
            messages=SimpleNamespace(create=AsyncMock(side_effect=anthropic.AnthropicError("overloaded")))
        )

        with pytest.raises(ProviderError):
            await provider.chat(TRANSCRIPT[:2])
