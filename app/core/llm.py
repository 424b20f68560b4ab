"""Model provider adapters.

Every chat-completion backend is wrapped behind ``LLMProvider.chat`` so the
orchestrator never touches an SDK directly. Transcript messages are plain
dicts::

    {"role": "system" | "user" | "assistant" | "tool", "content": str}

Assistant messages may carry ``tool_calls`` (a list of ``ToolCall``) and tool
messages carry ``tool_call_id``. SDK failures surface as ``ProviderError``;
there are no retries here.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import anthropic
import openai

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, ProviderError
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ToolCall:
    """A model request to run a registered tool."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ChatResponse:
    """One provider round trip."""

    content: str
    usage: ChatUsage
    model: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class FunctionDefinition:
    name: str
    description: str
    parameters: dict[str, Any]


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    """Decode tool-call arguments, tolerating malformed JSON from the model."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding unparseable tool arguments: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class LLMProvider(ABC):
    """Uniform chat interface over a model backend."""

    name: str = "base"

    def __init__(self, default_model: str):
        self.default_model = default_model

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[FunctionDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        model: str | None = None,
    ) -> ChatResponse:
        """Send a transcript and return the model's reply."""

    @abstractmethod
    def available_models(self) -> list[str]:
        """Models this provider can serve."""


class OpenAIProvider(LLMProvider):
    """Chat completions via the OpenAI API."""

    name = "openai"

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini"):
        super().__init__(default_model)
        self.client = openai.AsyncOpenAI(api_key=api_key)

    @staticmethod
    def _to_openai_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        converted = []
        for msg in messages:
            role = msg["role"]
            if role == "tool":
                converted.append({
                    "role": "tool",
                    "content": msg["content"],
                    "tool_call_id": msg["tool_call_id"],
                })
            elif role == "assistant" and msg.get("tool_calls"):
                converted.append({
                    "role": "assistant",
                    "content": msg.get("content") or None,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                        }
                        for tc in msg["tool_calls"]
                    ],
                })
            else:
                converted.append({"role": role, "content": msg["content"]})
        return converted

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[FunctionDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        model: str | None = None,
    ) -> ChatResponse:
        request: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": self._to_openai_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            request["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]

        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e

        message = response.choices[0].message if response.choices else None
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in ((message.tool_calls or []) if message else [])
            if tc.type == "function"
        ]
        usage = response.usage
        return ChatResponse(
            content=(message.content if message else None) or "",
            usage=ChatUsage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
            model=response.model,
            tool_calls=tool_calls,
        )

    def available_models(self) -> list[str]:
        return ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini"]


class AnthropicProvider(LLMProvider):
    """Messages API via Anthropic.

    Anthropic takes a single system string, so every system message in the
    transcript (including mid-turn context injections) is folded into it in
    order. Tool results go back as ``tool_result`` blocks in a user turn.
    """

    name = "anthropic"

    def __init__(self, api_key: str, default_model: str = "claude-3-5-haiku-20241022"):
        super().__init__(default_model)
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    @staticmethod
    def _to_anthropic_messages(
        messages: list[dict[str, Any]],
    ) -> tuple[str, list[dict[str, Any]]]:
        system_parts: list[str] = []
        converted: list[dict[str, Any]] = []

        for msg in messages:
            role = msg["role"]
            if role == "system":
                system_parts.append(msg["content"])
            elif role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg["tool_call_id"],
                    "content": msg["content"],
                }
                # Consecutive tool results share one user turn
                if converted and converted[-1]["role"] == "user" and isinstance(converted[-1]["content"], list):
                    converted[-1]["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
            elif role == "assistant" and msg.get("tool_calls"):
                blocks: list[dict[str, Any]] = []
                if msg.get("content"):
                    blocks.append({"type": "text", "text": msg["content"]})
                for tc in msg["tool_calls"]:
                    blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments})
                converted.append({"role": "assistant", "content": blocks})
            else:
                converted.append({"role": role, "content": msg["content"]})

        return "\n\n".join(system_parts), converted

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[FunctionDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        model: str | None = None,
    ) -> ChatResponse:
        system, converted = self._to_anthropic_messages(messages)
        request: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": converted,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]

        try:
            response = await self.client.messages.create(**request)
        except anthropic.AnthropicError as e:
            raise ProviderError(f"Anthropic request failed: {e}") from e

        text = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        return ChatResponse(
            content=text,
            usage=ChatUsage(
                input_tokens=getattr(response.usage, "input_tokens", 0) or 0,
                output_tokens=getattr(response.usage, "output_tokens", 0) or 0,
            ),
            model=response.model,
            tool_calls=tool_calls,
        )

    def available_models(self) -> list[str]:
        return ["claude-3-5-haiku-20241022", "claude-sonnet-4-5-20250929", "claude-haiku-4-5-20251001"]


def build_provider(
    settings: Settings,
    provider_name: str | None = None,
    model: str | None = None,
) -> LLMProvider:
    """
    Construct a provider instance from settings.

    Args:
        settings: Application settings
        provider_name: Override for AI_DEFAULT_PROVIDER (e.g. a workspace preference)
        model: Override for AI_DEFAULT_MODEL

    Returns:
        A fresh provider; callers own it, nothing is cached here

    Raises:
        ConfigurationError: If the provider is unknown or has no API key
    """
    name = (provider_name or settings.AI_DEFAULT_PROVIDER or "").lower()

    if name == "openai":
        if not settings.OPENAI_API_KEY:
            raise ConfigurationError("OpenAI provider selected but OPENAI_API_KEY is not set")
        return OpenAIProvider(settings.OPENAI_API_KEY, model or settings.AI_DEFAULT_MODEL)

    if name == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise ConfigurationError("Anthropic provider selected but ANTHROPIC_API_KEY is not set")
        return AnthropicProvider(settings.ANTHROPIC_API_KEY, model or "claude-3-5-haiku-20241022")

    raise ConfigurationError(f"Unknown AI provider: {name or '<unset>'}")
