"""Conversation compression via model-based summarization.

Compresses conversation history once it grows past a threshold:
- System messages are dropped (the prompt is rebuilt every turn)
- The most recent messages are kept verbatim (last 6 by default)
- Everything older is replaced by one summary note
- If the summary call fails, older messages are simply dropped
"""

from typing import Any

from app.context.models import ChatMessage, CompressedHistory
from app.core.llm import LLMProvider
from app.core.logging import get_logger

logger = get_logger(__name__)

SUMMARY_THRESHOLD = 10
KEEP_RECENT = 6
SUMMARY_MAX_TOKENS = 500
SUMMARY_TEMPERATURE = 0.3

SUMMARIZATION_PROMPT = """Summarize the following conversation concisely, preserving:
1. Key decisions made
2. Important context about tasks or planning
3. Any unresolved questions or action items

Keep the summary under 500 words."""


def _normalize_messages(messages: list[dict[str, Any] | ChatMessage]) -> list[ChatMessage]:
    """Convert rows to ChatMessage objects, skipping system messages."""
    result = []
    for msg in messages:
        if isinstance(msg, dict):
            msg = ChatMessage(role=msg.get("role", "user"), content=msg.get("content") or "")
        if msg.role == "system":
            continue
        result.append(msg)
    return result


async def compress_history(
    provider: LLMProvider,
    messages: list[dict[str, Any] | ChatMessage],
    threshold: int = SUMMARY_THRESHOLD,
    keep_recent: int = KEEP_RECENT,
    max_tokens: int = SUMMARY_MAX_TOKENS,
    temperature: float = SUMMARY_TEMPERATURE,
) -> CompressedHistory:
    """
    Compress conversation history by summarizing older messages.

    Args:
        provider: Model used for the summary call
        messages: Persisted message rows or ChatMessage objects, oldest first
        threshold: Compress only when more non-system messages than this
        keep_recent: Number of recent messages to keep verbatim
        max_tokens: Budget for the summary
        temperature: Sampling temperature for the summary

    Returns:
        CompressedHistory with summary (if any), recent messages and the
        tokens the summary call consumed
    """
    normalized = _normalize_messages(messages)

    if len(normalized) <= threshold:
        return CompressedHistory(recent_messages=normalized)

    older = normalized[:-keep_recent]
    recent = normalized[-keep_recent:]

    summary_request = [{"role": "system", "content": SUMMARIZATION_PROMPT}]
    summary_request.extend({"role": m.role, "content": m.content} for m in older)

    try:
        response = await provider.chat(
            summary_request,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.error(f"Failed to summarize {len(older)} messages, keeping last {keep_recent}: {e}")
        return CompressedHistory(
            recent_messages=recent,
            total_messages_summarized=0,
            degraded=True,
        )

    return CompressedHistory(
        summary=response.content.strip(),
        recent_messages=recent,
        total_messages_summarized=len(older),
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
    )
