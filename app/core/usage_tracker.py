"""Per-workspace monthly token budgeting.

Counters are read-then-written, so two turns finishing at the same moment on
one workspace can lose an increment. The pre-flight check is a budget guard,
not a hard boundary.
"""

import logging
from dataclasses import dataclass
from datetime import date

from app.core.logging import get_logger, log_with_context
from app.core.schemas_ai import UsageCounter
from app.db.ai_settings import get_ai_settings
from app.db.ai_usage import create_usage_row, get_usage_row, write_usage_counts

logger = get_logger(__name__)

# Pricing per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-4o": (2.50, 10.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1-mini": (0.40, 1.60),
    # Anthropic
    "claude-3-5-haiku-20241022": (0.80, 4.0),
    "claude-haiku-4-5-20251001": (1.0, 5.0),
    "claude-sonnet-4-5-20250929": (3.0, 15.0),
}


@dataclass
class UsageCheck:
    allowed: bool
    used: int
    limit: int


def current_month_start(today: date | None = None) -> str:
    """First day of the current month as an ISO date string."""
    today = today or date.today()
    return today.replace(day=1).isoformat()


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate cost in USD based on model pricing."""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        # Dated variants share the price of their longest known prefix
        for key in sorted(MODEL_PRICING, key=len, reverse=True):
            if model.startswith(key):
                pricing = MODEL_PRICING[key]
                break
    if not pricing:
        return 0.0

    input_rate, output_rate = pricing
    cost = (input_tokens * input_rate / 1_000_000) + (output_tokens * output_rate / 1_000_000)
    return round(cost, 6)


def get_current_usage(workspace_id: str) -> UsageCounter:
    """This month's counters for a workspace, creating a zeroed row if absent."""
    month = current_month_start()
    row = get_usage_row(workspace_id, month)
    if row is None:
        row = create_usage_row(workspace_id, month)
    return UsageCounter(
        workspace_id=workspace_id,
        month=month,
        input_tokens_used=row.get("input_tokens_used") or 0,
        output_tokens_used=row.get("output_tokens_used") or 0,
        request_count=row.get("request_count") or 0,
    )


def get_monthly_limit(workspace_id: str, default_limit: int) -> int:
    """Workspace-specific token limit, falling back to the configured default."""
    settings_row = get_ai_settings(workspace_id)
    if settings_row and settings_row.get("monthly_token_limit"):
        return int(settings_row["monthly_token_limit"])
    return default_limit


def check_usage_limit(workspace_id: str, default_limit: int) -> UsageCheck:
    """
    Pre-flight budget check.

    Args:
        workspace_id: Workspace to check
        default_limit: Limit used when the workspace has none configured

    Returns:
        UsageCheck with ``allowed = used < limit``
    """
    usage = get_current_usage(workspace_id)
    limit = get_monthly_limit(workspace_id, default_limit)
    used = usage.total_tokens
    return UsageCheck(allowed=used < limit, used=used, limit=limit)


def increment_usage(
    workspace_id: str,
    input_tokens: int,
    output_tokens: int,
    model: str | None = None,
) -> UsageCounter:
    """
    Add one turn's tokens to this month's counters and count one request.

    Returns:
        The counters after the increment
    """
    current = get_current_usage(workspace_id)
    updated = current.model_copy(update={
        "input_tokens_used": current.input_tokens_used + input_tokens,
        "output_tokens_used": current.output_tokens_used + output_tokens,
        "request_count": current.request_count + 1,
    })
    write_usage_counts(
        workspace_id,
        current.month,
        updated.input_tokens_used,
        updated.output_tokens_used,
        updated.request_count,
    )

    log_with_context(
        logger,
        logging.DEBUG,
        "AI usage incremented",
        workspace_id=workspace_id,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_cost_usd=estimate_cost(model, input_tokens, output_tokens) if model else 0.0,
    )
    return updated
