"""Database operations for monthly AI token counters."""

from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_usage_row(workspace_id: str, month: str) -> dict[str, Any] | None:
    """Counter row for (workspace, month), or None."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_usage")
        .select("*")
        .eq("workspace_id", workspace_id)
        .eq("month", month)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def create_usage_row(workspace_id: str, month: str) -> dict[str, Any]:
    """Insert a zeroed counter row, or return the existing one on conflict."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_usage")
        .upsert(
            {
                "workspace_id": workspace_id,
                "month": month,
                "input_tokens_used": 0,
                "output_tokens_used": 0,
                "request_count": 0,
            },
            on_conflict="workspace_id,month",
            ignore_duplicates=True,
        )
        .execute()
    )
    if response.data:
        return response.data[0]
    # ignore_duplicates returns nothing when the row already existed
    existing = get_usage_row(workspace_id, month)
    if existing is None:
        raise ValueError(f"Failed to create usage row for workspace {workspace_id}")
    return existing


def write_usage_counts(
    workspace_id: str,
    month: str,
    input_tokens_used: int,
    output_tokens_used: int,
    request_count: int,
) -> dict[str, Any] | None:
    """Overwrite the counters of an existing row."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_usage")
        .update({
            "input_tokens_used": input_tokens_used,
            "output_tokens_used": output_tokens_used,
            "request_count": request_count,
        })
        .eq("workspace_id", workspace_id)
        .eq("month", month)
        .execute()
    )
    return response.data[0] if response.data else None
