"""Database operations for per-workspace AI settings."""

from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

DEFAULT_AI_SETTINGS: dict[str, Any] = {
    "enabled": True,
    "preferred_provider": "openai",
    "preferred_model": "gpt-4o-mini",
    "monthly_token_limit": None,
}


def get_ai_settings(workspace_id: str) -> dict[str, Any] | None:
    """Stored settings row for a workspace, or None when never configured."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_settings")
        .select("*")
        .eq("workspace_id", workspace_id)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def upsert_ai_settings(workspace_id: str, updates: dict[str, Any]) -> dict[str, Any]:
    """
    Create or update a workspace's settings.

    Fields missing from ``updates`` keep their stored value, or the defaults
    when the row does not exist yet.

    Returns:
        The stored settings row
    """
    existing = get_ai_settings(workspace_id)
    base = {**DEFAULT_AI_SETTINGS, **(existing or {})}
    data = {**base, **{k: v for k, v in updates.items() if v is not None}, "workspace_id": workspace_id}
    data.pop("id", None)

    supabase = get_supabase()
    try:
        response = (
            supabase.table("ai_settings")
            .upsert(data, on_conflict="workspace_id")
            .execute()
        )
        if not response.data:
            raise ValueError("No data returned from upsert_ai_settings")
        logger.info(f"Updated AI settings for workspace {workspace_id}")
        return response.data[0]
    except Exception as e:
        logger.error(f"Failed to upsert AI settings for workspace {workspace_id}: {e}")
        raise
