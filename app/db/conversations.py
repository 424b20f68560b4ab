"""Database operations for AI conversations and their messages."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

UNTITLED_CONVERSATION = "Untitled conversation"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Conversations
# ============================================================================


def create_conversation(
    workspace_id: str,
    user_id: str,
    title: str | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    """
    Create a conversation bound to a workspace and its creator.

    Returns:
        Created conversation row

    Raises:
        ValueError: If the insert returned no row
    """
    supabase = get_supabase()
    now = _now_iso()
    data = {
        "workspace_id": workspace_id,
        "created_by_user_id": user_id,
        "title": title,
        "project_id": project_id,
        "is_archived": False,
        "created_at": now,
        "updated_at": now,
    }
    try:
        response = supabase.table("ai_conversations").insert(data).execute()
        if not response.data:
            raise ValueError("No data returned from create_conversation")
        conversation = response.data[0]
        logger.info(
            f"Created conversation {conversation['id']}",
            extra={"conversation_id": conversation["id"], "workspace_id": workspace_id},
        )
        return conversation
    except Exception as e:
        logger.error(f"Failed to create conversation in workspace {workspace_id}: {e}")
        raise


def get_conversation(conversation_id: str) -> dict[str, Any] | None:
    """Get a conversation by id, or None."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_conversations")
        .select("*")
        .eq("id", conversation_id)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def list_conversations(
    workspace_id: str,
    user_id: str | None = None,
    include_archived: bool = False,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """
    List conversations in a workspace, most recently updated first.

    Args:
        workspace_id: Workspace to list
        user_id: Restrict to conversations created by this user
        include_archived: Include archived conversations
        limit: Max rows

    Returns:
        Conversation rows
    """
    supabase = get_supabase()
    query = supabase.table("ai_conversations").select("*").eq("workspace_id", workspace_id)
    if user_id:
        query = query.eq("created_by_user_id", user_id)
    if not include_archived:
        query = query.eq("is_archived", False)
    response = query.order("updated_at", desc=True).limit(limit).execute()
    return response.data or []


def update_conversation(conversation_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
    """
    Update title, archived flag or project binding.

    Returns:
        Updated row, or None if the conversation does not exist
    """
    allowed = {k: v for k, v in updates.items() if k in ("title", "is_archived", "project_id")}
    allowed["updated_at"] = _now_iso()

    supabase = get_supabase()
    response = (
        supabase.table("ai_conversations")
        .update(allowed)
        .eq("id", conversation_id)
        .execute()
    )
    return response.data[0] if response.data else None


def delete_conversation(conversation_id: str) -> bool:
    """Delete a conversation and its messages. Returns False if nothing was deleted."""
    supabase = get_supabase()
    supabase.table("ai_messages").delete().eq("conversation_id", conversation_id).execute()
    response = supabase.table("ai_conversations").delete().eq("id", conversation_id).execute()
    deleted = bool(response.data)
    if deleted:
        logger.info(f"Deleted conversation {conversation_id}")
    return deleted


def list_project_conversation_titles(project_id: str, limit: int = 5) -> list[str]:
    """Titles of the most recent non-archived conversations bound to a project."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_conversations")
        .select("title, updated_at")
        .eq("project_id", project_id)
        .eq("is_archived", False)
        .order("updated_at", desc=True)
        .limit(limit)
        .execute()
    )
    return [row.get("title") or UNTITLED_CONVERSATION for row in response.data or []]


# ============================================================================
# Messages
# ============================================================================


def list_messages(conversation_id: str) -> list[dict[str, Any]]:
    """All messages of a conversation in append order."""
    supabase = get_supabase()
    response = (
        supabase.table("ai_messages")
        .select("*")
        .eq("conversation_id", conversation_id)
        .order("created_at")
        .execute()
    )
    return response.data or []


def add_message(
    conversation_id: str,
    role: str,
    content: str,
    structured_data: dict[str, Any] | None = None,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
    model: str | None = None,
) -> dict[str, Any]:
    """
    Append a message and bump the conversation's updated_at.

    Messages are never updated after this insert.

    Returns:
        Created message row
    """
    supabase = get_supabase()
    data = {
        "conversation_id": conversation_id,
        "role": role,
        "content": content,
        "structured_data": structured_data,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "model": model,
        "created_at": _now_iso(),
    }
    try:
        response = supabase.table("ai_messages").insert(data).execute()
        if not response.data:
            raise ValueError("No data returned from add_message")
    except Exception as e:
        logger.error(f"Failed to add {role} message to conversation {conversation_id}: {e}")
        raise

    supabase.table("ai_conversations").update({"updated_at": _now_iso()}).eq(
        "id", conversation_id
    ).execute()
    return response.data[0]
