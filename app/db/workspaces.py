"""Workspace read operations: members, tasks, time off."""

from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_workspace(workspace_id: str) -> dict[str, Any] | None:
    """Get a workspace row, or None if it does not exist."""
    supabase = get_supabase()
    response = (
        supabase.table("workspaces")
        .select("id, name")
        .eq("id", workspace_id)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def list_members(workspace_id: str) -> list[dict[str, Any]]:
    """
    List workspace members with their user profile.

    Returns:
        User rows (id, name, email, capacity_week_hours) ordered by name
    """
    supabase = get_supabase()

    roles = (
        supabase.table("workspace_members")
        .select("user_id")
        .eq("workspace_id", workspace_id)
        .execute()
    )
    user_ids = [r["user_id"] for r in roles.data or []]
    if not user_ids:
        return []

    users = (
        supabase.table("users")
        .select("id, name, email, capacity_week_hours")
        .in_("id", user_ids)
        .execute()
    )
    rows = users.data or []
    return sorted(rows, key=lambda u: (u.get("name") or u.get("email") or "").lower())


def get_member(workspace_id: str, user_id: str) -> dict[str, Any] | None:
    """Get one member of the workspace, or None if the user is not in it."""
    for member in list_members(workspace_id):
        if member["id"] == user_id:
            return member
    return None


def count_tasks(workspace_id: str, status: str | None = None) -> int:
    """Count tasks in a workspace, optionally restricted to one status."""
    supabase = get_supabase()
    query = supabase.table("tasks").select("id", count="exact").eq("workspace_id", workspace_id)
    if status:
        query = query.eq("status", status)
    response = query.execute()
    return response.count or 0


def list_tasks_starting_between(workspace_id: str, start: str, end: str) -> list[dict[str, Any]]:
    """Tasks whose start_date falls in ``[start, end)`` (ISO dates)."""
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("*")
        .eq("workspace_id", workspace_id)
        .gte("start_date", start)
        .lt("start_date", end)
        .execute()
    )
    return response.data or []


def count_tasks_due_between(workspace_id: str, start: str, end: str) -> int:
    """Count tasks due in ``[start, end]`` (ISO dates, inclusive)."""
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("id", count="exact")
        .eq("workspace_id", workspace_id)
        .gte("due_date", start)
        .lte("due_date", end)
        .execute()
    )
    return response.count or 0


def list_backlog_tasks(workspace_id: str) -> list[dict[str, Any]]:
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("*")
        .eq("workspace_id", workspace_id)
        .eq("status", "BACKLOG")
        .order("created_at")
        .execute()
    )
    return response.data or []


def list_tasks_by_ids(workspace_id: str, task_ids: list[str]) -> list[dict[str, Any]]:
    """Fetch tasks by id, scoped to the workspace."""
    if not task_ids:
        return []
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("*")
        .eq("workspace_id", workspace_id)
        .in_("id", task_ids)
        .execute()
    )
    return response.data or []


def list_task_dependencies(task_ids: list[str]) -> list[dict[str, Any]]:
    if not task_ids:
        return []
    supabase = get_supabase()
    response = (
        supabase.table("task_dependencies")
        .select("task_id, depends_on_task_id, type")
        .in_("task_id", task_ids)
        .execute()
    )
    return response.data or []


def list_user_tasks(workspace_id: str, user_id: str) -> list[dict[str, Any]]:
    """All tasks assigned to a user in the workspace."""
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("*")
        .eq("workspace_id", workspace_id)
        .eq("assigned_to_user_id", user_id)
        .execute()
    )
    return response.data or []


def list_time_off_overlapping(user_ids: list[str], start: str, end: str) -> list[dict[str, Any]]:
    """Time-off entries for the given users overlapping ``[start, end]``."""
    if not user_ids:
        return []
    supabase = get_supabase()
    response = (
        supabase.table("time_off")
        .select("user_id, date_from, date_to, type")
        .in_("user_id", user_ids)
        .gte("date_to", start)
        .lte("date_from", end)
        .order("date_from")
        .execute()
    )
    return response.data or []
