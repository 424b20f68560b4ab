"""Leveled workspace snapshots for the system prompt.

``minimal`` carries only the summary counters. ``scheduling`` adds team
capacity, this week's tasks and upcoming time off; ``backlog`` adds the
backlog; ``full`` adds both. Weeks run Monday to Sunday.
"""

import asyncio
from datetime import date, timedelta
from typing import Any

from app.context.models import (
    ContextLevel,
    DetailedContext,
    TaskSummary,
    TeamMemberCapacity,
    TimeOffEntry,
    WorkspaceContext,
    WorkspaceSummary,
)
from app.core.logging import get_logger
from app.db.workspaces import (
    count_tasks,
    count_tasks_due_between,
    get_workspace,
    list_backlog_tasks,
    list_members,
    list_tasks_starting_between,
    list_time_off_overlapping,
)

logger = get_logger(__name__)

PRIORITY_RANK = {"CRITICAL": 4, "HIGH": 3, "MED": 2, "LOW": 1}

DEFAULT_BACKLOG_LIMIT = 50
TIME_OFF_HORIZON_DAYS = 30
DEADLINE_HORIZON_DAYS = 7


def week_bounds(week_start: date | str | None = None) -> tuple[date, date]:
    """
    Monday of the week containing ``week_start`` (default today) and the following Monday.
    """
    if isinstance(week_start, str):
        week_start = date.fromisoformat(week_start[:10])
    day = week_start or date.today()
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=7)


def sort_by_priority(tasks: list[TaskSummary]) -> list[TaskSummary]:
    """Highest priority first, stable within a priority."""
    return sorted(tasks, key=lambda t: -PRIORITY_RANK.get(t.priority, 0))


def _to_task_summary(row: dict[str, Any], names: dict[str, str]) -> TaskSummary:
    assignee_id = row.get("assigned_to_user_id")
    return TaskSummary(
        id=row["id"],
        key=row.get("key"),
        title=row.get("title") or "",
        priority=row.get("priority") or "MED",
        status=row.get("status"),
        estimated_hours=row.get("estimated_hours") or 0,
        assignee_id=assignee_id,
        assignee_name=names.get(assignee_id) if assignee_id else None,
        start_date=row.get("start_date"),
        due_date=row.get("due_date"),
    )


def _member_names(members: list[dict[str, Any]]) -> dict[str, str]:
    return {m["id"]: m.get("name") or m.get("email") or "Unknown" for m in members}


# =============================================================================
# Detail readers (also used by the chat tools)
# =============================================================================


def get_team_capacity(
    workspace_id: str,
    week_start: date | str | None = None,
) -> list[TeamMemberCapacity]:
    """
    Capacity vs. allocation for every member in one week.

    Allocation is the sum of estimated hours of the member's tasks starting
    in that week.
    """
    start, end = week_bounds(week_start)
    members = list_members(workspace_id)
    tasks = list_tasks_starting_between(workspace_id, start.isoformat(), end.isoformat())

    allocated: dict[str, float] = {}
    counts: dict[str, int] = {}
    for task in tasks:
        user_id = task.get("assigned_to_user_id")
        if not user_id:
            continue
        allocated[user_id] = allocated.get(user_id, 0) + (task.get("estimated_hours") or 0)
        counts[user_id] = counts.get(user_id, 0) + 1

    capacity = []
    for member in members:
        cap = member.get("capacity_week_hours") or 0
        alloc = allocated.get(member["id"], 0)
        capacity.append(
            TeamMemberCapacity(
                id=member["id"],
                name=member.get("name") or member.get("email") or "Unknown",
                email=member.get("email"),
                capacity_hours=cap,
                allocated_hours=alloc,
                available_hours=max(0, cap - alloc),
                task_count=counts.get(member["id"], 0),
            )
        )
    return capacity


def get_current_week_tasks(
    workspace_id: str,
    week_start: date | str | None = None,
) -> list[TaskSummary]:
    """Tasks starting this week, highest priority first then by start date."""
    start, end = week_bounds(week_start)
    rows = list_tasks_starting_between(workspace_id, start.isoformat(), end.isoformat())
    names = _member_names(list_members(workspace_id))
    tasks = sorted(
        (_to_task_summary(row, names) for row in rows),
        key=lambda t: t.start_date or "",
    )
    return sort_by_priority(tasks)


def get_backlog_tasks(workspace_id: str, limit: int | None = DEFAULT_BACKLOG_LIMIT) -> list[TaskSummary]:
    """Backlog tasks, highest priority first then oldest first, at most ``limit`` (None for all)."""
    rows = list_backlog_tasks(workspace_id)
    names = _member_names(list_members(workspace_id))
    tasks = sort_by_priority([_to_task_summary(row, names) for row in rows])
    return tasks[:limit]


def get_upcoming_time_off(
    workspace_id: str,
    days: int = TIME_OFF_HORIZON_DAYS,
    today: date | None = None,
) -> list[TimeOffEntry]:
    """Members' time off overlapping the next ``days`` days."""
    today = today or date.today()
    members = list_members(workspace_id)
    names = _member_names(members)
    rows = list_time_off_overlapping(
        list(names), today.isoformat(), (today + timedelta(days=days)).isoformat()
    )
    return [
        TimeOffEntry(
            user_id=row["user_id"],
            user_name=names.get(row["user_id"], "Unknown"),
            date_from=row["date_from"],
            date_to=row["date_to"],
            type=row.get("type"),
        )
        for row in rows
    ]


# =============================================================================
# Summary and entry point
# =============================================================================


def build_workspace_summary(workspace_id: str, today: date | None = None) -> WorkspaceSummary:
    """Summary counters. A missing workspace yields the zeroed defaults."""
    today = today or date.today()
    workspace = get_workspace(workspace_id)
    if workspace is None:
        logger.warning(f"Workspace {workspace_id} not found, using empty summary")
        return WorkspaceSummary()

    start, end = week_bounds(today)
    capacity = get_team_capacity(workspace_id, today)
    overloaded = [m.name for m in capacity if m.allocated_hours > m.capacity_hours]
    team_size = len(capacity)

    return WorkspaceSummary(
        workspace_name=workspace.get("name") or "Workspace",
        team_size=team_size,
        total_tasks=count_tasks(workspace_id),
        backlog_count=count_tasks(workspace_id, status="BACKLOG"),
        current_sprint_tasks=len(
            list_tasks_starting_between(workspace_id, start.isoformat(), end.isoformat())
        ),
        upcoming_deadlines=count_tasks_due_between(
            workspace_id,
            today.isoformat(),
            (today + timedelta(days=DEADLINE_HORIZON_DAYS)).isoformat(),
        ),
        team_capacity_summary=f"{team_size - len(overloaded)}/{team_size} team members have availability",
        overloaded_members=overloaded,
    )


async def build_workspace_context(workspace_id: str, level: ContextLevel) -> WorkspaceContext:
    """
    Assemble the workspace snapshot for a context level.

    Never raises: data-layer failures are logged and produce the zeroed
    summary with no detail sections.

    Args:
        workspace_id: Workspace to describe
        level: How much detail to include

    Returns:
        WorkspaceContext
    """
    try:
        summary = await asyncio.to_thread(build_workspace_summary, workspace_id)
        if level == ContextLevel.MINIMAL:
            return WorkspaceContext(workspace_id=workspace_id, level=level, summary=summary)

        detailed = DetailedContext()
        if level.includes_scheduling:
            detailed.team_capacity, detailed.current_week_tasks, detailed.upcoming_time_off = (
                await asyncio.gather(
                    asyncio.to_thread(get_team_capacity, workspace_id),
                    asyncio.to_thread(get_current_week_tasks, workspace_id),
                    asyncio.to_thread(get_upcoming_time_off, workspace_id),
                )
            )
        if level.includes_backlog:
            detailed.backlog_tasks = await asyncio.to_thread(get_backlog_tasks, workspace_id)

        return WorkspaceContext(workspace_id=workspace_id, level=level, summary=summary, detailed=detailed)

    except Exception as e:
        logger.error(f"Failed to build workspace context for {workspace_id}: {e}", exc_info=True)
        return WorkspaceContext(workspace_id=workspace_id, level=level)
