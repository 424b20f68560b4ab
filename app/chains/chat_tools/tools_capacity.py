"""Capacity, backlog and schedule tool implementations (read-only)."""

import asyncio
from datetime import date
from typing import Any, Dict

from app.chains.chat_tools.definitions import MAX_BACKLOG_LIMIT, MAX_TASK_DETAIL_IDS
from app.context.workspace_context import (
    DEFAULT_BACKLOG_LIMIT,
    get_backlog_tasks,
    get_team_capacity,
    week_bounds,
)
from app.core.exceptions import ToolExecutionError
from app.core.logging import get_logger
from app.db.workspaces import (
    get_member,
    list_members,
    list_task_dependencies,
    list_tasks_by_ids,
    list_time_off_overlapping,
    list_user_tasks,
)

logger = get_logger(__name__)


def _capacity_row(member) -> Dict[str, Any]:
    return {
        "userId": member.id,
        "name": member.name,
        "email": member.email,
        "capacityHours": member.capacity_hours,
        "allocatedHours": member.allocated_hours,
        "availableHours": member.available_hours,
        "taskCount": member.task_count,
        "status": member.status.lower(),
    }


def _task_row(task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "key": task.key,
        "title": task.title,
        "status": task.status,
        "priority": task.priority,
        "estimatedHours": task.estimated_hours,
        "assigneeId": task.assignee_id,
        "assigneeName": task.assignee_name,
        "startDate": task.start_date,
        "dueDate": task.due_date,
    }


async def _get_team_capacity(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Team capacity for the week containing ``weekStart``."""
    week_start, _ = week_bounds(params.get("weekStart"))
    capacity = await asyncio.to_thread(get_team_capacity, workspace_id, week_start)

    return {
        "weekStart": week_start.isoformat(),
        "teamMembers": [_capacity_row(m) for m in capacity],
        "summary": {
            "totalCapacity": sum(m.capacity_hours for m in capacity),
            "totalAllocated": sum(m.allocated_hours for m in capacity),
            "totalAvailable": sum(m.available_hours for m in capacity),
            "overloadedCount": sum(1 for m in capacity if m.allocated_hours > m.capacity_hours),
        },
    }


async def _get_backlog_tasks(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Backlog tasks, filtered, then capped."""
    limit = params.get("limit")
    limit = min(max(int(limit), 1), MAX_BACKLOG_LIMIT) if limit is not None else DEFAULT_BACKLOG_LIMIT

    tasks = await asyncio.to_thread(get_backlog_tasks, workspace_id, None)
    if params.get("priority"):
        tasks = [t for t in tasks if t.priority == params["priority"]]
    if params.get("assigneeId"):
        tasks = [t for t in tasks if t.assignee_id == params["assigneeId"]]

    matching = len(tasks)
    tasks = tasks[:limit]
    return {
        "tasks": [_task_row(t) for t in tasks],
        "totalCount": len(tasks),
        "matchingCount": matching,
    }


async def _get_task_details(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Full task rows with their dependencies."""
    task_ids = [tid for tid in params.get("taskIds") or [] if tid]
    if not task_ids:
        raise ToolExecutionError("taskIds must be a non-empty array of strings")
    task_ids = task_ids[:MAX_TASK_DETAIL_IDS]

    rows, deps, members = await asyncio.gather(
        asyncio.to_thread(list_tasks_by_ids, workspace_id, task_ids),
        asyncio.to_thread(list_task_dependencies, task_ids),
        asyncio.to_thread(list_members, workspace_id),
    )
    names = {m["id"]: m.get("name") or m.get("email") for m in members}

    dep_ids = sorted({d["depends_on_task_id"] for d in deps})
    dep_rows = await asyncio.to_thread(list_tasks_by_ids, workspace_id, dep_ids)
    dep_titles = {r["id"]: r.get("title") for r in dep_rows}

    dependencies: dict[str, list[Dict[str, Any]]] = {}
    for dep in deps:
        # Dependencies on tasks outside the workspace are not reported
        if dep["depends_on_task_id"] not in dep_titles:
            continue
        dependencies.setdefault(dep["task_id"], []).append({
            "id": dep["depends_on_task_id"],
            "title": dep_titles[dep["depends_on_task_id"]],
            "type": dep.get("type"),
        })

    tasks = []
    for row in rows:
        assignee_id = row.get("assigned_to_user_id")
        tasks.append({
            "id": row["id"],
            "key": row.get("key"),
            "title": row.get("title"),
            "description": row.get("description"),
            "status": row.get("status"),
            "priority": row.get("priority"),
            "estimatedHours": row.get("estimated_hours") or 0,
            "assigneeId": assignee_id,
            "assigneeName": names.get(assignee_id) if assignee_id else None,
            "startDate": row.get("start_date"),
            "dueDate": row.get("due_date"),
            "createdAt": row.get("created_at"),
            "updatedAt": row.get("updated_at"),
            "dependencies": dependencies.get(row["id"], []),
        })

    return {"tasks": tasks}


def _overlaps(task: Dict[str, Any], start: str, end: str) -> bool:
    s, d = task.get("start_date"), task.get("due_date")
    if s and start <= s <= end:
        return True
    if d and start <= d <= end:
        return True
    return bool(s and d and s <= start and d >= end)


async def _get_user_schedule(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """One member's tasks and time off in ``[from, to]``."""
    target_id, start, end = params["userId"], params["from"], params["to"]
    if start > end:
        raise ToolExecutionError("'from' must not be after 'to'")

    member = await asyncio.to_thread(get_member, workspace_id, target_id)
    if member is None:
        raise ToolExecutionError("User not found in this workspace")

    tasks, time_off = await asyncio.gather(
        asyncio.to_thread(list_user_tasks, workspace_id, target_id),
        asyncio.to_thread(list_time_off_overlapping, [target_id], start, end),
    )
    in_range = sorted(
        (t for t in tasks if _overlaps(t, start, end)),
        key=lambda t: (t.get("start_date") is None, t.get("start_date") or ""),
    )

    return {
        "user": {
            "id": member["id"],
            "name": member.get("name") or member.get("email"),
            "email": member.get("email"),
            "capacityPerWeek": member.get("capacity_week_hours") or 0,
        },
        "dateRange": {"from": start, "to": end},
        "tasks": [
            {
                "id": t["id"],
                "key": t.get("key"),
                "title": t.get("title"),
                "status": t.get("status"),
                "priority": t.get("priority"),
                "estimatedHours": t.get("estimated_hours") or 0,
                "startDate": t.get("start_date"),
                "dueDate": t.get("due_date"),
            }
            for t in in_range
        ],
        "timeOff": [
            {"dateFrom": r["date_from"], "dateTo": r["date_to"], "type": r.get("type")}
            for r in time_off
        ],
        "summary": {
            "totalTasks": len(in_range),
            "totalAllocatedHours": sum(t.get("estimated_hours") or 0 for t in in_range),
            "hasTimeOff": bool(time_off),
        },
    }


async def _get_overloaded_users(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Members whose allocation exceeds capacity in the given week."""
    week_start, _ = week_bounds(params.get("weekStart") or date.today())
    capacity = await asyncio.to_thread(get_team_capacity, workspace_id, week_start)

    overloaded = []
    for m in capacity:
        if m.allocated_hours <= m.capacity_hours:
            continue
        over = m.allocated_hours - m.capacity_hours
        overloaded.append({
            "userId": m.id,
            "name": m.name,
            "email": m.email,
            "capacityHours": m.capacity_hours,
            "allocatedHours": m.allocated_hours,
            "overloadHours": over,
            "overloadPercentage": round(over / m.capacity_hours * 100) if m.capacity_hours else None,
        })

    return {
        "weekStart": week_start.isoformat(),
        "overloadedUsers": overloaded,
        "count": len(overloaded),
    }
