"""Project and epic tool implementations.

``get_project_context`` is a read. The other three write and are run one at a
time by the orchestrator; each resolves references inside the caller's
workspace only.
"""

import asyncio
import logging
from typing import Any, Dict

from app.context.project_context import build_project_context, format_project_context_for_prompt
from app.core.dependency_graph import DependencyCycleError, DuplicateDependencyError
from app.core.exceptions import ToolExecutionError
from app.core.logging import get_logger, log_with_context
from app.db.projects import (
    add_epic_dependency,
    create_project_with_epics,
    create_stories_for_epic,
    resolve_epic,
    resolve_project,
)

logger = get_logger(__name__)


async def _require_epic(workspace_id: str, ref: str) -> Dict[str, Any]:
    epic = await asyncio.to_thread(resolve_epic, workspace_id, ref)
    if epic is None:
        raise ToolExecutionError(f"Epic not found: {ref}")
    return epic


async def _get_project_context(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Project, epics, dependencies and shared components, plus the prompt rendering."""
    ref = params["projectId"]
    project = await asyncio.to_thread(resolve_project, workspace_id, ref)
    if project is None:
        raise ToolExecutionError(f"Project not found: {ref}")

    ctx = await build_project_context(project["id"])
    if ctx is None:
        raise ToolExecutionError(f"Project not found: {ref}")

    # Keyed under "project" so the result does not trigger context injection
    return {
        "project": ctx.model_dump(),
        "formatted": format_project_context_for_prompt(ctx),
    }


async def _create_project_with_epics(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a project and its epics in the current workspace.

    A ``workspaceId`` supplied by the model is ignored.
    """
    name = (params.get("name") or "").strip()
    if not name:
        raise ToolExecutionError("Project name must not be empty")

    epics = [
        {
            "name": epic["name"],
            "description": epic.get("description"),
            "estimated_weeks": epic.get("estimatedWeeks"),
            "priority": epic.get("priority"),
        }
        for epic in params.get("epics") or []
    ]

    project, created = await asyncio.to_thread(
        create_project_with_epics,
        workspace_id,
        user_id,
        name,
        epics,
        params.get("description"),
        params.get("goals"),
    )

    log_with_context(
        logger,
        logging.INFO,
        "Project created from chat",
        workspace_id=workspace_id,
        project_id=project["id"],
        epic_count=len(created),
    )

    return {
        "projectId": project["id"],
        "projectKey": project.get("key"),
        "name": project.get("name"),
        "epics": [{"id": e["id"], "key": e.get("key"), "name": e.get("name")} for e in created],
    }


async def _create_stories_for_epic(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Create backlog stories under an epic and mark it ready."""
    epic = await _require_epic(workspace_id, params["epicId"])

    stories = [
        {
            "title": story["title"],
            "description": story.get("description"),
            "estimated_hours": story.get("estimatedHours"),
            "priority": story.get("priority"),
        }
        for story in params.get("stories") or []
    ]
    if not stories:
        raise ToolExecutionError("stories must contain at least one story")

    created = await asyncio.to_thread(create_stories_for_epic, workspace_id, epic, stories)

    return {
        "epicId": epic["id"],
        "epicKey": epic.get("key"),
        "epicStatus": "ready",
        "stories": [
            {
                "id": t["id"],
                "key": t.get("key"),
                "title": t.get("title"),
                "estimatedHours": t.get("estimated_hours") or 0,
                "priority": t.get("priority"),
            }
            for t in created
        ],
        "count": len(created),
    }


async def _add_epic_dependency(workspace_id: str, user_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Record that one epic depends on another; duplicates and cycles are rejected."""
    epic, depends_on = await asyncio.gather(
        _require_epic(workspace_id, params["epicId"]),
        _require_epic(workspace_id, params["dependsOnEpicId"]),
    )
    dependency_type = params.get("type") or "blocks"

    try:
        await asyncio.to_thread(
            add_epic_dependency, workspace_id, epic["id"], depends_on["id"], dependency_type
        )
    except (DuplicateDependencyError, DependencyCycleError) as e:
        raise ToolExecutionError(str(e)) from e

    return {
        "epicId": epic["id"],
        "epicKey": epic.get("key"),
        "dependsOnEpicId": depends_on["id"],
        "dependsOnEpicKey": depends_on.get("key"),
        "type": dependency_type,
    }
