"""Projects, epics, stories and epic dependency operations."""

import re
from typing import Any

from app.core.dependency_graph import check_new_dependency
from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

# Human-readable, workspace-scoped keys: P-1, E-3, T-12
KEY_PREFIXES = {"project": "P", "epic": "E", "task": "T"}
KEY_TABLES = {"project": "projects", "epic": "epics", "task": "tasks"}
KEY_PATTERNS = {
    entity: re.compile(rf"^{prefix}-(\d+)$", re.IGNORECASE) for entity, prefix in KEY_PREFIXES.items()
}
_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def next_key(workspace_id: str, entity_type: str) -> str:
    """
    Generate the next sequential key for an entity type in a workspace.

    Not atomic: two concurrent creators can compute the same key, so callers
    creating several entities in one request must go through this serially.
    """
    supabase = get_supabase()
    response = (
        supabase.table(KEY_TABLES[entity_type])
        .select("key")
        .eq("workspace_id", workspace_id)
        .execute()
    )
    pattern = KEY_PATTERNS[entity_type]
    highest = 0
    for row in response.data or []:
        match = pattern.match(row.get("key") or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{KEY_PREFIXES[entity_type]}-{highest + 1}"


def _resolve_ref(workspace_id: str, ref: str, entity_type: str) -> dict[str, Any] | None:
    """Find an entity by human key (case-insensitive) or UUID inside the workspace."""
    ref = (ref or "").strip()
    if not ref:
        return None

    supabase = get_supabase()
    query = supabase.table(KEY_TABLES[entity_type]).select("*").eq("workspace_id", workspace_id)

    if KEY_PATTERNS[entity_type].match(ref):
        query = query.eq("key", ref.upper())
    elif _UUID_PATTERN.match(ref):
        query = query.eq("id", ref.lower())
    else:
        return None

    response = query.limit(1).execute()
    return response.data[0] if response.data else None


def resolve_project(workspace_id: str, ref: str) -> dict[str, Any] | None:
    return _resolve_ref(workspace_id, ref, "project")


def resolve_epic(workspace_id: str, ref: str) -> dict[str, Any] | None:
    return _resolve_ref(workspace_id, ref, "epic")


def get_project(project_id: str) -> dict[str, Any] | None:
    """
    Get a single project by ID.

    Returns:
        Project row as dict, or None if it does not exist
    """
    supabase = get_supabase()
    response = supabase.table("projects").select("*").eq("id", project_id).limit(1).execute()
    return response.data[0] if response.data else None


def list_epics(project_id: str) -> list[dict[str, Any]]:
    """Epics of a project in display order."""
    supabase = get_supabase()
    response = (
        supabase.table("epics")
        .select("*")
        .eq("project_id", project_id)
        .order("sort_order")
        .execute()
    )
    return response.data or []


def list_epic_tasks(epic_ids: list[str]) -> list[dict[str, Any]]:
    """Story rows (id, title, epic_id) belonging to the given epics."""
    if not epic_ids:
        return []
    supabase = get_supabase()
    response = (
        supabase.table("tasks")
        .select("id, title, epic_id")
        .in_("epic_id", epic_ids)
        .execute()
    )
    return response.data or []


def list_epic_dependencies(epic_ids: list[str]) -> list[dict[str, Any]]:
    """Dependency edges whose dependent epic is in ``epic_ids``."""
    if not epic_ids:
        return []
    supabase = get_supabase()
    response = (
        supabase.table("epic_dependencies")
        .select("epic_id, depends_on_epic_id, dependency_type")
        .in_("epic_id", epic_ids)
        .execute()
    )
    return response.data or []


def create_project_with_epics(
    workspace_id: str,
    created_by: str,
    name: str,
    epics: list[dict[str, Any]],
    description: str | None = None,
    goals: str | None = None,
) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """
    Create a project and its initial epics.

    Supabase offers no multi-statement transaction here, so a failure while
    inserting epics deletes whatever was created before re-raising.

    Args:
        workspace_id: Owning workspace
        created_by: Requesting user
        name: Project name
        epics: Dicts with name, optional description and estimated_weeks
        description: Project description
        goals: Success criteria

    Returns:
        (project row, epic rows in creation order)
    """
    supabase = get_supabase()

    project_data = {
        "workspace_id": workspace_id,
        "key": next_key(workspace_id, "project"),
        "name": name,
        "description": description,
        "goals": goals,
        "status": "planning",
        "created_by": created_by,
    }
    response = supabase.table("projects").insert(project_data).execute()
    if not response.data:
        raise ValueError("No data returned from create_project_with_epics")
    project = response.data[0]

    created: list[dict[str, Any]] = []
    try:
        for index, epic in enumerate(epics, start=1):
            epic_data = {
                "project_id": project["id"],
                "workspace_id": workspace_id,
                "key": next_key(workspace_id, "epic"),
                "name": epic["name"],
                "description": epic.get("description"),
                "estimated_weeks": epic.get("estimated_weeks"),
                "priority": epic.get("priority") or "MED",
                "status": "draft",
                "sort_order": index,
            }
            epic_response = supabase.table("epics").insert(epic_data).execute()
            if not epic_response.data:
                raise ValueError(f"Failed to create epic {epic['name']}")
            created.append(epic_response.data[0])
    except Exception as e:
        logger.error(f"Failed to create epics for project {project['id']}, rolling back: {e}")
        if created:
            supabase.table("epics").delete().in_("id", [c["id"] for c in created]).execute()
        supabase.table("projects").delete().eq("id", project["id"]).execute()
        raise

    logger.info(
        f"Created project {project['key']} with {len(created)} epics",
        extra={"project_id": project["id"], "workspace_id": workspace_id},
    )
    return project, created


def create_stories_for_epic(
    workspace_id: str,
    epic: dict[str, Any],
    stories: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Create backlog stories under an epic and mark the epic ready.

    Args:
        workspace_id: Owning workspace
        epic: Resolved epic row
        stories: Dicts with title, optional description, estimated_hours, priority

    Returns:
        Created task rows
    """
    supabase = get_supabase()

    created = []
    for story in stories:
        task_data = {
            "workspace_id": workspace_id,
            "epic_id": epic["id"],
            "project_id": epic.get("project_id"),
            "key": next_key(workspace_id, "task"),
            "title": story["title"],
            "description": story.get("description"),
            "estimated_hours": story.get("estimated_hours") or 0,
            "priority": story.get("priority") or "MED",
            "status": "BACKLOG",
        }
        response = supabase.table("tasks").insert(task_data).execute()
        if response.data:
            created.append(response.data[0])

    # Only an epic whose stories all landed is ready
    supabase.table("epics").update({"status": "ready"}).eq("id", epic["id"]).execute()

    logger.info(f"Created {len(created)} stories for epic {epic.get('key')}")
    return created


def add_epic_dependency(
    workspace_id: str,
    epic_id: str,
    depends_on_epic_id: str,
    dependency_type: str = "blocks",
) -> dict[str, Any]:
    """
    Add ``epic_id depends on depends_on_epic_id``.

    Raises:
        DuplicateDependencyError: If the edge already exists
        DependencyCycleError: If the edge would close a cycle
    """
    supabase = get_supabase()

    epic_rows = (
        supabase.table("epics").select("id").eq("workspace_id", workspace_id).execute()
    )
    workspace_epic_ids = [r["id"] for r in epic_rows.data or []]
    edges = [
        (row["epic_id"], row["depends_on_epic_id"])
        for row in list_epic_dependencies(workspace_epic_ids)
    ]

    check_new_dependency(edges, epic_id, depends_on_epic_id)

    response = (
        supabase.table("epic_dependencies")
        .insert({
            "epic_id": epic_id,
            "depends_on_epic_id": depends_on_epic_id,
            "dependency_type": dependency_type,
        })
        .execute()
    )
    if not response.data:
        raise ValueError("No data returned from add_epic_dependency")
    return response.data[0]
