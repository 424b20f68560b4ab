"""Tool definitions for the AI project manager.

9 tools:
- Read: get_team_capacity, get_backlog_tasks, get_task_details,
  get_user_schedule, get_overloaded_users, get_project_context
- Write: create_project_with_epics, create_stories_for_epic, add_epic_dependency

Schemas double as documentation for the model and as the shape check the
dispatcher runs before executing a call.
"""

from typing import Any

from app.core.llm import FunctionDefinition

_UUID = "[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
PROJECT_REF_PATTERN = rf"^([Pp]-\d+|{_UUID})$"
EPIC_REF_PATTERN = rf"^([Ee]-\d+|{_UUID})$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

PRIORITIES = ["LOW", "MED", "HIGH", "CRITICAL"]
DEPENDENCY_TYPES = ["blocks", "related", "informs"]

MAX_BACKLOG_LIMIT = 100
MAX_TASK_DETAIL_IDS = 20


TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "name": "get_team_capacity",
        "description": (
            "Get detailed capacity information for all team members for a specific week, "
            "including their allocated hours and availability."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "weekStart": {
                    "type": "string",
                    "pattern": DATE_PATTERN,
                    "description": "Any date in the week, YYYY-MM-DD. Weeks start on Monday. Defaults to this week.",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_backlog_tasks",
        "description": (
            "Get tasks from the backlog, highest priority first, optionally filtered by "
            f"priority or assignee. Returns up to 50 tasks by default and never more than {MAX_BACKLOG_LIMIT}."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "priority": {
                    "type": "string",
                    "enum": PRIORITIES,
                    "description": "Filter by priority level",
                },
                "limit": {
                    "type": "number",
                    "description": f"Maximum number of tasks to return (default: 50, max: {MAX_BACKLOG_LIMIT})",
                },
                "assigneeId": {
                    "type": "string",
                    "description": "Filter by assigned user ID",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_task_details",
        "description": (
            "Get detailed information about specific tasks by their IDs, including "
            f"description and dependencies. At most {MAX_TASK_DETAIL_IDS} tasks per call."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "taskIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Task IDs to fetch details for",
                },
            },
            "required": ["taskIds"],
        },
    },
    {
        "name": "get_user_schedule",
        "description": "Get a specific user's scheduled tasks and time off for a date range.",
        "input_schema": {
            "type": "object",
            "properties": {
                "userId": {"type": "string", "description": "User ID to get schedule for"},
                "from": {"type": "string", "pattern": DATE_PATTERN, "description": "Start date, YYYY-MM-DD"},
                "to": {"type": "string", "pattern": DATE_PATTERN, "description": "End date, YYYY-MM-DD"},
            },
            "required": ["userId", "from", "to"],
        },
    },
    {
        "name": "get_overloaded_users",
        "description": (
            "Get team members whose allocated hours exceed their capacity for the current "
            "or specified week."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "weekStart": {
                    "type": "string",
                    "pattern": DATE_PATTERN,
                    "description": "Any date in the week, YYYY-MM-DD (defaults to this week)",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_project_context",
        "description": (
            "Get full context for a project including all epics, their status, dependencies, "
            "and cross-epic patterns. Use this before giving advice about a project."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "projectId": {
                    "type": "string",
                    "pattern": PROJECT_REF_PATTERN,
                    "description": "The project key (P-1, P-2, etc.) or its id",
                },
            },
            "required": ["projectId"],
        },
    },
    {
        "name": "create_project_with_epics",
        "description": (
            "Create a new project with its initial epics. Use only after the user has "
            "confirmed the project scope."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "workspaceId": {
                    "type": "string",
                    "description": "Ignored: projects are always created in the current workspace",
                },
                "name": {"type": "string", "description": "Project name"},
                "description": {"type": "string", "description": "Project description"},
                "goals": {"type": "string", "description": "Success criteria and goals"},
                "epics": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "estimatedWeeks": {"type": "number"},
                            "priority": {"type": "string", "enum": PRIORITIES},
                        },
                        "required": ["name"],
                    },
                    "description": "Initial epics to create, in order",
                },
            },
            "required": ["name", "epics"],
        },
    },
    {
        "name": "create_stories_for_epic",
        "description": (
            "Create backlog stories for an epic and mark the epic ready. Use after breaking "
            "down an epic with the user."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "epicId": {
                    "type": "string",
                    "pattern": EPIC_REF_PATTERN,
                    "description": "The epic key (E-1, E-2, etc.) or its id",
                },
                "stories": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "description": {"type": "string"},
                            "estimatedHours": {"type": "number"},
                            "priority": {"type": "string", "enum": PRIORITIES},
                        },
                        "required": ["title"],
                    },
                    "description": "Stories to create",
                },
            },
            "required": ["epicId", "stories"],
        },
    },
    {
        "name": "add_epic_dependency",
        "description": (
            "Add a dependency between two epics. Epic A depends on epic B means A cannot "
            "start until B is done. Duplicate and circular dependencies are rejected."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "epicId": {
                    "type": "string",
                    "pattern": EPIC_REF_PATTERN,
                    "description": "The epic (key or id) that has the dependency",
                },
                "dependsOnEpicId": {
                    "type": "string",
                    "pattern": EPIC_REF_PATTERN,
                    "description": "The epic (key or id) that must be completed first",
                },
                "type": {
                    "type": "string",
                    "enum": DEPENDENCY_TYPES,
                    "description": "Type of dependency (default: blocks)",
                },
            },
            "required": ["epicId", "dependsOnEpicId"],
        },
    },
]

_SCHEMAS_BY_NAME = {schema["name"]: schema for schema in TOOL_SCHEMAS}


def get_tool_schema(name: str) -> dict[str, Any] | None:
    return _SCHEMAS_BY_NAME.get(name)


def get_tool_definitions() -> list[FunctionDefinition]:
    """Tool definitions in the provider-neutral shape."""
    return [
        FunctionDefinition(
            name=schema["name"],
            description=schema["description"],
            parameters=schema["input_schema"],
        )
        for schema in TOOL_SCHEMAS
    ]
