"""Tool dispatch: validates arguments and routes tool_name to its handler."""

import json
import re
from typing import Any, Callable, Coroutine, Dict

from app.chains.chat_tools.definitions import get_tool_schema
from app.core.exceptions import ToolExecutionError
from app.core.llm import ToolCall
from app.core.logging import get_logger
from app.core.schemas_ai import FunctionCallResult

logger = get_logger(__name__)

Handler = Callable[..., Coroutine[Any, Any, Dict[str, Any]]]

# Lazy-import handler map, populated on first call to avoid circular imports
_HANDLER_MAP: Dict[str, Handler] | None = None


def _build_handler_map() -> Dict[str, Handler]:
    from .tools_capacity import (
        _get_backlog_tasks,
        _get_overloaded_users,
        _get_task_details,
        _get_team_capacity,
        _get_user_schedule,
    )
    from .tools_projects import (
        _add_epic_dependency,
        _create_project_with_epics,
        _create_stories_for_epic,
        _get_project_context,
    )

    return {
        "get_team_capacity": _get_team_capacity,
        "get_backlog_tasks": _get_backlog_tasks,
        "get_task_details": _get_task_details,
        "get_user_schedule": _get_user_schedule,
        "get_overloaded_users": _get_overloaded_users,
        "get_project_context": _get_project_context,
        "create_project_with_epics": _create_project_with_epics,
        "create_stories_for_epic": _create_stories_for_epic,
        "add_epic_dependency": _add_epic_dependency,
    }


_JSON_TYPES: Dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def _check_value(path: str, value: Any, schema: Dict[str, Any]) -> list[str]:
    errors: list[str] = []
    expected = schema.get("type")
    if expected:
        types = _JSON_TYPES.get(expected, (object,))
        # bool is an int subclass; JSON keeps them apart
        if not isinstance(value, types) or (expected in ("number", "integer") and isinstance(value, bool)):
            return [f"{path} must be of type {expected}"]

    if "enum" in schema and value not in schema["enum"]:
        errors.append(f"{path} must be one of {', '.join(map(str, schema['enum']))}")
    if "pattern" in schema and isinstance(value, str) and not re.search(schema["pattern"], value):
        errors.append(f"{path} has an invalid format")

    if expected == "array" and "items" in schema:
        for index, item in enumerate(value):
            errors.extend(_check_value(f"{path}[{index}]", item, schema["items"]))
    if expected == "object":
        errors.extend(_check_object(path, value, schema))
    return errors


def _check_object(path: str, value: Dict[str, Any], schema: Dict[str, Any]) -> list[str]:
    errors = []
    for key in schema.get("required", []):
        if value.get(key) is None:
            errors.append(f"{path}.{key} is required" if path else f"{key} is required")
    for key, prop in schema.get("properties", {}).items():
        if value.get(key) is not None:
            errors.extend(_check_value(f"{path}.{key}" if path else key, value[key], prop))
    return errors


def validate_arguments(schema: Dict[str, Any], arguments: Dict[str, Any]) -> list[str]:
    """
    Check tool arguments against a tool's input schema.

    Covers required keys, JSON types, enums, patterns and array items. Unknown
    keys are allowed and ignored by handlers.

    Returns:
        Human-readable problems, empty when the arguments are acceptable
    """
    if not isinstance(arguments, dict):
        return ["arguments must be an object"]
    return _check_object("", arguments, schema)


async def execute_tool(
    workspace_id: str,
    user_id: str,
    tool_name: str,
    tool_input: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Execute a tool and return its result.

    Never raises: unknown tools, invalid arguments and handler failures all
    come back as ``{"success": False, "error": ...}`` for the model to read.

    Args:
        workspace_id: Workspace the turn runs in; every read and write is scoped to it
        user_id: Requesting user
        tool_name: Name of tool to execute
        tool_input: Tool input parameters

    Returns:
        ``{"success": True, "data": ...}`` or ``{"success": False, "error": ...}``
    """
    global _HANDLER_MAP
    if _HANDLER_MAP is None:
        _HANDLER_MAP = _build_handler_map()

    try:
        logger.info(f"Executing tool {tool_name} for workspace {workspace_id}")

        handler = _HANDLER_MAP.get(tool_name)
        schema = get_tool_schema(tool_name)
        if handler is None or schema is None:
            return {"success": False, "error": f"Unknown tool: {tool_name}"}

        errors = validate_arguments(schema["input_schema"], tool_input)
        if errors:
            return {"success": False, "error": "Invalid arguments: " + "; ".join(errors)}

        data = await handler(workspace_id, user_id, tool_input)
        return {"success": True, "data": data}

    except ToolExecutionError as e:
        logger.warning(f"Tool {tool_name} failed: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.error(f"Error executing tool {tool_name}: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


async def execute_tool_call(workspace_id: str, user_id: str, tool_call: ToolCall) -> Dict[str, Any]:
    """Run one model tool call; returns the transcript ``message`` and the raw ``result``."""
    result = await execute_tool(workspace_id, user_id, tool_call.name, tool_call.arguments)
    return {
        "message": {
            "role": "tool",
            "tool_call_id": tool_call.id,
            "content": json.dumps(result, default=str),
        },
        "result": result,
    }


def summarize_result(result: Dict[str, Any]) -> FunctionCallResult:
    """Short caller-facing summary of a tool result."""
    if not result.get("success"):
        return FunctionCallResult(success=False, summary=f"Error: {result.get('error') or 'unknown error'}")

    data = result.get("data")
    if isinstance(data, dict) and data:
        return FunctionCallResult(success=True, summary=f"Returned: {', '.join(list(data)[:5])}")
    if data is not None:
        return FunctionCallResult(success=True, summary="Completed")
    return FunctionCallResult(success=True, summary="Executed successfully")
