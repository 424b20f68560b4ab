"""Read/write classification of tool calls."""

from app.core.llm import ToolCall

# Safe to run concurrently within a round
READ_TOOLS = frozenset({
    "get_team_capacity",
    "get_backlog_tasks",
    "get_task_details",
    "get_user_schedule",
    "get_overloaded_users",
    "get_project_context",
})

# Run one at a time, in the order the model requested them
WRITE_TOOLS = frozenset({
    "create_project_with_epics",
    "create_stories_for_epic",
    "add_epic_dependency",
})


def is_write_tool(name: str) -> bool:
    return name in WRITE_TOOLS


def partition_tool_calls(tool_calls: list[ToolCall]) -> tuple[list[ToolCall], list[ToolCall]]:
    """
    Split a round's calls into (reads, writes), each keeping request order.

    Unknown tool names count as reads: they fail validation without touching data.
    """
    reads = [tc for tc in tool_calls if not is_write_tool(tc.name)]
    writes = [tc for tc in tool_calls if is_write_tool(tc.name)]
    return reads, writes
