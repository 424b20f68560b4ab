"""Chat assistant tools: package barrel exports."""

from .definitions import TOOL_SCHEMAS, get_tool_definitions, get_tool_schema
from .dispatcher import execute_tool, execute_tool_call, summarize_result, validate_arguments
from .filtering import READ_TOOLS, WRITE_TOOLS, is_write_tool, partition_tool_calls

__all__ = [
    "TOOL_SCHEMAS",
    "get_tool_definitions",
    "get_tool_schema",
    "execute_tool",
    "execute_tool_call",
    "summarize_result",
    "validate_arguments",
    "READ_TOOLS",
    "WRITE_TOOLS",
    "is_write_tool",
    "partition_tool_calls",
]
