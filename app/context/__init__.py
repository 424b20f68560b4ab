"""Context management for chat turns.

This module provides:
- Leveled workspace snapshots (minimal, scheduling, backlog, full)
- Project context with the epic dependency graph
- Conversation compression via summarization
- Keyword-based context-level classification
- Dynamic system prompt building
"""

from app.context.models import (
    ChatMessage,
    CompressedHistory,
    ContextLevel,
    EpicContext,
    ProjectContext,
    WorkspaceContext,
    WorkspaceSummary,
)

__all__ = [
    "ChatMessage",
    "CompressedHistory",
    "ContextLevel",
    "EpicContext",
    "ProjectContext",
    "WorkspaceContext",
    "WorkspaceSummary",
]
