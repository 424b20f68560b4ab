"""Pydantic models for context management."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ContextLevel(str, Enum):
    """How much workspace detail enters the prompt for a turn."""

    MINIMAL = "minimal"
    SCHEDULING = "scheduling"
    BACKLOG = "backlog"
    FULL = "full"

    @property
    def includes_scheduling(self) -> bool:
        return self in (ContextLevel.SCHEDULING, ContextLevel.FULL)

    @property
    def includes_backlog(self) -> bool:
        return self in (ContextLevel.BACKLOG, ContextLevel.FULL)


# =============================================================================
# Workspace context
# =============================================================================


class WorkspaceSummary(BaseModel):
    """Counters that always go into the prompt."""

    workspace_name: str = "Workspace"
    team_size: int = 0
    total_tasks: int = 0
    backlog_count: int = 0
    current_sprint_tasks: int = 0
    upcoming_deadlines: int = 0
    team_capacity_summary: str = "0/0 team members have availability"
    overloaded_members: list[str] = Field(default_factory=list)


class TeamMemberCapacity(BaseModel):
    """One member's load for a week."""

    id: str
    name: str
    email: str | None = None
    capacity_hours: float = 0
    allocated_hours: float = 0
    available_hours: float = 0
    task_count: int = 0

    @property
    def status(self) -> str:
        if self.available_hours <= 0:
            return "OVERLOADED"
        if self.available_hours < 8:
            return "BUSY"
        return "Available"


class TaskSummary(BaseModel):
    id: str
    key: str | None = None
    title: str
    priority: str = "MED"
    status: str | None = None
    estimated_hours: float = 0
    assignee_id: str | None = None
    assignee_name: str | None = None
    start_date: str | None = None
    due_date: str | None = None


class TimeOffEntry(BaseModel):
    user_id: str
    user_name: str
    date_from: str
    date_to: str
    type: str | None = None


class DetailedContext(BaseModel):
    """Level-dependent slices. Absent lists mean the level did not ask for them."""

    team_capacity: list[TeamMemberCapacity] | None = None
    current_week_tasks: list[TaskSummary] | None = None
    backlog_tasks: list[TaskSummary] | None = None
    upcoming_time_off: list[TimeOffEntry] | None = None


class WorkspaceContext(BaseModel):
    workspace_id: str
    level: ContextLevel
    summary: WorkspaceSummary = Field(default_factory=WorkspaceSummary)
    detailed: DetailedContext | None = None


# =============================================================================
# Project context
# =============================================================================


class EpicContext(BaseModel):
    id: str
    key: str | None = None
    name: str
    description: str | None = None
    status: str = "draft"
    priority: str | None = None
    estimated_weeks: float | None = None
    story_count: int = 0
    depends_on: list[str] = Field(default_factory=list, description="Keys of epics this one waits for")
    blocks: list[str] = Field(default_factory=list, description="Keys of epics waiting for this one")


class ProjectContext(BaseModel):
    id: str
    key: str | None = None
    name: str
    description: str | None = None
    goals: str | None = None
    status: str | None = None
    epics: list[EpicContext] = Field(default_factory=list)
    recent_conversations: list[str] = Field(default_factory=list)
    cross_epic_patterns: list[str] = Field(default_factory=list)

    def find_epic(self, ref: str) -> EpicContext | None:
        """Look up an epic by id or key (case-insensitive)."""
        for epic in self.epics:
            if epic.id == ref or (epic.key and epic.key.lower() == ref.lower()):
                return epic
        return None


# =============================================================================
# Conversation history
# =============================================================================


class ChatMessage(BaseModel):
    role: str = Field(..., description="user, assistant or system")
    content: str


class CompressedHistory(BaseModel):
    """History as it will be sent to the model."""

    summary: str | None = None
    recent_messages: list[ChatMessage] = Field(default_factory=list)
    total_messages_summarized: int = 0
    degraded: bool = Field(default=False, description="Summarization failed, older turns dropped")
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def summarized(self) -> bool:
        return self.summary is not None

    def to_messages(self) -> list[dict[str, Any]]:
        """Render as provider transcript messages."""
        messages: list[dict[str, Any]] = []
        if self.summary is not None:
            messages.append({
                "role": "system",
                "content": f"Previous conversation summary: {self.summary}",
            })
        messages.extend({"role": m.role, "content": m.content} for m in self.recent_messages)
        return messages
