"""Pydantic schemas for AI conversations, messages, settings and usage."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant", "system"]


class Conversation(BaseModel):
    """A chat thread inside a workspace."""

    id: str
    workspace_id: str
    created_by_user_id: str
    project_id: str | None = None
    title: str | None = None
    is_archived: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Message(BaseModel):
    """A persisted chat message. Append-only."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    structured_data: dict[str, Any] | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    model: str | None = None
    created_at: datetime | None = None


class AISettings(BaseModel):
    workspace_id: str
    enabled: bool = False
    preferred_provider: Literal["openai", "anthropic"] = "openai"
    preferred_model: str = "gpt-4o-mini"
    monthly_token_limit: int | None = None


class AISettingsUpdate(BaseModel):
    """Partial settings update. Omitted fields keep their stored value."""

    enabled: bool | None = None
    preferred_provider: Literal["openai", "anthropic"] | None = None
    preferred_model: str | None = Field(default=None, max_length=50)
    monthly_token_limit: int | None = Field(default=None, gt=0)


class UsageCounter(BaseModel):
    """Token counters for one workspace and calendar month."""

    workspace_id: str
    month: str = Field(..., description="First day of the month, ISO date")
    input_tokens_used: int = 0
    output_tokens_used: int = 0
    request_count: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens_used + self.output_tokens_used


class FunctionCallResult(BaseModel):
    success: bool
    summary: str


class FunctionCallInfo(BaseModel):
    """One executed tool call, reported to callers for visibility."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: FunctionCallResult
    executed_at: datetime


class TurnUsage(BaseModel):
    input_tokens: int
    output_tokens: int
    monthly_used: int
    monthly_limit: int


class TurnOutcome(str, Enum):
    """How the model/tool loop ended."""

    COMPLETED = "completed"
    # The round cap was hit while the model still requested tools. The last
    # reply is kept as final and its pending tool calls are not executed.
    ROUND_LIMIT_REACHED = "round_limit_reached"


class WizardStart(BaseModel):
    """Seed for conversational project creation, taken from a suggestion card."""

    projectName: str
    detectedScope: str = ""
    suggestedEpics: list[str] = Field(default_factory=list)


class ChatRequest(BaseModel):
    workspace_id: str
    user_id: str
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_id: str | None = None
    project_id: str | None = None
    epic_id: str | None = None
    start_wizard: WizardStart | None = None


class ChatResult(BaseModel):
    conversation: Conversation
    user_message: Message
    assistant_message: Message
    usage: TurnUsage
    function_calls: list[FunctionCallInfo] | None = None
    outcome: TurnOutcome = TurnOutcome.COMPLETED


class UsageReport(BaseModel):
    input_tokens: int
    output_tokens: int
    request_count: int
    limit: int
