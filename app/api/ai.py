"""AI project manager API endpoints.

Requester identity (workspace_id, user_id) arrives in the body or query;
authentication is handled upstream.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from app.core.chat_orchestrator import ChatOrchestrator
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AIEngineError,
    ConfigurationError,
    ConversationNotFoundError,
    ProviderError,
    UsageLimitExceededError,
)
from app.core.llm import build_provider
from app.core.logging import get_logger
from app.core.schemas_ai import (
    AISettings,
    AISettingsUpdate,
    ChatRequest,
    ChatResult,
    Conversation,
    Message,
    UsageReport,
)

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Request / Response Models
# ============================================================================


class CreateConversationRequest(BaseModel):
    workspace_id: str
    user_id: str
    title: str | None = Field(default=None, max_length=255)
    project_id: str | None = None


class UpdateConversationRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    is_archived: bool | None = None
    project_id: str | None = None


class ConversationListResponse(BaseModel):
    conversations: list[Conversation]


class ConversationDetailResponse(BaseModel):
    conversation: Conversation
    messages: list[Message]


# ============================================================================
# Dependencies
# ============================================================================


def get_orchestrator(settings: Settings = Depends(get_settings)) -> ChatOrchestrator:
    """
    Orchestrator with one freshly built provider.

    A missing provider key leaves the orchestrator without a provider: CRUD
    endpoints still work and ``chat`` reports the configuration error.
    """
    try:
        provider = build_provider(settings)
    except ConfigurationError as e:
        logger.warning(f"AI provider unavailable: {e}")
        provider = None
    return ChatOrchestrator(provider, settings)


def _to_http_error(e: AIEngineError) -> HTTPException:
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail="AI service is not configured")
    if isinstance(e, UsageLimitExceededError):
        return HTTPException(status_code=429, detail=str(e))
    if isinstance(e, ConversationNotFoundError):
        return HTTPException(status_code=404, detail="Conversation not found")
    if isinstance(e, ProviderError):
        return HTTPException(status_code=502, detail="Failed to process AI request")
    return HTTPException(status_code=500, detail="Failed to process AI request")


# ============================================================================
# Chat
# ============================================================================


@router.post("/chat", response_model=ChatResult)
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ChatResult:
    """
    Run one chat turn.

    Errors:
        503 when no provider is configured, 429 when the monthly budget is
        spent, 404 for an unknown conversation, 502 when the model call fails
        (the user message stays persisted).
    """
    try:
        return await orchestrator.chat(request)
    except AIEngineError as e:
        if isinstance(e, ProviderError):
            logger.error(f"AI chat failed for workspace {request.workspace_id}: {e}")
        raise _to_http_error(e) from e


# ============================================================================
# Conversations
# ============================================================================


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    workspace_id: str = Query(..., description="Workspace id"),
    user_id: str | None = Query(None, description="Only conversations created by this user"),
    include_archived: bool = Query(False),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ConversationListResponse:
    conversations = await orchestrator.list_conversations(workspace_id, user_id, include_archived)
    return ConversationListResponse(conversations=conversations)


@router.post("/conversations", response_model=Conversation, status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Conversation:
    return await orchestrator.create_conversation(
        body.workspace_id, body.user_id, body.title, body.project_id
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ConversationDetailResponse:
    """Conversation with its messages in append order."""
    try:
        conversation = await orchestrator.get_conversation(workspace_id, conversation_id)
        messages = await orchestrator.get_messages(workspace_id, conversation_id)
    except ConversationNotFoundError as e:
        raise _to_http_error(e) from e
    return ConversationDetailResponse(conversation=conversation, messages=messages)


@router.patch("/conversations/{conversation_id}", response_model=Conversation)
async def update_conversation(
    conversation_id: str,
    body: UpdateConversationRequest,
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Conversation:
    try:
        return await orchestrator.update_conversation(
            workspace_id, conversation_id, body.model_dump(exclude_unset=True)
        )
    except ConversationNotFoundError as e:
        raise _to_http_error(e) from e


@router.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Response:
    try:
        await orchestrator.delete_conversation(workspace_id, conversation_id)
    except ConversationNotFoundError as e:
        raise _to_http_error(e) from e
    return Response(status_code=204)


# ============================================================================
# Settings and usage
# ============================================================================


@router.get("/settings", response_model=AISettings)
async def get_ai_settings(
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> AISettings:
    return await orchestrator.get_ai_settings(workspace_id)


@router.put("/settings", response_model=AISettings)
async def update_ai_settings(
    body: AISettingsUpdate,
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> AISettings:
    return await orchestrator.update_ai_settings(workspace_id, body)


@router.get("/usage", response_model=UsageReport)
async def get_usage(
    workspace_id: str = Query(..., description="Workspace id"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> UsageReport:
    """This month's token counters and the effective limit."""
    return await orchestrator.get_usage(workspace_id)
