"""Conversation orchestrator for the AI project manager.

One ``chat`` call is one user turn:

1. Pre-flight budget check (no side effects on failure)
2. Resolve or create the conversation
3. Persist the user message
4. Build workspace/project context, wizard mode and the system prompt
5. Model rounds: execute requested tools, feed results back, repeat
6. Persist exactly one assistant message, count usage once, title new threads

The provider is injected; nothing here reaches for a global client.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from app.chains.chat_tools import (
    execute_tool_call,
    get_tool_definitions,
    partition_tool_calls,
    summarize_result,
)
from app.chains.project_detection import detect_large_project
from app.chains.project_wizard import NoWizard, resolve_wizard_mode
from app.context.conversation_compressor import compress_history
from app.context.cross_epic_patterns import PatternStrategy
from app.context.dynamic_prompt_builder import build_system_prompt, select_prompt_addition
from app.context.intent_classifier import classify_context_level
from app.context.models import ProjectContext
from app.context.project_context import build_project_context, format_project_context_for_prompt
from app.context.prompt_blocks import BLOCK_NEW_PROJECT_CONTEXT
from app.context.workspace_context import build_workspace_context
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    ConfigurationError,
    ConversationNotFoundError,
    ProviderError,
    UsageLimitExceededError,
)
from app.core.llm import ChatResponse, LLMProvider, ToolCall
from app.core.logging import get_logger, log_with_context
from app.core.schemas_ai import (
    AISettings,
    AISettingsUpdate,
    ChatRequest,
    ChatResult,
    Conversation,
    FunctionCallInfo,
    Message,
    TurnOutcome,
    TurnUsage,
    UsageReport,
)
from app.core.structured_data import extract_structured_data
from app.core.usage_tracker import check_usage_limit, get_current_usage, get_monthly_limit, increment_usage
from app.db import conversations as conversations_db
from app.db.ai_settings import DEFAULT_AI_SETTINGS, get_ai_settings, upsert_ai_settings
from app.db.projects import resolve_project

logger = get_logger(__name__)

TITLE_MAX_CHARS = 50


def generate_conversation_title(message: str) -> str:
    """First 50 characters of the opening message, with "..." when shortened."""
    truncated = message[:TITLE_MAX_CHARS].strip()
    return f"{truncated}..." if len(truncated) < len(message) else truncated


class ChatOrchestrator:
    """Runs chat turns and the conversation/settings/usage readbacks around them."""

    def __init__(
        self,
        provider: LLMProvider | None,
        settings: Settings | None = None,
        pattern_strategy: PatternStrategy | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_settings()
        self.pattern_strategy = pattern_strategy

    # =========================================================================
    # Chat turn
    # =========================================================================

    async def chat(self, request: ChatRequest) -> ChatResult:
        """
        Run one user turn.

        Args:
            request: Workspace, user, message and optional conversation/project/epic/wizard seed

        Returns:
            ChatResult with both persisted messages, usage and executed tool calls

        Raises:
            ConfigurationError: No provider is configured (nothing persisted)
            UsageLimitExceededError: Monthly budget spent (nothing persisted)
            ConversationNotFoundError: conversation_id given but absent in this workspace
            ProviderError: The model call failed; the user message stays persisted
        """
        if self.provider is None:
            raise ConfigurationError("AI service is not configured")

        settings = self.settings
        workspace_id = request.workspace_id

        usage_check = await asyncio.to_thread(
            check_usage_limit, workspace_id, settings.AI_MONTHLY_TOKEN_LIMIT_DEFAULT
        )
        if not usage_check.allowed:
            raise UsageLimitExceededError(usage_check.used, usage_check.limit)

        conversation, is_new = await self._resolve_conversation(request)
        conversation_id = conversation["id"]

        user_row = await asyncio.to_thread(
            conversations_db.add_message, conversation_id, "user", request.message
        )
        history = await asyncio.to_thread(conversations_db.list_messages, conversation_id)

        level = classify_context_level(request.message)
        log_with_context(
            logger,
            logging.INFO,
            "Chat turn started",
            conversation_id=conversation_id,
            workspace_id=workspace_id,
            context_level=level.value,
            history_messages=len(history),
        )

        workspace_context = await build_workspace_context(workspace_id, level)

        start_wizard = request.start_wizard.model_dump() if request.start_wizard else None
        wizard_mode = resolve_wizard_mode(start_wizard, history)

        project = await self._load_project(workspace_id, request.project_id or conversation.get("project_id"))
        detection = None
        if is_new and project is None and isinstance(wizard_mode, NoWizard):
            detection = detect_large_project(request.message)

        addition = select_prompt_addition(
            wizard_mode,
            project,
            request.epic_id,
            is_new,
            detection,
        )
        system_prompt = build_system_prompt(workspace_context, addition)

        compressed = await compress_history(
            self.provider,
            history,
            threshold=settings.AI_SUMMARY_THRESHOLD,
            keep_recent=settings.AI_SUMMARY_KEEP_RECENT,
            max_tokens=settings.AI_SUMMARY_MAX_TOKENS,
            temperature=settings.AI_SUMMARY_TEMPERATURE,
        )
        transcript: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        transcript.extend(compressed.to_messages())

        response, function_calls, outcome, input_tokens, output_tokens = await self._run_rounds(
            request, conversation_id, transcript
        )
        input_tokens += compressed.input_tokens
        output_tokens += compressed.output_tokens

        return await self._finalize(
            request,
            conversation,
            is_new,
            user_row,
            response,
            function_calls,
            outcome,
            input_tokens,
            output_tokens,
        )

    async def _resolve_conversation(self, request: ChatRequest) -> tuple[dict[str, Any], bool]:
        if request.conversation_id:
            conversation = await asyncio.to_thread(
                conversations_db.get_conversation, request.conversation_id
            )
            # Conversations of other workspaces are indistinguishable from missing ones
            if conversation is None or conversation.get("workspace_id") != request.workspace_id:
                raise ConversationNotFoundError(request.conversation_id)
            return conversation, False

        project_id = await self._resolve_project_id(request.workspace_id, request.project_id)
        conversation = await asyncio.to_thread(
            conversations_db.create_conversation,
            request.workspace_id,
            request.user_id,
            None,
            project_id,
        )
        return conversation, True

    async def _resolve_project_id(self, workspace_id: str, ref: str | None) -> str | None:
        """Project uuid for a key or uuid inside the workspace, or None if not found."""
        # Conversations bind to the project id, never the raw key
        if not ref:
            return None
        row = await asyncio.to_thread(resolve_project, workspace_id, ref)
        return row["id"] if row else None

    async def _load_project(self, workspace_id: str, ref: str | None) -> ProjectContext | None:
        """Project context for the effective project, or None if unset or not found."""
        if not ref:
            return None
        row = await asyncio.to_thread(resolve_project, workspace_id, ref)
        if row is None:
            logger.warning(f"Project {ref} not found in workspace {workspace_id}")
            return None
        return await build_project_context(row["id"], self.pattern_strategy)

    async def _call_model(self, transcript: list[dict[str, Any]], tools) -> ChatResponse:
        try:
            return await self.provider.chat(
                transcript,
                tools=tools,
                temperature=self.settings.AI_TEMPERATURE,
                max_tokens=self.settings.AI_MAX_TOKENS_PER_REQUEST,
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Model call failed: {e}") from e

    async def _run_rounds(
        self,
        request: ChatRequest,
        conversation_id: str,
        transcript: list[dict[str, Any]],
    ) -> tuple[ChatResponse, list[FunctionCallInfo], TurnOutcome, int, int]:
        """
        Alternate model calls and tool execution until the model stops asking
        for tools or the round cap is reached.
        """
        tools = get_tool_definitions()
        max_rounds = self.settings.AI_MAX_MODEL_ROUNDS
        function_calls: list[FunctionCallInfo] = []
        input_tokens = output_tokens = 0
        outcome = TurnOutcome.COMPLETED

        round_index = 0
        while True:
            round_index += 1
            response = await self._call_model(transcript, tools)
            input_tokens += response.usage.input_tokens
            output_tokens += response.usage.output_tokens

            log_with_context(
                logger,
                logging.INFO,
                "Model round completed",
                conversation_id=conversation_id,
                round=round_index,
                tool_calls=len(response.tool_calls),
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

            if not response.tool_calls:
                break

            if round_index >= max_rounds:
                outcome = TurnOutcome.ROUND_LIMIT_REACHED
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Round limit reached, dropping pending tool calls",
                    conversation_id=conversation_id,
                    rounds=round_index,
                    dropped=[tc.name for tc in response.tool_calls],
                )
                break

            transcript.append({
                "role": "assistant",
                "content": response.content,
                "tool_calls": response.tool_calls,
            })

            executed = await self._execute_tool_calls(
                request.workspace_id, request.user_id, response.tool_calls
            )
            for tool_call, item in zip(response.tool_calls, executed):
                transcript.append(item["message"])
                function_calls.append(
                    FunctionCallInfo(
                        name=tool_call.name,
                        arguments=tool_call.arguments,
                        result=summarize_result(item["result"]),
                        executed_at=datetime.now(timezone.utc),
                    )
                )

            await self._inject_project_context(transcript, [item["result"] for item in executed])

        return response, function_calls, outcome, input_tokens, output_tokens

    async def _execute_tool_calls(
        self,
        workspace_id: str,
        user_id: str,
        tool_calls: list[ToolCall],
    ) -> list[dict[str, Any]]:
        """
        Run one round's tool calls.

        Reads run concurrently, then writes run one at a time in request
        order. Results come back in the model's original call order.
        """
        reads, writes = partition_tool_calls(tool_calls)

        read_results = await asyncio.gather(
            *(execute_tool_call(workspace_id, user_id, tc) for tc in reads)
        )
        by_call = {id(tc): result for tc, result in zip(reads, read_results)}

        for tc in writes:
            by_call[id(tc)] = await execute_tool_call(workspace_id, user_id, tc)

        return [by_call[id(tc)] for tc in tool_calls]

    async def _inject_project_context(
        self,
        transcript: list[dict[str, Any]],
        results: list[dict[str, Any]],
    ) -> None:
        """Append a system message per project a tool just created."""
        for result in results:
            data = result.get("data")
            if not result.get("success") or not isinstance(data, dict) or not data.get("projectId"):
                continue
            ctx = await build_project_context(data["projectId"], self.pattern_strategy)
            if ctx is None:
                logger.warning(f"Created project {data['projectId']} could not be loaded for context")
                continue
            transcript.append({
                "role": "system",
                "content": BLOCK_NEW_PROJECT_CONTEXT.format(
                    project_context=format_project_context_for_prompt(ctx)
                ),
            })

    async def _finalize(
        self,
        request: ChatRequest,
        conversation: dict[str, Any],
        is_new: bool,
        user_row: dict[str, Any],
        response: ChatResponse,
        function_calls: list[FunctionCallInfo],
        outcome: TurnOutcome,
        input_tokens: int,
        output_tokens: int,
    ) -> ChatResult:
        structured = extract_structured_data(response.content)
        assistant_row = await asyncio.to_thread(
            conversations_db.add_message,
            conversation["id"],
            "assistant",
            response.content,
            structured,
            input_tokens,
            output_tokens,
            response.model,
        )

        counters = await asyncio.to_thread(
            increment_usage, request.workspace_id, input_tokens, output_tokens, response.model
        )
        limit = await asyncio.to_thread(
            get_monthly_limit, request.workspace_id, self.settings.AI_MONTHLY_TOKEN_LIMIT_DEFAULT
        )

        if is_new and not conversation.get("title"):
            title = generate_conversation_title(request.message)
            updated = await asyncio.to_thread(
                conversations_db.update_conversation, conversation["id"], {"title": title}
            )
            conversation = updated or {**conversation, "title": title}

        return ChatResult(
            conversation=Conversation.model_validate(conversation),
            user_message=Message.model_validate(user_row),
            assistant_message=Message.model_validate(assistant_row),
            usage=TurnUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                monthly_used=counters.total_tokens,
                monthly_limit=limit,
            ),
            function_calls=function_calls or None,
            outcome=outcome,
        )

    # =========================================================================
    # Conversations, settings and usage
    # =========================================================================

    async def create_conversation(
        self,
        workspace_id: str,
        user_id: str,
        title: str | None = None,
        project_id: str | None = None,
    ) -> Conversation:
        project_id = await self._resolve_project_id(workspace_id, project_id)
        row = await asyncio.to_thread(
            conversations_db.create_conversation, workspace_id, user_id, title, project_id
        )
        return Conversation.model_validate(row)

    async def get_conversation(self, workspace_id: str, conversation_id: str) -> Conversation:
        """Conversation in ``workspace_id``; raises ConversationNotFoundError otherwise."""
        row = await asyncio.to_thread(conversations_db.get_conversation, conversation_id)
        if row is None or row.get("workspace_id") != workspace_id:
            raise ConversationNotFoundError(conversation_id)
        return Conversation.model_validate(row)

    async def list_conversations(
        self,
        workspace_id: str,
        user_id: str | None = None,
        include_archived: bool = False,
    ) -> list[Conversation]:
        rows = await asyncio.to_thread(
            conversations_db.list_conversations, workspace_id, user_id, include_archived
        )
        return [Conversation.model_validate(r) for r in rows]

    async def get_messages(self, workspace_id: str, conversation_id: str) -> list[Message]:
        await self.get_conversation(workspace_id, conversation_id)
        rows = await asyncio.to_thread(conversations_db.list_messages, conversation_id)
        return [Message.model_validate(r) for r in rows]

    async def update_conversation(
        self,
        workspace_id: str,
        conversation_id: str,
        updates: dict[str, Any],
    ) -> Conversation:
        await self.get_conversation(workspace_id, conversation_id)
        if updates.get("project_id"):
            updates = {
                **updates,
                "project_id": await self._resolve_project_id(workspace_id, updates["project_id"]),
            }
        row = await asyncio.to_thread(conversations_db.update_conversation, conversation_id, updates)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return Conversation.model_validate(row)

    async def delete_conversation(self, workspace_id: str, conversation_id: str) -> None:
        await self.get_conversation(workspace_id, conversation_id)
        await asyncio.to_thread(conversations_db.delete_conversation, conversation_id)

    async def get_usage(self, workspace_id: str) -> UsageReport:
        counters, limit = await asyncio.gather(
            asyncio.to_thread(get_current_usage, workspace_id),
            asyncio.to_thread(
                get_monthly_limit, workspace_id, self.settings.AI_MONTHLY_TOKEN_LIMIT_DEFAULT
            ),
        )
        return UsageReport(
            input_tokens=counters.input_tokens_used,
            output_tokens=counters.output_tokens_used,
            request_count=counters.request_count,
            limit=limit,
        )

    async def get_ai_settings(self, workspace_id: str) -> AISettings:
        """Stored settings, or a disabled default when the workspace never configured AI."""
        row = await asyncio.to_thread(get_ai_settings, workspace_id)
        if row is None:
            return AISettings(workspace_id=workspace_id, **{**DEFAULT_AI_SETTINGS, "enabled": False})
        return AISettings.model_validate(row)

    async def update_ai_settings(self, workspace_id: str, update: AISettingsUpdate) -> AISettings:
        row = await asyncio.to_thread(
            upsert_ai_settings, workspace_id, update.model_dump(exclude_none=True)
        )
        return AISettings.model_validate(row)
