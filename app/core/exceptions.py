"""Error taxonomy for chat turns.

Only the first four escalate to callers as turn failures. Tool and
structured-data errors are absorbed inside the turn.
"""


class AIEngineError(Exception):
    """Base class for AI engine errors."""


class ConfigurationError(AIEngineError):
    """No usable model provider is configured."""


class UsageLimitExceededError(AIEngineError):
    """The workspace has spent its monthly token budget."""

    def __init__(self, used: int, limit: int):
        self.used = used
        self.limit = limit
        super().__init__(f"Monthly AI usage limit reached ({used}/{limit} tokens)")


class ConversationNotFoundError(AIEngineError):
    """A conversation id was supplied but does not exist."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class ProviderError(AIEngineError):
    """The model provider failed. The turn is aborted, the user message stays persisted."""


class ToolExecutionError(AIEngineError):
    """A tool handler could not complete. Reported back to the model, never raised to callers."""


class MalformedStructuredDataError(AIEngineError):
    """An assistant reply carried a structured block that could not be parsed."""
