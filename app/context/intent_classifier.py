"""Context-level classification from the latest user message.

Plain keyword matching, checked in a fixed order: full, scheduling, backlog.
Anything else gets the minimal context.
"""

from app.context.models import ContextLevel

FULL_KEYWORDS = (
    "analyze",
    "overview",
    "status report",
    "full picture",
    "everything",
)

SCHEDULING_KEYWORDS = (
    "schedule",
    "sprint",
    "week",
    "capacity",
    "assign",
    "plan",
    "overload",
    "availability",
    "time off",
)

BACKLOG_KEYWORDS = (
    "backlog",
    "prioritize",
    "priority",
    "unscheduled",
    "pending",
    "queue",
)

_LEVEL_KEYWORDS: tuple[tuple[ContextLevel, tuple[str, ...]], ...] = (
    (ContextLevel.FULL, FULL_KEYWORDS),
    (ContextLevel.SCHEDULING, SCHEDULING_KEYWORDS),
    (ContextLevel.BACKLOG, BACKLOG_KEYWORDS),
)


def classify_context_level(message: str) -> ContextLevel:
    """
    Pick how much workspace detail a message needs.

    Args:
        message: Latest user message

    Returns:
        First level whose keywords appear in the message (case-insensitive),
        or ContextLevel.MINIMAL
    """
    text = (message or "").lower()
    for level, keywords in _LEVEL_KEYWORDS:
        if any(kw in text for kw in keywords):
            return level
    return ContextLevel.MINIMAL
