"""Heuristic detection of large initiatives in a user message.

Used only to enrich the project-detection prompt for new conversations. The
model makes the final call on whether to suggest the wizard.
"""

import re

from pydantic import BaseModel, Field

SCALE_KEYWORDS = (
    # Modernization / migration
    "rewrite",
    "rebuild",
    "migration",
    "migrate",
    "overhaul",
    "initiative",
    "platform",
    "modernize",
    "modernization",
    "new system",
    "from scratch",
    "greenfield",
    "replace",
    "redesign",
    "rearchitect",
    "refactor entire",
    "major project",
    # New applications
    "build a",
    "building a",
    "create a",
    "creating a",
    "develop a",
    "developing a",
    "new app",
    "new application",
    "new product",
    "new platform",
    "plan all",
    "plan the features",
    "plan out",
    "build a backlog",
    "feature planning",
    "mvp",
    "startup",
    "from the ground up",
)

MULTI_COMPONENT_PATTERNS = [
    re.compile(r"frontend\s+and\s+backend", re.IGNORECASE),
    re.compile(r"multiple\s+(services?|components?|teams?|systems?)", re.IGNORECASE),
    re.compile(r"\band\b.*\band\b", re.IGNORECASE),
    re.compile(r"across\s+(the\s+)?(entire\s+)?", re.IGNORECASE),
    re.compile(r"full[\s-]?stack", re.IGNORECASE),
    re.compile(r"end[\s-]?to[\s-]?end", re.IGNORECASE),
    re.compile(r"(?:features?|modules?)\s*(?:like|such as|including|for this|:)", re.IGNORECASE),
    re.compile(r"plan\s+(?:all\s+)?(?:the\s+)?features?", re.IGNORECASE),
    re.compile(r"build\s+a\s+backlog", re.IGNORECASE),
]

TIMELINE_PATTERNS = [
    re.compile(r"q[1-4]\s*(20\d{2})?", re.IGNORECASE),
    re.compile(r"next\s+(quarter|month|year)", re.IGNORECASE),
    re.compile(r"\d+\s*(weeks?|months?)", re.IGNORECASE),
    re.compile(r"multi[\s-]?(phase|month|quarter)", re.IGNORECASE),
    re.compile(r"roadmap", re.IGNORECASE),
    re.compile(r"long[\s-]?term", re.IGNORECASE),
]

UNCERTAINTY_PATTERNS = [
    re.compile(r"mess", re.IGNORECASE),
    re.compile(r"legacy", re.IGNORECASE),
    re.compile(r"technical\s+debt", re.IGNORECASE),
    re.compile(r"needs?\s+(to\s+be\s+)?(moderniz|updat|rewrit|replac)", re.IGNORECASE),
    re.compile(r"don'?t\s+know\s+where\s+to\s+start", re.IGNORECASE),
    re.compile(r"overwhelming", re.IGNORECASE),
    re.compile(r"complex", re.IGNORECASE),
    re.compile(r"complicated", re.IGNORECASE),
]

NAME_PATTERNS = [
    re.compile(
        r"(?:rewrite|rebuild|migration|modernization)\s+(?:of\s+)?(?:our\s+|the\s+)?([a-z\s]+?)(?:\s+[-–]|\s+is|\s+needs|$)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:our|the)\s+([a-z\s]+?)\s+(?:needs|is\s+a\s+mess|rewrite|migration)", re.IGNORECASE),
]

# (pattern, epic theme), in the order themes are suggested
EPIC_THEMES = [
    (re.compile(r"auth(?:entication)?|login|users?", re.IGNORECASE), "Authentication & User Management"),
    (re.compile(r"payment|billing|subscription|pricing", re.IGNORECASE), "Billing & Payments"),
    (re.compile(r"api|backend|server", re.IGNORECASE), "API Layer"),
    (re.compile(r"frontend|ui|dashboard", re.IGNORECASE), "Frontend/UI"),
    (re.compile(r"database|data\s*migration|schema", re.IGNORECASE), "Data Migration"),
    (re.compile(r"notification|email|messaging", re.IGNORECASE), "Notifications"),
    (re.compile(r"integration|third[\s-]?party", re.IGNORECASE), "Third-Party Integrations"),
    (re.compile(r"reporting|analytics", re.IGNORECASE), "Reporting & Analytics"),
]

LARGE_PROJECT_THRESHOLD = 0.5


class ProjectSignals(BaseModel):
    scale_keywords: list[str] = Field(default_factory=list)
    multi_component: bool = False
    timeline_hints: bool = False
    uncertainty_markers: bool = False


class ProjectDetectionResult(BaseModel):
    is_large_project: bool
    confidence: float = Field(..., ge=0, le=1)
    signals: ProjectSignals
    suggested_name: str | None = None
    suggested_epics: list[str] = Field(default_factory=list)


def _extract_project_name(message: str) -> str | None:
    for pattern in NAME_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1):
            name = match.group(1).strip()
            if 2 < len(name) < 50:
                return name[0].upper() + name[1:] + " Modernization"
    return None


def _extract_epic_themes(message: str) -> list[str]:
    return [theme for pattern, theme in EPIC_THEMES if pattern.search(message)]


def detect_large_project(message: str) -> ProjectDetectionResult:
    """
    Score how likely a message describes a multi-epic initiative.

    Scoring: any scale keyword +0.4, a second one +0.1, multi-component
    phrasing +0.25, timeline hints +0.15, uncertainty markers +0.1, capped
    at 1.0. Large at 0.5 or above.
    """
    lowered = message.lower()
    signals = ProjectSignals(
        scale_keywords=[kw for kw in SCALE_KEYWORDS if kw in lowered],
        multi_component=any(p.search(message) for p in MULTI_COMPONENT_PATTERNS),
        timeline_hints=any(p.search(message) for p in TIMELINE_PATTERNS),
        uncertainty_markers=any(p.search(message) for p in UNCERTAINTY_PATTERNS),
    )

    confidence = 0.0
    if signals.scale_keywords:
        confidence += 0.4
    if len(signals.scale_keywords) > 1:
        confidence += 0.1
    if signals.multi_component:
        confidence += 0.25
    if signals.timeline_hints:
        confidence += 0.15
    if signals.uncertainty_markers:
        confidence += 0.1
    confidence = round(min(confidence, 1.0), 2)

    return ProjectDetectionResult(
        is_large_project=confidence >= LARGE_PROJECT_THRESHOLD,
        confidence=confidence,
        signals=signals,
        suggested_name=_extract_project_name(message),
        suggested_epics=_extract_epic_themes(message),
    )
