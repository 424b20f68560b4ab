"""Detect components that several epics plan to build.

Detection is pluggable: ``build_project_context`` takes any object with a
``detect(tasks, epics)`` method. The default looks for component names in
story titles.
"""

import re
from typing import Any, Protocol

# Epics whose stories are settled enough to compare
ACTIVE_EPIC_STATUSES = frozenset({"ready", "in_progress"})


class PatternStrategy(Protocol):
    def detect(self, tasks: list[dict[str, Any]], epics: list[dict[str, Any]]) -> list[str]:
        """Return human-readable pattern lines, sorted."""
        ...


class NullPatternStrategy:
    """Disables cross-epic detection."""

    def detect(self, tasks: list[dict[str, Any]], epics: list[dict[str, Any]]) -> list[str]:
        return []


class ComponentNamePatternStrategy:
    """
    Match ``create|implement|build <Name>(Service|Manager|Handler|Client)`` in story titles.

    Precision is high: a hit names a concrete component in CamelCase with a
    conventional suffix, and a name only counts when it recurs in two or more
    epics. Recall is low: components without one of the four suffixes, names
    written as separate words ("payment service"), other verbs ("add",
    "write"), and stories of epics not yet ``ready``/``in_progress`` are all
    missed. Treat the output as a hint for the model, never as a complete
    inventory.
    """

    COMPONENT_PATTERN = re.compile(
        r"(?:create|implement|build)\s+([A-Z][a-zA-Z]+(?:Service|Manager|Handler|Client))",
        re.IGNORECASE,
    )

    def detect(self, tasks: list[dict[str, Any]], epics: list[dict[str, Any]]) -> list[str]:
        epic_names = {
            e["id"]: e.get("name") or e.get("key") or e["id"]
            for e in epics
            if e.get("status") in ACTIVE_EPIC_STATUSES
        }
        if not epic_names:
            return []

        seen: dict[str, set[str]] = {}
        for task in tasks:
            epic_name = epic_names.get(task.get("epic_id"))
            if not epic_name:
                continue
            match = self.COMPONENT_PATTERN.search(task.get("title") or "")
            if match:
                seen.setdefault(match.group(1), set()).add(epic_name)

        return sorted(
            f"{name} (shared across: {', '.join(sorted(names))})"
            for name, names in seen.items()
            if len(names) > 1
        )


def get_default_strategy() -> PatternStrategy:
    return ComponentNamePatternStrategy()
