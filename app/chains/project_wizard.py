"""
Conversational project wizard.

Walks the user through name → epics → dependencies → review inside the
normal chat. The wizard has no table of its own: each assistant reply carries
a ``project_wizard_progress`` payload, and the next turn rebuilds the state
from the last one. A fresh wizard is seeded from a
``project_wizard_suggestion`` card the user accepted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.logging import get_logger

logger = get_logger(__name__)


class WizardStep(str, Enum):
    NAME = "name"
    EPICS = "epics"
    DEPENDENCIES = "dependencies"
    REVIEW = "review"

    @classmethod
    def ordered(cls) -> list["WizardStep"]:
        return [cls.NAME, cls.EPICS, cls.DEPENDENCIES, cls.REVIEW]


# =============================================================================
# State
# =============================================================================


class _Draft(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProjectDraft(_Draft):
    name: str = ""
    description: str = ""
    goals: str = ""
    confirmed: bool = False


class EpicDraft(_Draft):
    id: str
    name: str
    description: str = ""
    estimated_weeks: float | None = Field(default=0, alias="estimatedWeeks")
    priority: str = "MED"
    confirmed: bool = False


class DependencyDraft(_Draft):
    from_epic_id: str = Field(alias="fromEpicId")
    to_epic_id: str = Field(alias="toEpicId")
    confirmed: bool = False


class WizardSuggestion(_Draft):
    """What the detection card proposed."""

    project_name: str = Field(alias="projectName")
    detected_scope: str = Field(default="", alias="detectedScope")
    suggested_epics: list[str] = Field(default_factory=list, alias="suggestedEpics")


class WizardState(_Draft):
    step: WizardStep = WizardStep.NAME
    project: ProjectDraft = Field(default_factory=ProjectDraft)
    epics: list[EpicDraft] = Field(default_factory=list)
    dependencies: list[DependencyDraft] = Field(default_factory=list)

    @classmethod
    def from_suggestion(cls, suggestion: WizardSuggestion) -> "WizardState":
        """Fresh state at the name step with one draft epic per suggested theme."""
        return cls(
            step=WizardStep.NAME,
            project=ProjectDraft(
                name=suggestion.project_name,
                description=suggestion.detected_scope,
            ),
            epics=[
                EpicDraft(id=f"temp-{i}", name=name)
                for i, name in enumerate(suggestion.suggested_epics, start=1)
            ],
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WizardState | None":
        """Rebuild state from a progress payload. None if the payload is unusable."""
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring unusable wizard progress payload: {e}")
            return None

    def step_status(self, step: WizardStep) -> str:
        order = WizardStep.ordered()
        if step == self.step:
            return "ACTIVE"
        return "done" if order.index(step) < order.index(self.step) else "pending"


# =============================================================================
# Mode
# =============================================================================


@dataclass(frozen=True)
class NoWizard:
    """The conversation is not in wizard mode."""


@dataclass(frozen=True)
class WizardStarting:
    """The user accepted a suggestion card this turn."""

    state: WizardState


@dataclass(frozen=True)
class WizardInProgress:
    """A previous reply left the wizard at ``state``."""

    state: WizardState


WizardMode = Union[NoWizard, WizardStarting, WizardInProgress]


def resolve_wizard_mode(
    start_wizard: WizardSuggestion | dict[str, Any] | None,
    history: list[dict[str, Any]],
) -> WizardMode:
    """
    Decide the wizard mode for this turn.

    A start request wins. Otherwise the wizard continues only if the latest
    assistant message carries a ``project_wizard_progress`` payload; any other
    payload (including ``project_created``) or none ends wizard mode.

    Args:
        start_wizard: Suggestion the user accepted this turn, if any
        history: Persisted messages, oldest first

    Returns:
        NoWizard, WizardStarting or WizardInProgress
    """
    if start_wizard is not None:
        suggestion = (
            start_wizard
            if isinstance(start_wizard, WizardSuggestion)
            else WizardSuggestion.model_validate(start_wizard)
        )
        return WizardStarting(state=WizardState.from_suggestion(suggestion))

    last_assistant = next((m for m in reversed(history) if m.get("role") == "assistant"), None)
    payload = (last_assistant or {}).get("structured_data")
    if isinstance(payload, dict) and payload.get("type") == "project_wizard_progress":
        state = WizardState.from_payload(payload)
        if state is not None:
            return WizardInProgress(state=state)

    return NoWizard()


# =============================================================================
# Prompt
# =============================================================================


def build_wizard_prompt(mode: WizardStarting | WizardInProgress) -> str:
    """Render the wizard-mode prompt addition for the current state."""
    state = mode.state
    confirmed_epics = sum(1 for e in state.epics if e.confirmed)

    if state.step == WizardStep.NAME:
        opening = (
            "Start by confirming the project details:\n"
            f'- Name: "{state.project.name}"\n'
            f'- Scope: "{state.project.description}"\n\n'
            "Ask about goals/success criteria, then move to epics."
        )
        if state.epics:
            opening += "\nThemes suggested so far: " + ", ".join(e.name for e in state.epics)
    else:
        opening = "Continue from where you left off based on the current state."

    status = {step: state.step_status(step) for step in WizardStep.ordered()}

    return f"""## Project Wizard Mode

You are now in conversational project wizard mode. Walk the user through creating their project step by step, keeping them engaged as a partner throughout.

### Current State
- **Step**: {state.step.value}
- **Project**: {state.project.name} (confirmed: {str(state.project.confirmed).lower()})
- **Epics**: {len(state.epics)} defined ({confirmed_epics} confirmed)
- **Dependencies**: {len(state.dependencies)} defined

### Your Role
You are their AI PM partner. Be conversational, helpful, and proactive. Offer suggestions, explain your reasoning, and help them think through their project.

### Step-by-Step Flow

**Step 1: Project Name & Description (current: {status[WizardStep.NAME]})**
- Confirm the project name and description
- Ask about goals/success criteria
- When confirmed, move to epics

**Step 2: Epics (current: {status[WizardStep.EPICS]})**
- Present suggested epics with YOUR descriptions and estimates (don't make the user fill these in)
- For each epic, provide: name, 2-3 sentence description, estimated weeks, priority
- Let the user add, remove or modify epics
- Ask "Does this look complete?" when ready to move on

**Step 3: Dependencies (current: {status[WizardStep.DEPENDENCIES]})**
- Suggest logical dependencies based on epic nature
- Explain why each dependency makes sense
- Keep this brief: only obvious blocking relationships

**Step 4: Review & Create (current: {status[WizardStep.REVIEW]})**
- Show the final summary
- Ask for explicit confirmation
- Only after the user confirms, create the project with the create_project_with_epics function

### Response Format

Always include a progress card in your response showing the updated state:

```json:project_wizard_progress
{{
  "type": "project_wizard_progress",
  "step": "{state.step.value}",
  "project": {{"name": "Project name", "description": "Project description", "goals": "Success criteria", "confirmed": false}},
  "epics": [
    {{"id": "temp-1", "name": "Epic name", "description": "What this epic covers", "estimatedWeeks": 3, "priority": "MED", "confirmed": false}}
  ],
  "dependencies": [
    {{"fromEpicId": "temp-2", "toEpicId": "temp-1", "confirmed": false}}
  ]
}}
```

When ready for final review, use this format instead:

```json:project_wizard_review
{{
  "type": "project_wizard_review",
  "project": {{"name": "...", "description": "...", "goals": "..."}},
  "epics": [...],
  "dependencies": [...],
  "readyToCreate": true
}}
```

### Important Guidelines
- **Be proactive**: suggest a description and ask if it works instead of asking for one
- **Generate estimates**: provide reasonable week estimates based on the epic scope
- **Suggest dependencies**: don't wait for the user to figure out ordering
- **Never create early**: call create_project_with_epics only after the user confirms the review

### Starting the Conversation
{opening}"""
