"""Dynamic system prompt builder.

Builds the system prompt for one turn from:
- Identity naming the workspace
- Live workspace status from the context builder
- Formats for the structured cards the model may emit
- Detail sections for the context level (capacity, tasks, time off)
- At most one addition: wizard, epic breakdown, project awareness or
  project detection
"""

from dataclasses import dataclass
from typing import Union

from app.chains.project_detection import ProjectDetectionResult
from app.chains.project_wizard import (
    NoWizard,
    WizardInProgress,
    WizardMode,
    WizardStarting,
    build_wizard_prompt,
)
from app.context.models import EpicContext, ProjectContext, WorkspaceContext
from app.context.project_context import format_project_context_for_prompt
from app.context.prompt_blocks import (
    BLOCK_DETECTION_HINT,
    BLOCK_EPIC_BREAKDOWN_APPROACH,
    BLOCK_GUIDELINES,
    BLOCK_IDENTITY,
    BLOCK_PROJECT_AWARENESS_REMINDER,
    BLOCK_PROJECT_DETECTION,
    BLOCK_RESPONSE_FORMATS,
)
from app.core.logging import get_logger

logger = get_logger(__name__)

SCHEDULED_TASKS_CAP = 20
BACKLOG_TASKS_CAP = 15


# =========================
# Prompt additions
# =========================


@dataclass(frozen=True)
class ProjectAwareness:
    project: ProjectContext


@dataclass(frozen=True)
class EpicBreakdown:
    project: ProjectContext
    epic: EpicContext


@dataclass(frozen=True)
class WizardAddition:
    mode: WizardStarting | WizardInProgress


@dataclass(frozen=True)
class ProjectDetection:
    hint: ProjectDetectionResult | None = None


PromptAddition = Union[ProjectAwareness, EpicBreakdown, WizardAddition, ProjectDetection]


def select_prompt_addition(
    wizard_mode: WizardMode,
    project: ProjectContext | None,
    epic_ref: str | None,
    is_new_conversation: bool,
    detection: ProjectDetectionResult | None = None,
) -> PromptAddition | None:
    """
    Pick the single prompt addition for this turn.

    Precedence: wizard (starting or in progress) > epic breakdown (epic given
    and found in the project) > project awareness > project detection (new
    conversations only) > none.

    Args:
        wizard_mode: Resolved wizard mode
        project: Effective project context (explicit or the conversation's), if any
        epic_ref: Epic id or key the user is working on, if any
        is_new_conversation: True when this turn created the conversation
        detection: Heuristic result for the latest message, used as a hint

    Returns:
        The addition, or None
    """
    if not isinstance(wizard_mode, NoWizard):
        return WizardAddition(mode=wizard_mode)

    if project is not None:
        if epic_ref:
            epic = project.find_epic(epic_ref)
            if epic is not None:
                return EpicBreakdown(project=project, epic=epic)
            logger.warning(f"Epic {epic_ref} not found in project {project.id}, using project awareness")
        return ProjectAwareness(project=project)

    if is_new_conversation:
        hint = detection if detection is not None and detection.is_large_project else None
        return ProjectDetection(hint=hint)

    return None


def _render_detection(addition: ProjectDetection) -> str:
    text = BLOCK_PROJECT_DETECTION
    hint = addition.hint
    if hint is None:
        return text

    lines = [BLOCK_DETECTION_HINT.format(confidence=hint.confidence)]
    if hint.suggested_name:
        lines.append(f'Suggested project name based on their description: "{hint.suggested_name}"')
    if hint.suggested_epics:
        lines.append(f"Components detected that could become epics: {', '.join(hint.suggested_epics)}")
    lines.append("The hint may be wrong; decide from the conversation itself.")
    return text + "\n\n" + "\n".join(lines)


def _render_epic_breakdown(addition: EpicBreakdown) -> str:
    epic = addition.epic
    return (
        "You are breaking down an epic into actionable stories/tasks.\n\n"
        f"{format_project_context_for_prompt(addition.project)}\n\n"
        "## Current Epic to Break Down\n"
        f"**{epic.name}** ({epic.key or '-'}) [id: {epic.id}]\n"
        f"{epic.description or 'No description provided'}\n\n"
        f"{BLOCK_EPIC_BREAKDOWN_APPROACH}"
    )


def _render_project_awareness(addition: ProjectAwareness) -> str:
    return (
        "---\n"
        "## Active Project Context\n"
        f"{format_project_context_for_prompt(addition.project)}\n"
        "---\n\n"
        f"{BLOCK_PROJECT_AWARENESS_REMINDER}"
    )


def render_prompt_addition(addition: PromptAddition) -> str:
    if isinstance(addition, WizardAddition):
        return build_wizard_prompt(addition.mode)
    if isinstance(addition, EpicBreakdown):
        return _render_epic_breakdown(addition)
    if isinstance(addition, ProjectAwareness):
        return _render_project_awareness(addition)
    return _render_detection(addition)


# =========================
# Workspace sections
# =========================


def _format_hours(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _build_status_section(context: WorkspaceContext) -> str:
    summary = context.summary
    if summary.overloaded_members:
        overload_line = f"- ⚠️ Overloaded team members: {', '.join(summary.overloaded_members)}"
    else:
        overload_line = "- No team members are currently overloaded"

    return f"""## Current Workspace Status
- Team size: {summary.team_size} members
- Total tasks: {summary.total_tasks}
- Backlog items: {summary.backlog_count}
- Current sprint: {summary.current_sprint_tasks} tasks
- Upcoming deadlines (7 days): {summary.upcoming_deadlines}
- Team availability: {summary.team_capacity_summary}
{overload_line}"""


def _build_detail_sections(context: WorkspaceContext) -> list[str]:
    detailed = context.detailed
    if detailed is None:
        return []

    sections = []

    if detailed.team_capacity:
        lines = ["## Detailed Team Capacity (This Week)"]
        for member in detailed.team_capacity:
            lines.append(
                f"- {member.name}: {_format_hours(member.allocated_hours)}/{_format_hours(member.capacity_hours)}h allocated "
                f"({_format_hours(member.available_hours)}h available) - {member.status}"
            )
        sections.append("\n".join(lines))

    scheduled = detailed.current_week_tasks or []
    if scheduled:
        lines = [f"## Scheduled Tasks ({len(scheduled)} tasks)"]
        for task in scheduled[:SCHEDULED_TASKS_CAP]:
            lines.append(
                f"- [{task.priority}] {task.title} "
                f"({_format_hours(task.estimated_hours)}h, {task.assignee_name or 'Unassigned'})"
            )
        if len(scheduled) > SCHEDULED_TASKS_CAP:
            lines.append(f"... and {len(scheduled) - SCHEDULED_TASKS_CAP} more tasks")
        sections.append("\n".join(lines))

    backlog = detailed.backlog_tasks or []
    if backlog:
        # The detail list is already capped, so totals come from the summary
        backlog_total = max(context.summary.backlog_count, len(backlog))
        lines = [f"## Backlog ({backlog_total} items)"]
        for task in backlog[:BACKLOG_TASKS_CAP]:
            lines.append(f"- [{task.priority}] {task.title} ({_format_hours(task.estimated_hours)}h)")
        if backlog_total > BACKLOG_TASKS_CAP:
            lines.append(f"... and {backlog_total - BACKLOG_TASKS_CAP} more items")
        sections.append("\n".join(lines))

    if detailed.upcoming_time_off:
        lines = ["## Upcoming Time Off"]
        for entry in detailed.upcoming_time_off:
            lines.append(f"- {entry.user_name}: {entry.date_from} to {entry.date_to} ({entry.type or 'time off'})")
        sections.append("\n".join(lines))

    return sections


def build_system_prompt(
    context: WorkspaceContext,
    addition: PromptAddition | None = None,
) -> str:
    """
    Build the system prompt for one turn.

    Args:
        context: Workspace snapshot at the turn's context level
        addition: Optional mode-specific addition

    Returns:
        Complete system prompt string
    """
    sections = [
        BLOCK_IDENTITY.format(workspace_name=context.summary.workspace_name),
        _build_status_section(context),
        BLOCK_GUIDELINES,
        BLOCK_RESPONSE_FORMATS,
    ]
    sections.extend(_build_detail_sections(context))
    if addition is not None:
        sections.append(render_prompt_addition(addition))

    return "\n\n".join(sections)
