"""Project context: epics, dependency graph, story counts and shared components.

The formatted fragment goes straight into the system prompt, so every list in
it has a fixed order and the same project always renders the same text.
"""

import asyncio
from collections import Counter

from app.context.cross_epic_patterns import PatternStrategy, get_default_strategy
from app.context.models import EpicContext, ProjectContext
from app.core.logging import get_logger
from app.db.conversations import list_project_conversation_titles
from app.db.projects import get_project, list_epic_dependencies, list_epic_tasks, list_epics

logger = get_logger(__name__)

EPIC_STATUS_GLYPHS = {
    "draft": "📝",
    "ready_for_breakdown": "📋",
    "breaking_down": "🔄",
    "ready": "✅",
    "in_progress": "🚧",
    "done": "✓",
}

RECENT_CONVERSATION_LIMIT = 5


async def build_project_context(
    project_id: str,
    strategy: PatternStrategy | None = None,
) -> ProjectContext | None:
    """
    Load a project with its epic graph.

    Args:
        project_id: Project UUID
        strategy: Cross-epic pattern detector (default: component names in story titles)

    Returns:
        ProjectContext, or None if the project does not exist
    """
    project = await asyncio.to_thread(get_project, project_id)
    if project is None:
        return None

    epics, titles = await asyncio.gather(
        asyncio.to_thread(list_epics, project_id),
        asyncio.to_thread(list_project_conversation_titles, project_id, RECENT_CONVERSATION_LIMIT),
    )
    epic_ids = [e["id"] for e in epics]
    tasks, edges = await asyncio.gather(
        asyncio.to_thread(list_epic_tasks, epic_ids),
        asyncio.to_thread(list_epic_dependencies, epic_ids),
    )

    story_counts = Counter(t["epic_id"] for t in tasks)
    key_by_id = {e["id"]: e.get("key") or e["id"] for e in epics}

    depends_on: dict[str, list[str]] = {}
    blocks: dict[str, list[str]] = {}
    for edge in edges:
        src, dst = edge["epic_id"], edge["depends_on_epic_id"]
        # Edges into epics of other projects are not part of this graph
        if src not in key_by_id or dst not in key_by_id:
            continue
        depends_on.setdefault(src, []).append(key_by_id[dst])
        blocks.setdefault(dst, []).append(key_by_id[src])

    strategy = strategy or get_default_strategy()
    patterns = sorted(strategy.detect(tasks, epics))

    return ProjectContext(
        id=project["id"],
        key=project.get("key"),
        name=project.get("name") or "Untitled project",
        description=project.get("description"),
        goals=project.get("goals"),
        status=project.get("status"),
        epics=[
            EpicContext(
                id=e["id"],
                key=e.get("key"),
                name=e.get("name") or "",
                description=e.get("description"),
                status=e.get("status") or "draft",
                priority=e.get("priority"),
                estimated_weeks=e.get("estimated_weeks"),
                story_count=story_counts.get(e["id"], 0),
                depends_on=sorted(depends_on.get(e["id"], [])),
                blocks=sorted(blocks.get(e["id"], [])),
            )
            for e in epics
        ],
        recent_conversations=titles,
        cross_epic_patterns=patterns,
    )


def _format_weeks(weeks: float) -> str:
    return str(int(weeks)) if float(weeks).is_integer() else str(weeks)


def format_project_context_for_prompt(ctx: ProjectContext) -> str:
    """Render a project context as a prompt fragment."""
    lines = [f"## Project: {ctx.name} ({ctx.key or 'no key'}) [id: {ctx.id}]"]
    if ctx.description:
        lines.append(f"Description: {ctx.description}")
    if ctx.goals:
        lines.append(f"Goals: {ctx.goals}")
    lines.append(f"Status: {ctx.status or 'unknown'}")

    if ctx.epics:
        lines.append("")
        lines.append(f"## Epics ({len(ctx.epics)} total)")
        lines.append("Use epic keys (E-1, E-2, etc.) or the ids shown when calling functions.")
        for epic in ctx.epics:
            glyph = EPIC_STATUS_GLYPHS.get(epic.status, "•")
            line = f"{glyph} **{epic.name}** ({epic.key or '-'}) [id: {epic.id}] - {epic.status}"
            if epic.story_count > 0:
                line += f" - {epic.story_count} stories"
            if epic.estimated_weeks:
                line += f" - ~{_format_weeks(epic.estimated_weeks)} weeks"
            lines.append("")
            lines.append(line)
            if epic.description:
                lines.append(f"   {epic.description}")
            if epic.depends_on:
                lines.append(f"   ⬅ Depends on: {', '.join(epic.depends_on)}")
            if epic.blocks:
                lines.append(f"   ➡ Blocks: {', '.join(epic.blocks)}")

    if ctx.cross_epic_patterns:
        lines.append("")
        lines.append("## Shared Components")
        lines.extend(f"- {pattern}" for pattern in ctx.cross_epic_patterns)

    if ctx.recent_conversations:
        lines.append("")
        lines.append("## Previous Conversations")
        lines.extend(f"- {title}" for title in ctx.recent_conversations)

    return "\n".join(lines)
