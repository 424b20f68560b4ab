"""Tests for leveled workspace context building."""

from datetime import date
from unittest.mock import patch

import pytest

from app.context.models import ContextLevel, WorkspaceSummary
from app.context.workspace_context import (
    build_workspace_context,
    build_workspace_summary,
    get_backlog_tasks,
    get_current_week_tasks,
    get_team_capacity,
    get_upcoming_time_off,
    week_bounds,
)
from tests.fixtures_workspace import ALICE_ID, BOB_ID, CAROL_ID, WORKSPACE_ID, this_monday


# ──────────────────────────────────────────────────────────────────────
# Week arithmetic
# ──────────────────────────────────────────────────────────────────────


class TestWeekBounds:
    def test_wednesday_maps_to_monday(self):
        start, end = week_bounds(date(2025, 3, 12))
        assert start == date(2025, 3, 10)
        assert end == date(2025, 3, 17)

    def test_accepts_iso_string(self):
        assert week_bounds("2025-03-16")[0] == date(2025, 3, 10)

    def test_monday_is_its_own_start(self):
        assert week_bounds(date(2025, 3, 10))[0] == date(2025, 3, 10)


# ──────────────────────────────────────────────────────────────────────
# Detail readers
# ──────────────────────────────────────────────────────────────────────


class TestDetailReaders:
    def test_team_capacity(self, seeded_db):
        capacity = {m.id: m for m in get_team_capacity(WORKSPACE_ID)}

        assert set(capacity) == {ALICE_ID, BOB_ID, CAROL_ID}
        alice = capacity[ALICE_ID]
        assert alice.allocated_hours == 45
        assert alice.available_hours == 0
        assert alice.task_count == 2
        assert alice.status == "OVERLOADED"

        bob = capacity[BOB_ID]
        assert (bob.capacity_hours, bob.allocated_hours, bob.available_hours) == (20, 10, 10)
        assert bob.status == "Available"

        assert capacity[CAROL_ID].allocated_hours == 0

    def test_capacity_for_a_week_without_tasks(self, seeded_db):
        capacity = get_team_capacity(WORKSPACE_ID, date(2000, 1, 3))
        assert all(m.allocated_hours == 0 for m in capacity)

    def test_current_week_tasks_highest_priority_first(self, seeded_db):
        tasks = get_current_week_tasks(WORKSPACE_ID)
        assert [t.priority for t in tasks] == ["HIGH", "MED", "LOW"]
        assert tasks[0].assignee_name == "Alice"

    def test_backlog_order_and_limit(self, seeded_db):
        tasks = get_backlog_tasks(WORKSPACE_ID)
        assert [t.title for t in tasks] == ["Fix data loss bug", "Add CSV export", "Polish icons"]
        assert len(get_backlog_tasks(WORKSPACE_ID, limit=2)) == 2

    def test_backlog_excludes_other_workspaces(self, seeded_db):
        titles = {t.title for t in get_backlog_tasks(WORKSPACE_ID, limit=None)}
        assert "Other workspace task" not in titles

    def test_upcoming_time_off(self, seeded_db):
        entries = get_upcoming_time_off(WORKSPACE_ID, today=this_monday())
        assert len(entries) == 1
        assert entries[0].user_name == "Bob"
        assert entries[0].type == "vacation"


# ──────────────────────────────────────────────────────────────────────
# Summary and levels
# ──────────────────────────────────────────────────────────────────────


class TestWorkspaceSummary:
    def test_summary_counters(self, seeded_db):
        summary = build_workspace_summary(WORKSPACE_ID)

        assert summary.workspace_name == "Acme Engineering"
        assert summary.team_size == 3
        # 6 workspace tasks plus 3 project stories
        assert summary.total_tasks == 9
        assert summary.backlog_count == 3
        assert summary.current_sprint_tasks == 3
        assert summary.overloaded_members == ["Alice"]
        assert summary.team_capacity_summary == "2/3 team members have availability"

    def test_missing_workspace_is_zeroed(self, fake_db):
        assert build_workspace_summary("does-not-exist") == WorkspaceSummary()


class TestBuildWorkspaceContext:
    @pytest.mark.asyncio
    async def test_minimal_has_no_details(self, seeded_db):
        ctx = await build_workspace_context(WORKSPACE_ID, ContextLevel.MINIMAL)
        assert ctx.detailed is None
        assert ctx.summary.team_size == 3

    @pytest.mark.asyncio
    async def test_scheduling_details(self, seeded_db):
        ctx = await build_workspace_context(WORKSPACE_ID, ContextLevel.SCHEDULING)
        assert ctx.detailed.team_capacity
        assert ctx.detailed.current_week_tasks
        assert ctx.detailed.backlog_tasks is None

    @pytest.mark.asyncio
    async def test_backlog_details(self, seeded_db):
        ctx = await build_workspace_context(WORKSPACE_ID, ContextLevel.BACKLOG)
        assert len(ctx.detailed.backlog_tasks) == 3
        assert ctx.detailed.team_capacity is None

    @pytest.mark.asyncio
    async def test_full_is_union(self, seeded_db):
        ctx = await build_workspace_context(WORKSPACE_ID, ContextLevel.FULL)
        assert ctx.detailed.team_capacity and ctx.detailed.backlog_tasks

    @pytest.mark.asyncio
    async def test_empty_workspace_yields_zeros(self, fake_db):
        fake_db.seed("workspaces", {"id": "empty-ws", "name": "Empty"})
        ctx = await build_workspace_context("empty-ws", ContextLevel.FULL)

        assert ctx.summary.workspace_name == "Empty"
        assert ctx.summary.team_size == 0
        assert ctx.summary.total_tasks == 0
        assert ctx.summary.team_capacity_summary == "0/0 team members have availability"
        assert ctx.detailed.team_capacity == []
        assert ctx.detailed.backlog_tasks == []

    @pytest.mark.asyncio
    async def test_data_layer_failure_never_raises(self, fake_db):
        with patch(
            "app.context.workspace_context.get_workspace",
            side_effect=RuntimeError("connection refused"),
        ):
            ctx = await build_workspace_context(WORKSPACE_ID, ContextLevel.FULL)

        assert ctx.summary == WorkspaceSummary()
        assert ctx.detailed is None
