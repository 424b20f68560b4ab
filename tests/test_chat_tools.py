"""Tests for chat tool validation, dispatch and the tool handlers.

Covers:
- validate_arguments() / execute_tool() envelopes
- Read tools: capacity, backlog, task details, schedules, overloads, project context
- Write tools: project creation, story creation, epic dependencies
- Workspace scoping of every lookup
"""

from datetime import timedelta

import pytest

from app.chains.chat_tools import (
    READ_TOOLS,
    TOOL_SCHEMAS,
    WRITE_TOOLS,
    execute_tool,
    execute_tool_call,
    get_tool_definitions,
    get_tool_schema,
    partition_tool_calls,
    summarize_result,
    validate_arguments,
)
from app.core.llm import ToolCall
from tests.fixtures_workspace import (
    ALICE_ID,
    BOB_ID,
    EPIC_AUTH_ID,
    EPIC_BILLING_ID,
    EPIC_REPORTS_ID,
    OTHER_EPIC_ID,
    OTHER_WORKSPACE_ID,
    OUTSIDER_ID,
    PROJECT_ID,
    WORKSPACE_ID,
    this_monday,
)

USER_ID = ALICE_ID


async def run(tool_name, **params):
    return await execute_tool(WORKSPACE_ID, USER_ID, tool_name, params)


# ──────────────────────────────────────────────────────────────────────
# Definitions and classification
# ──────────────────────────────────────────────────────────────────────


class TestDefinitions:
    def test_nine_tools(self):
        names = {s["name"] for s in TOOL_SCHEMAS}
        assert len(names) == 9
        assert names == READ_TOOLS | WRITE_TOOLS
        assert not READ_TOOLS & WRITE_TOOLS

    def test_provider_neutral_definitions(self):
        definitions = get_tool_definitions()
        assert [d.name for d in definitions] == [s["name"] for s in TOOL_SCHEMAS]
        assert definitions[0].parameters["type"] == "object"

    def test_partition_keeps_order(self):
        calls = [
            ToolCall(id="1", name="create_project_with_epics", arguments={}),
            ToolCall(id="2", name="get_team_capacity", arguments={}),
            ToolCall(id="3", name="add_epic_dependency", arguments={}),
            ToolCall(id="4", name="no_such_tool", arguments={}),
        ]
        reads, writes = partition_tool_calls(calls)
        assert [c.id for c in reads] == ["2", "4"]
        assert [c.id for c in writes] == ["1", "3"]


# ──────────────────────────────────────────────────────────────────────
# Argument validation
# ──────────────────────────────────────────────────────────────────────


class TestValidateArguments:
    def _schema(self, name):
        return get_tool_schema(name)["input_schema"]

    def test_valid(self):
        assert validate_arguments(self._schema("get_backlog_tasks"), {"priority": "HIGH", "limit": 5}) == []

    def test_missing_required(self):
        errors = validate_arguments(self._schema("get_user_schedule"), {"userId": "u"})
        assert errors == ["from is required", "to is required"]

    def test_null_counts_as_missing(self):
        assert validate_arguments(self._schema("get_project_context"), {"projectId": None}) == [
            "projectId is required"
        ]

    def test_wrong_type(self):
        assert validate_arguments(self._schema("get_backlog_tasks"), {"limit": "ten"}) == [
            "limit must be of type number"
        ]

    def test_bool_is_not_a_number(self):
        assert validate_arguments(self._schema("get_backlog_tasks"), {"limit": True}) == [
            "limit must be of type number"
        ]

    def test_enum(self):
        errors = validate_arguments(self._schema("get_backlog_tasks"), {"priority": "URGENT"})
        assert errors == ["priority must be one of LOW, MED, HIGH, CRITICAL"]

    def test_pattern(self):
        errors = validate_arguments(self._schema("get_team_capacity"), {"weekStart": "next monday"})
        assert errors == ["weekStart has an invalid format"]

    def test_nested_items(self):
        errors = validate_arguments(
            self._schema("create_stories_for_epic"),
            {"epicId": "E-1", "stories": [{"title": "ok"}, {"estimatedHours": 3}]},
        )
        assert errors == ["stories[1].title is required"]

    def test_non_object(self):
        assert validate_arguments(self._schema("get_team_capacity"), ["x"]) == ["arguments must be an object"]


# ──────────────────────────────────────────────────────────────────────
# Dispatch envelopes
# ──────────────────────────────────────────────────────────────────────


class TestExecuteTool:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, seeded_db):
        result = await run("delete_everything")
        assert result == {"success": False, "error": "Unknown tool: delete_everything"}

    @pytest.mark.asyncio
    async def test_invalid_arguments_do_not_touch_data(self, seeded_db):
        seeded_db.calls.clear()
        result = await run("get_project_context", projectId="Platform")

        assert result["success"] is False
        assert result["error"] == "Invalid arguments: projectId has an invalid format"
        assert seeded_db.calls == []

    @pytest.mark.asyncio
    async def test_handler_crash_is_reported(self, seeded_db, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr("app.chains.chat_tools.tools_capacity.get_team_capacity", boom)
        result = await run("get_team_capacity")
        assert result == {"success": False, "error": "database unavailable"}

    @pytest.mark.asyncio
    async def test_execute_tool_call_builds_transcript_message(self, seeded_db):
        tool_call = ToolCall(id="call-1", name="get_overloaded_users", arguments={})
        outcome = await execute_tool_call(WORKSPACE_ID, USER_ID, tool_call)

        assert outcome["message"]["role"] == "tool"
        assert outcome["message"]["tool_call_id"] == "call-1"
        assert '"success": true' in outcome["message"]["content"]
        assert outcome["result"]["success"] is True


class TestSummarizeResult:
    def test_error(self):
        summary = summarize_result({"success": False, "error": "Epic not found: E-9"})
        assert (summary.success, summary.summary) == (False, "Error: Epic not found: E-9")

    def test_keys(self):
        summary = summarize_result({"success": True, "data": {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5, "f": 6}})
        assert summary.summary == "Returned: a, b, c, d, e"

    def test_no_data(self):
        assert summarize_result({"success": True}).summary == "Executed successfully"


# ──────────────────────────────────────────────────────────────────────
# Capacity and backlog tools
# ──────────────────────────────────────────────────────────────────────


class TestCapacityTools:
    @pytest.mark.asyncio
    async def test_team_capacity(self, seeded_db):
        result = await run("get_team_capacity", weekStart=this_monday().isoformat())

        data = result["data"]
        assert data["weekStart"] == this_monday().isoformat()
        by_id = {m["userId"]: m for m in data["teamMembers"]}
        assert by_id[ALICE_ID]["allocatedHours"] == 45
        assert by_id[ALICE_ID]["status"] == "overloaded"
        assert data["summary"] == {
            "totalCapacity": 70,
            "totalAllocated": 55,
            "totalAvailable": 20,
            "overloadedCount": 1,
        }

    @pytest.mark.asyncio
    async def test_backlog_filters(self, seeded_db):
        critical = await run("get_backlog_tasks", priority="CRITICAL")
        assert [t["title"] for t in critical["data"]["tasks"]] == ["Fix data loss bug"]

        bobs = await run("get_backlog_tasks", assigneeId=BOB_ID)
        assert [t["title"] for t in bobs["data"]["tasks"]] == ["Add CSV export"]

    @pytest.mark.asyncio
    async def test_backlog_limit(self, seeded_db):
        data = (await run("get_backlog_tasks", limit=1))["data"]
        assert data["totalCount"] == 1
        assert data["matchingCount"] == 3

    @pytest.mark.asyncio
    async def test_backlog_never_exceeds_hundred(self, fake_db):
        fake_db.seed("workspaces", {"id": WORKSPACE_ID, "name": "Big"})
        fake_db.seed(
            "tasks",
            *[
                {"workspace_id": WORKSPACE_ID, "title": f"Item {i}", "status": "BACKLOG", "priority": "MED"}
                for i in range(120)
            ],
        )

        assert (await run("get_backlog_tasks", limit=500))["data"]["totalCount"] == 100
        assert (await run("get_backlog_tasks"))["data"]["totalCount"] == 50

    @pytest.mark.asyncio
    async def test_task_details_scoped_to_workspace(self, seeded_db):
        result = await run("get_task_details", taskIds=["t-alice-2", "t-other"])

        tasks = result["data"]["tasks"]
        assert [t["id"] for t in tasks] == ["t-alice-2"]
        assert tasks[0]["assigneeName"] == "Alice"
        # The dependency on another workspace's task is not reported
        assert tasks[0]["dependencies"] == [{"id": "t-alice-1", "title": "Ship login page", "type": "blocks"}]

    @pytest.mark.asyncio
    async def test_task_details_requires_ids(self, seeded_db):
        result = await run("get_task_details", taskIds=[])
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_user_schedule(self, seeded_db):
        monday = this_monday()
        result = await run(
            "get_user_schedule",
            userId=BOB_ID,
            **{"from": monday.isoformat(), "to": (monday + timedelta(days=13)).isoformat()},
        )

        data = result["data"]
        assert data["user"]["name"] == "Bob"
        assert [t["id"] for t in data["tasks"]] == ["t-bob-1"]
        assert data["timeOff"][0]["type"] == "vacation"
        assert data["summary"] == {"totalTasks": 1, "totalAllocatedHours": 10, "hasTimeOff": True}

    @pytest.mark.asyncio
    async def test_user_schedule_outside_workspace(self, seeded_db):
        result = await run("get_user_schedule", userId=OUTSIDER_ID, **{"from": "2025-01-01", "to": "2025-01-31"})
        assert result == {"success": False, "error": "User not found in this workspace"}

    @pytest.mark.asyncio
    async def test_user_schedule_reversed_range(self, seeded_db):
        result = await run("get_user_schedule", userId=BOB_ID, **{"from": "2025-02-01", "to": "2025-01-01"})
        assert result["error"] == "'from' must not be after 'to'"

    @pytest.mark.asyncio
    async def test_overloaded_users(self, seeded_db):
        data = (await run("get_overloaded_users"))["data"]

        assert data["count"] == 1
        alice = data["overloadedUsers"][0]
        assert alice["userId"] == ALICE_ID
        assert alice["overloadHours"] == 5

    @pytest.mark.asyncio
    async def test_other_workspace_sees_none_of_this(self, seeded_db):
        result = await execute_tool(OTHER_WORKSPACE_ID, OUTSIDER_ID, "get_backlog_tasks", {})
        assert [t["title"] for t in result["data"]["tasks"]] == ["Other workspace task"]


# ──────────────────────────────────────────────────────────────────────
# Project tools
# ──────────────────────────────────────────────────────────────────────


class TestProjectTools:
    @pytest.mark.asyncio
    async def test_project_context_by_key(self, seeded_db):
        result = await run("get_project_context", projectId="p-1")

        data = result["data"]
        assert data["project"]["id"] == PROJECT_ID
        assert "Platform Rebuild (P-1)" in data["formatted"]
        assert "projectId" not in data

    @pytest.mark.asyncio
    async def test_project_context_not_found(self, seeded_db):
        result = await run("get_project_context", projectId="P-9")
        assert result == {"success": False, "error": "Project not found: P-9"}

    @pytest.mark.asyncio
    async def test_create_project_ignores_model_workspace(self, seeded_db):
        result = await run(
            "create_project_with_epics",
            workspaceId=OTHER_WORKSPACE_ID,
            name="Mobile App",
            goals="Ship v1",
            epics=[{"name": "Onboarding", "estimatedWeeks": 2}, {"name": "Offline sync", "priority": "HIGH"}],
        )

        data = result["data"]
        assert data["projectKey"] == "P-2"
        assert [e["key"] for e in data["epics"]] == ["E-4", "E-5"]

        project = next(p for p in seeded_db.rows("projects") if p["id"] == data["projectId"])
        assert project["workspace_id"] == WORKSPACE_ID
        assert project["created_by"] == USER_ID
        epics = [e for e in seeded_db.rows("epics") if e["project_id"] == data["projectId"]]
        assert [(e["estimated_weeks"], e["priority"]) for e in epics] == [(2, "MED"), (None, "HIGH")]

    @pytest.mark.asyncio
    async def test_create_project_rejects_blank_name(self, seeded_db):
        result = await run("create_project_with_epics", name="   ", epics=[])
        assert result["success"] is False
        assert not [p for p in seeded_db.rows("projects") if p.get("name") == "   "]

    @pytest.mark.asyncio
    async def test_create_stories_marks_epic_ready(self, seeded_db):
        result = await run(
            "create_stories_for_epic",
            epicId="E-3",
            stories=[{"title": "Build ReportService", "estimatedHours": 8}, {"title": "Export PDF"}],
        )

        data = result["data"]
        assert data["epicId"] == EPIC_REPORTS_ID
        assert data["count"] == 2
        assert [s["key"] for s in data["stories"]] == ["T-10", "T-11"]
        epic = next(e for e in seeded_db.rows("epics") if e["id"] == EPIC_REPORTS_ID)
        assert epic["status"] == "ready"
        stories = [t for t in seeded_db.rows("tasks") if t.get("epic_id") == EPIC_REPORTS_ID]
        assert {t["status"] for t in stories} == {"BACKLOG"}

    @pytest.mark.asyncio
    async def test_create_stories_for_foreign_epic(self, seeded_db):
        result = await run("create_stories_for_epic", epicId=OTHER_EPIC_ID, stories=[{"title": "x"}])
        assert result == {"success": False, "error": f"Epic not found: {OTHER_EPIC_ID}"}

    @pytest.mark.asyncio
    async def test_add_dependency(self, seeded_db):
        result = await run("add_epic_dependency", epicId="E-3", dependsOnEpicId=EPIC_AUTH_ID)

        assert result["data"]["epicKey"] == "E-3"
        assert result["data"]["dependsOnEpicKey"] == "E-1"
        assert result["data"]["type"] == "blocks"
        assert {"epic_id": EPIC_REPORTS_ID, "depends_on_epic_id": EPIC_AUTH_ID} in [
            {"epic_id": r["epic_id"], "depends_on_epic_id": r["depends_on_epic_id"]}
            for r in seeded_db.rows("epic_dependencies")
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "epic, depends_on, error",
        [
            ("E-2", "E-1", "Dependency already exists"),
            ("E-1", "E-2", "This would create a circular dependency"),
            ("E-1", "E-1", "This would create a circular dependency"),
        ],
    )
    async def test_rejected_dependencies(self, seeded_db, epic, depends_on, error):
        before = len(seeded_db.rows("epic_dependencies"))
        result = await run("add_epic_dependency", epicId=epic, dependsOnEpicId=depends_on)

        assert result == {"success": False, "error": error}
        assert len(seeded_db.rows("epic_dependencies")) == before

    @pytest.mark.asyncio
    async def test_dependency_on_unknown_epic(self, seeded_db):
        result = await run("add_epic_dependency", epicId=EPIC_BILLING_ID, dependsOnEpicId="E-42")
        assert result["error"] == "Epic not found: E-42"
