"""Tests for wizard state reconstruction and prompt rendering."""

from app.chains.project_wizard import (
    NoWizard,
    WizardInProgress,
    WizardStarting,
    WizardState,
    WizardStep,
    WizardSuggestion,
    build_wizard_prompt,
    resolve_wizard_mode,
)

SUGGESTION = {
    "type": "project_wizard_suggestion",
    "projectName": "Billing Rebuild",
    "detectedScope": "Replace the legacy billing stack",
    "suggestedEpics": ["Payments", "Invoices"],
}

PROGRESS = {
    "type": "project_wizard_progress",
    "step": "epics",
    "project": {"name": "Billing Rebuild", "description": "New stack", "goals": "", "confirmed": True},
    "epics": [
        {"id": "temp-1", "name": "Payments", "estimatedWeeks": 3, "priority": "HIGH", "confirmed": True},
        {"id": "temp-2", "name": "Invoices", "estimatedWeeks": 2, "confirmed": False},
    ],
    "dependencies": [{"fromEpicId": "temp-2", "toEpicId": "temp-1"}],
}


def _assistant(payload):
    return {"role": "assistant", "content": "...", "structured_data": payload}


class TestWizardState:
    def test_from_suggestion(self):
        state = WizardState.from_suggestion(WizardSuggestion.model_validate(SUGGESTION))

        assert state.step == WizardStep.NAME
        assert state.project.name == "Billing Rebuild"
        assert state.project.description == "Replace the legacy billing stack"
        assert [(e.id, e.name) for e in state.epics] == [("temp-1", "Payments"), ("temp-2", "Invoices")]
        assert all(not e.confirmed for e in state.epics)

    def test_from_payload(self):
        state = WizardState.from_payload(PROGRESS)

        assert state.step == WizardStep.EPICS
        assert state.project.confirmed is True
        assert state.epics[0].estimated_weeks == 3
        assert state.epics[1].priority == "MED"
        assert state.dependencies[0].from_epic_id == "temp-2"

    def test_from_payload_rejects_garbage(self):
        assert WizardState.from_payload({"type": "project_wizard_progress", "step": "launch"}) is None

    def test_step_status(self):
        state = WizardState(step=WizardStep.DEPENDENCIES)
        assert state.step_status(WizardStep.NAME) == "done"
        assert state.step_status(WizardStep.EPICS) == "done"
        assert state.step_status(WizardStep.DEPENDENCIES) == "ACTIVE"
        assert state.step_status(WizardStep.REVIEW) == "pending"


class TestResolveWizardMode:
    def test_start_request_wins(self):
        mode = resolve_wizard_mode(SUGGESTION, [_assistant(PROGRESS)])
        assert isinstance(mode, WizardStarting)
        assert mode.state.step == WizardStep.NAME

    def test_continues_from_last_progress(self):
        history = [{"role": "user", "content": "hi"}, _assistant(PROGRESS), {"role": "user", "content": "next"}]
        mode = resolve_wizard_mode(None, history)
        assert isinstance(mode, WizardInProgress)
        assert len(mode.state.epics) == 2

    def test_project_created_ends_wizard(self):
        history = [_assistant(PROGRESS), _assistant({"type": "project_created", "projectId": "p-1"})]
        assert isinstance(resolve_wizard_mode(None, history), NoWizard)

    def test_plain_reply_ends_wizard(self):
        history = [_assistant(PROGRESS), _assistant(None)]
        assert isinstance(resolve_wizard_mode(None, history), NoWizard)

    def test_invalid_progress_is_no_wizard(self):
        history = [_assistant({"type": "project_wizard_progress", "epics": "lots"})]
        assert isinstance(resolve_wizard_mode(None, history), NoWizard)

    def test_empty_history(self):
        assert isinstance(resolve_wizard_mode(None, []), NoWizard)


class TestBuildWizardPrompt:
    def test_name_step_prompt(self):
        mode = resolve_wizard_mode(SUGGESTION, [])
        prompt = build_wizard_prompt(mode)

        assert "- **Step**: name" in prompt
        assert "- **Epics**: 2 defined (0 confirmed)" in prompt
        assert "(current: ACTIVE)" in prompt
        assert '- Name: "Billing Rebuild"' in prompt
        assert "Themes suggested so far: Payments, Invoices" in prompt
        assert '"type": "project_wizard_progress"' in prompt

    def test_later_step_prompt(self):
        prompt = build_wizard_prompt(WizardInProgress(state=WizardState.from_payload(PROGRESS)))

        assert "- **Project**: Billing Rebuild (confirmed: true)" in prompt
        assert "- **Epics**: 2 defined (1 confirmed)" in prompt
        assert "- **Dependencies**: 1 defined" in prompt
        assert "**Step 1: Project Name & Description (current: done)**" in prompt
        assert "**Step 2: Epics (current: ACTIVE)**" in prompt
        assert "**Step 4: Review & Create (current: pending)**" in prompt
        assert "Continue from where you left off" in prompt
