"""Tests for context-level classification."""

import pytest

from app.context.intent_classifier import classify_context_level
from app.context.models import ContextLevel


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Can you analyze how the team is doing?", ContextLevel.FULL),
        ("Give me an overview", ContextLevel.FULL),
        ("I need the full picture", ContextLevel.FULL),
        ("Who is overloaded this week?", ContextLevel.SCHEDULING),
        ("Schedule the login work", ContextLevel.SCHEDULING),
        ("Does Bob have any time off?", ContextLevel.SCHEDULING),
        ("What's in the backlog?", ContextLevel.BACKLOG),
        ("Help me prioritize", ContextLevel.BACKLOG),
        ("Which items are still pending?", ContextLevel.BACKLOG),
        ("Hello there", ContextLevel.MINIMAL),
        ("", ContextLevel.MINIMAL),
    ],
)
def test_classify_context_level(message, expected):
    assert classify_context_level(message) == expected


def test_full_beats_scheduling_and_backlog():
    assert classify_context_level("Analyze the backlog and sprint capacity") == ContextLevel.FULL


def test_scheduling_beats_backlog():
    assert classify_context_level("Schedule the backlog items") == ContextLevel.SCHEDULING


def test_case_insensitive():
    assert classify_context_level("BACKLOG please") == ContextLevel.BACKLOG


def test_level_detail_flags():
    assert ContextLevel.FULL.includes_scheduling and ContextLevel.FULL.includes_backlog
    assert ContextLevel.SCHEDULING.includes_scheduling and not ContextLevel.SCHEDULING.includes_backlog
    assert ContextLevel.BACKLOG.includes_backlog and not ContextLevel.BACKLOG.includes_scheduling
    assert not ContextLevel.MINIMAL.includes_scheduling and not ContextLevel.MINIMAL.includes_backlog
