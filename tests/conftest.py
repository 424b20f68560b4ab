"""Pytest configuration and fixtures."""

import importlib
import os
import pkgutil

import pytest

import app.db
from tests.fakes.fake_supabase import FakeSupabase
from tests.fixtures_workspace import seed_project, seed_workspace


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["PM_ENGINE_ENV"] = "test"

    from app.core.config import get_settings

    get_settings.cache_clear()


@pytest.fixture
def fake_db(monkeypatch):
    """Empty in-memory Supabase installed into every ``app.db`` module."""
    db = FakeSupabase()
    for module_info in pkgutil.iter_modules(app.db.__path__):
        module = importlib.import_module(f"app.db.{module_info.name}")
        if hasattr(module, "get_supabase"):
            monkeypatch.setattr(module, "get_supabase", lambda: db)
    return db


@pytest.fixture
def seeded_db(fake_db):
    """Fake database with the standard workspace and project."""
    seed_workspace(fake_db)
    seed_project(fake_db)
    return fake_db
