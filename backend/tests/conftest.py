"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import pytest
import sqlite3
import sys
import os
from types import SimpleNamespace

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(config, "DATABASE_PATH", db_path)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE team_members (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            color TEXT NOT NULL,
            slack_user_id TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            color TEXT NOT NULL,
            is_active INTEGER DEFAULT 1,
            created_at TEXT NOT NULL
        );

        CREATE TABLE updates (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            raw_text TEXT NOT NULL,
            date TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            update_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            project_id TEXT NOT NULL,
            description TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'todo',
            mentioned_users TEXT DEFAULT '[]',
            due_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def task_count(test_db):
    """Callable returning the number of rows in the tasks table."""
    def count():
        with database.get_db() as conn:
            return conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0]
    return count


@pytest.fixture
def seeded_db(test_db):
    """Test database with the default team members and projects."""
    from seed import seed_db
    seed_db()
    yield test_db


@pytest.fixture
def member(seeded_db):
    """The seeded member 'Kenneth'."""
    return next(m for m in database.get_team_members() if m.name == "Kenneth")


@pytest.fixture
def projects(seeded_db):
    """Seeded projects keyed by name."""
    return {p.name: p for p in database.get_projects()}


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)

    with TestClient(main.app) as client:
        yield client


class FakeMessages:
    """Stands in for client.messages; returns canned text and records calls."""

    def __init__(self, text):
        self.text = text
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


@pytest.fixture
def fake_model(monkeypatch):
    """Replace the Anthropic client with one that returns a configurable response."""
    import ai

    messages = FakeMessages('{"tasks": []}')
    monkeypatch.setattr(ai, "client", SimpleNamespace(messages=messages))
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-key")
    return messages


class FakeSlack:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def chat_postMessage(self, channel, text):
        if self.fail:
            raise RuntimeError("slack is down")
        self.sent.append({"channel": channel, "text": text})
        return {"ok": True}


@pytest.fixture
def fake_slack(monkeypatch):
    import notifications

    slack = FakeSlack()
    monkeypatch.setattr(notifications, "slack", slack)
    return slack
