"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database and a temp local asset cache for isolation.
"""
import pytest
import sqlite3
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database

SCHEMA = """
    CREATE TABLE tasks (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        category TEXT DEFAULT 'General',
        estimated_time_minutes INTEGER DEFAULT 30,
        mental_load TEXT DEFAULT 'Medium',
        priority TEXT DEFAULT 'Medium',
        preferred_time TEXT DEFAULT 'Morning',
        deadline TEXT,
        scheduled_start TEXT,
        subtasks TEXT DEFAULT '[]',
        notes TEXT,
        is_alarm_enabled INTEGER DEFAULT 0,
        alarm_time TEXT,
        alarm_sound TEXT,
        alarm_sound_name TEXT,
        completion_history TEXT DEFAULT '{}',
        frequency TEXT DEFAULT 'Once',
        created_at TEXT NOT NULL
    );

    CREATE TABLE journal_entries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        content TEXT DEFAULT '',
        mood TEXT,
        ai_reflection TEXT,
        tags TEXT DEFAULT '[]',
        last_updated REAL NOT NULL
    );

    CREATE TABLE user_preferences (
        user_id TEXT PRIMARY KEY,
        config TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE sessions (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
"""


class FakeLLM:
    """Stands in for LLMClient: returns queued responses or raises `error`."""

    def __init__(self):
        self.responses = []
        self.error = None
        self.calls = []

    async def complete(self, prompt, schema=None, max_tokens=1024):
        self.calls.append({"prompt": prompt, "schema": schema})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else ""


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def broken_db(monkeypatch, tmp_path):
    """Point the store at a database with no tables so every write fails."""
    db_path = str(tmp_path / "broken.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    yield db_path


@pytest.fixture
def cache_dir(monkeypatch, tmp_path):
    directory = tmp_path / "cache"
    monkeypatch.setattr(config, "LOCAL_CACHE_DIR", str(directory))
    yield directory


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def app_client(test_db, cache_dir, fake_llm, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations and swaps in the fake LLM.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "llm", fake_llm)
    monkeypatch.setattr(main, "workspaces", {})
    monkeypatch.setattr(main, "loading_workspaces", {})

    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def auth_headers(app_client):
    """Sign up a fresh user and return bearer headers for it."""
    response = app_client.post("/auth/signup", json={"email": "ada@example.com", "password": "correct-horse"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
