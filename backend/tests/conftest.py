"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation, and never calls Claude.
"""
import pytest
import sqlite3
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database


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
    conn.executescript("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            category TEXT NOT NULL DEFAULT 'PERSONAL',
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            guidance TEXT,
            target_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT,
            last_interacted_at TEXT
        );

        CREATE TABLE steps (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            estimated_minutes INTEGER,
            order_index INTEGER NOT NULL,
            completed INTEGER DEFAULT 0,
            completed_at TEXT
        );

        CREATE TABLE user_preferences (
            user_id TEXT PRIMARY KEY,
            tone_preference TEXT NOT NULL DEFAULT 'SUPPORTIVE',
            task_detail_level TEXT NOT NULL DEFAULT 'DETAILED',
            updated_at TEXT
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def fake_claude(monkeypatch):
    """
    Replace Claude with scripted output.
    Call the fixture with the deltas to stream (and optionally an exception
    to raise after them); returns the list of recorded calls.
    """
    import claude

    calls = []

    def install(deltas, error=None, completion_text=None):
        async def stream_completion(system_prompt, user_message, max_tokens=None):
            calls.append({"system": system_prompt, "user": user_message})
            for delta in deltas:
                yield delta
            if error is not None:
                raise error

        async def create_completion(system_prompt, user_message, max_tokens=None):
            calls.append({"system": system_prompt, "user": user_message})
            if error is not None:
                raise error
            text = completion_text if completion_text is not None else "".join(deltas)
            return text, {"input_tokens": 120, "output_tokens": 80}

        monkeypatch.setattr(claude, "stream_completion", stream_completion)
        monkeypatch.setattr(claude, "create_completion", create_completion)
        return calls

    return install


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations and sets a dummy API key.
    """
    from fastapi.testclient import TestClient
    import breakdown
    import config
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-key")
    breakdown._in_flight.clear()

    with TestClient(main.app) as client:
        yield client
