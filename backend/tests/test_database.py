"""
Tests for database.py - task reads, breakdown replacement, preferences.
"""
import pytest
import sqlite3
import subprocess
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from database import (
    init_db,
    create_task_db,
    get_task_db,
    get_recent_tasks_with_steps,
    update_task_db,
    replace_breakdown_db,
    get_preferences_db,
    upsert_preferences_db,
)
from models import StepDraft


def drafts(*titles):
    return [StepDraft(title=t, description=f"{t} details", estimatedMinutes=10) for t in titles]


def mark_completed(db_path, step_id):
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE steps SET completed = 1, completed_at = ? WHERE id = ?", ("2026-03-02T10:00:00", step_id))
    conn.commit()
    conn.close()


class TestTaskReads:
    """Tests for task creation and ownership-aware reads."""

    def test_create_task_basic(self, test_db):
        """Create a simple task with default category and status."""
        task = create_task_db("id-1", "user-1", "Write essay")

        assert task.id == "id-1"
        assert task.user_id == "user-1"
        assert task.category == "PERSONAL"
        assert task.status == "ACTIVE"
        assert task.guidance is None
        assert task.steps == []

    def test_get_task_checks_owner(self, test_db):
        """A task is only returned to its owner when user_id is given."""
        create_task_db("id-1", "user-1", "Write essay", "ACADEMIC")

        assert get_task_db("id-1", "user-1").title == "Write essay"
        assert get_task_db("id-1", "user-2") is None
        assert get_task_db("id-1").title == "Write essay"

    def test_get_task_not_found(self, test_db):
        assert get_task_db("missing") is None

    def test_recent_tasks_newest_first(self, test_db):
        """Recent tasks come back newest first, limited and scoped to the user."""
        create_task_db("a", "user-1", "Oldest", created_at="2026-01-01T09:00:00")
        create_task_db("b", "user-1", "Middle", created_at="2026-01-02T09:00:00")
        create_task_db("c", "user-1", "Newest", created_at="2026-01-03T09:00:00")
        create_task_db("d", "user-2", "Someone else", created_at="2026-01-04T09:00:00")

        tasks = get_recent_tasks_with_steps("user-1", limit=2)
        assert [t.title for t in tasks] == ["Newest", "Middle"]

    def test_recent_tasks_include_steps(self, test_db):
        create_task_db("a", "user-1", "Task")
        replace_breakdown_db("a", "Task", "g", drafts("One", "Two"))

        tasks = get_recent_tasks_with_steps("user-1")
        assert [s.title for s in tasks[0].steps] == ["One", "Two"]

    def test_update_task_status(self, test_db):
        create_task_db("id-1", "user-1", "Task")
        updated = update_task_db("id-1", status="PAUSED")

        assert updated.status == "PAUSED"

    def test_update_task_ignores_owner_change(self, test_db):
        create_task_db("id-1", "user-1", "Task")
        updated = update_task_db("id-1", user_id="user-2")

        assert updated.user_id == "user-1"

    def test_update_task_not_found(self, test_db):
        assert update_task_db("nonexistent", title="New title") is None


class TestReplaceBreakdown:
    """Tests for the replace-and-update persistence sequence."""

    def test_replace_creates_ordered_steps(self, test_db):
        """Steps get dense zero-based order indexes in generation order."""
        create_task_db("id-1", "user-1", "essay")
        task = replace_breakdown_db("id-1", "Write the essay", "Go gently.", drafts("Open doc", "Outline", "Draft"))

        assert task.title == "Write the essay"
        assert task.guidance == "Go gently."
        assert [s.order_index for s in task.steps] == [0, 1, 2]
        assert [s.title for s in task.steps] == ["Open doc", "Outline", "Draft"]
        assert all(s.completed is False for s in task.steps)

    def test_replace_discards_previous_steps(self, test_db):
        """A second breakdown replaces the first entirely, completed steps included."""
        create_task_db("id-1", "user-1", "essay")
        first = replace_breakdown_db("id-1", "First", "g1", drafts("A", "B", "C"))
        mark_completed(test_db, first.steps[0].id)

        second = replace_breakdown_db("id-1", "Second", "g2", drafts("X", "Y"))

        assert [s.title for s in second.steps] == ["X", "Y"]
        assert all(s.completed is False for s in second.steps)
        assert [s.title for s in get_task_db("id-1").steps] == ["X", "Y"]

    def test_replace_missing_task_writes_nothing(self, test_db):
        assert replace_breakdown_db("missing", "T", "g", drafts("A")) is None

        conn = sqlite3.connect(test_db)
        count = conn.execute("SELECT COUNT(*) FROM steps").fetchone()[0]
        conn.close()
        assert count == 0

    def test_replace_rolls_back_on_failure(self, test_db):
        """If the insert fails, the old steps and title are left untouched."""
        create_task_db("id-1", "user-1", "essay")
        replace_breakdown_db("id-1", "Original", "g", drafts("Keep me"))

        broken = [StepDraft.model_construct(title=None, description="", estimatedMinutes=5)]
        with pytest.raises(sqlite3.IntegrityError):
            replace_breakdown_db("id-1", "Changed", "g2", broken)

        task = get_task_db("id-1")
        assert task.title == "Original"
        assert [s.title for s in task.steps] == ["Keep me"]


class TestPreferences:
    """Tests for preference upsert."""

    def test_no_preferences(self, test_db):
        assert get_preferences_db("user-1") is None

    def test_upsert_creates_with_defaults(self, test_db):
        prefs = upsert_preferences_db("user-1", tone_preference="CASUAL")

        assert prefs.tone_preference == "CASUAL"
        assert prefs.task_detail_level == "DETAILED"
        assert get_preferences_db("user-1").tone_preference == "CASUAL"

    def test_upsert_partial_update_keeps_other_fields(self, test_db):
        upsert_preferences_db("user-1", tone_preference="STRUCTURED")
        prefs = upsert_preferences_db("user-1", task_detail_level="BRIEF")

        assert prefs.tone_preference == "STRUCTURED"
        assert prefs.task_detail_level == "BRIEF"

    def test_upsert_ignores_unknown_fields(self, test_db):
        prefs = upsert_preferences_db("user-1", font_size="huge")

        assert prefs.tone_preference == "SUPPORTIVE"
        assert database.get_preferences_db("user-1") is not None


class TestInitDb:

    def test_migrates_the_file_the_app_opens(self, monkeypatch, tmp_path):
        """Alembic runs from backend/, so a relative DATABASE_PATH is passed as absolute."""
        calls = []
        monkeypatch.setattr(subprocess, "run", lambda cmd, **kwargs: calls.append((cmd, kwargs)))
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(database, "DATABASE_PATH", "inoot.db")

        init_db()

        cmd, kwargs = calls[0]
        assert cmd == ["alembic", "upgrade", "head"]
        assert kwargs["env"]["DATABASE_PATH"] == os.path.join(os.getcwd(), "inoot.db")
        assert kwargs["check"] is True
