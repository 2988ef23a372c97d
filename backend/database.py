import sqlite3
import os
import uuid
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

import config
from models import Task, Step, StepDraft, PreferenceSet

DATABASE_PATH = config.DATABASE_PATH

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess

    # Run alembic upgrade from the backend directory. The path is made absolute
    # so alembic migrates the same file this process opens.
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        env={**os.environ, "DATABASE_PATH": os.path.abspath(DATABASE_PATH)},
        check=True
    )

def _row_to_step(row) -> Step:
    """Convert a database row to a Step model."""
    return Step(
        id=row["id"],
        task_id=row["task_id"],
        title=row["title"],
        description=row["description"],
        estimated_minutes=row["estimated_minutes"],
        order_index=row["order_index"],
        completed=bool(row["completed"]),
        completed_at=row["completed_at"],
    )

def _row_to_task(row, steps: Optional[list[Step]] = None) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        status=row["status"],
        guidance=row["guidance"],
        target_date=row["target_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_interacted_at=row["last_interacted_at"],
        steps=steps or [],
    )

def _fetch_steps(conn, task_id: str) -> list[Step]:
    rows = conn.execute(
        "SELECT * FROM steps WHERE task_id = ? ORDER BY order_index",
        (task_id,)
    ).fetchall()
    return [_row_to_step(row) for row in rows]


# Task operations
def create_task_db(
    task_id: str,
    user_id: str,
    title: str,
    category: str = "PERSONAL",
    description: Optional[str] = None,
    status: str = "ACTIVE",
    target_date: Optional[str] = None,
    created_at: Optional[str] = None
) -> Task:
    """Create a task owned by user_id.
    created_at defaults to now (server local time, ISO format).
    """
    if created_at is None:
        created_at = datetime.now().isoformat()

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, user_id, title, description, category, status, target_date, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task_id, user_id, title, description, category, status, target_date, created_at, created_at)
        )
        conn.commit()

    return Task(
        id=task_id,
        user_id=user_id,
        title=title,
        description=description,
        category=category,
        status=status,
        target_date=target_date,
        created_at=created_at,
        updated_at=created_at,
    )

def get_task_db(task_id: str, user_id: Optional[str] = None) -> Optional[Task]:
    """
    Get a task with its steps ordered by order_index.
    If user_id is given, only a task owned by that user is returned.
    """
    with get_db() as conn:
        if user_id is None:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        else:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
                (task_id, user_id)
            ).fetchone()
        if not row:
            return None
        return _row_to_task(row, _fetch_steps(conn, task_id))

def get_recent_tasks_with_steps(user_id: str, limit: int = 50) -> list[Task]:
    """Get a user's most recent tasks, newest first, each with its steps."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit)
        ).fetchall()
        return [_row_to_task(row, _fetch_steps(conn, row["id"])) for row in rows]

def update_task_db(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update (title, status, guidance, last_interacted_at, ...)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        # Filter updates: only include fields that differ from current values
        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "user_id"):
                continue
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            changes["updated_at"] = datetime.now().isoformat()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row, _fetch_steps(conn, task_id))

def replace_breakdown_db(task_id: str, title: str, guidance: str, drafts: list[StepDraft]) -> Optional[Task]:
    """
    Replace a task's steps wholesale and update its title and guidance.

    Delete, insert and update run on one connection and are committed once,
    so readers see either the previous decomposition or the new one.
    Returns None (and writes nothing) if the task does not exist.
    """
    now = datetime.now().isoformat()
    with get_db() as conn:
        try:
            cursor = conn.execute(
                "UPDATE tasks SET title = ?, guidance = ?, updated_at = ? WHERE id = ?",
                (title, guidance, now, task_id)
            )
            if cursor.rowcount == 0:
                conn.rollback()
                return None

            conn.execute("DELETE FROM steps WHERE task_id = ?", (task_id,))
            conn.executemany(
                """INSERT INTO steps
                   (id, task_id, title, description, estimated_minutes, order_index, completed, completed_at)
                   VALUES (?, ?, ?, ?, ?, ?, 0, NULL)""",
                [
                    (str(uuid.uuid4()), task_id, draft.title, draft.description, draft.estimatedMinutes, index)
                    for index, draft in enumerate(drafts)
                ]
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise

        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row, _fetch_steps(conn, task_id))


# Preference operations
def get_preferences_db(user_id: str) -> Optional[PreferenceSet]:
    """Get a user's stored preferences, or None if never saved."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_preferences WHERE user_id = ?",
            (user_id,)
        ).fetchone()
        if not row:
            return None
        return PreferenceSet(
            user_id=row["user_id"],
            tone_preference=row["tone_preference"],
            task_detail_level=row["task_detail_level"],
            updated_at=row["updated_at"],
        )

def upsert_preferences_db(user_id: str, **updates) -> PreferenceSet:
    """Create or partially update a user's preferences. Unknown fields are ignored."""
    now = datetime.now().isoformat()
    current = get_preferences_db(user_id) or PreferenceSet(user_id=user_id)
    merged = current.model_copy(update={
        field: value for field, value in updates.items()
        if field in ("tone_preference", "task_detail_level") and value is not None
    })
    with get_db() as conn:
        conn.execute(
            """INSERT INTO user_preferences (user_id, tone_preference, task_detail_level, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   tone_preference = excluded.tone_preference,
                   task_detail_level = excluded.task_detail_level,
                   updated_at = excluded.updated_at""",
            (user_id, merged.tone_preference, merged.task_detail_level, now)
        )
        conn.commit()
    return merged.model_copy(update={"updated_at": now})
