"""Initial schema - tasks and their steps

Revision ID: 001
Revises: None
Create Date: 2026-09-02

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            category TEXT NOT NULL DEFAULT 'PERSONAL',
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            guidance TEXT,
            target_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_tasks_user_created ON tasks (user_id, created_at)"))

    # Steps are replaced wholesale on every breakdown; cascade on task delete
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS steps (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            estimated_minutes INTEGER,
            order_index INTEGER NOT NULL,
            completed INTEGER DEFAULT 0,
            completed_at TEXT
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_steps_task_id ON steps (task_id)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS steps"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
