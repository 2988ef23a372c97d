"""Add user_preferences table and last_interacted_at for context recaps

Revision ID: 002
Revises: 001
Create Date: 2026-09-20

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS user_preferences (
            user_id TEXT PRIMARY KEY,
            tone_preference TEXT NOT NULL DEFAULT 'SUPPORTIVE',
            task_detail_level TEXT NOT NULL DEFAULT 'DETAILED',
            updated_at TEXT
        )
    """))

    columns = {row[1] for row in conn.execute(text("PRAGMA table_info(tasks)")).fetchall()}

    if "last_interacted_at" not in columns:
        conn.execute(text("ALTER TABLE tasks ADD COLUMN last_interacted_at TEXT"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS user_preferences"))
    # SQLite doesn't support DROP COLUMN easily; last_interacted_at stays
