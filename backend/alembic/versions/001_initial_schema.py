"""Initial schema - tasks, journal entries and user preferences

Revision ID: 001
Revises: None
Create Date: 2026-01-12

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

    # No completed column: completion lives only in the completion_history ledger
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
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
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id)"))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS journal_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            content TEXT DEFAULT '',
            mood TEXT,
            ai_reflection TEXT,
            tags TEXT DEFAULT '[]',
            last_updated REAL NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_journal_entries_user_id ON journal_entries(user_id)"))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS user_preferences (
            user_id TEXT PRIMARY KEY,
            config TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS user_preferences"))
    conn.execute(text("DROP TABLE IF EXISTS journal_entries"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
