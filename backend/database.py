import sqlite3
import json
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

import config
from models import JournalEntry, Task
from productivity import resolve_logical_date

DATABASE_PATH = config.DATABASE_PATH

TASK_COLUMNS = (
    "id", "user_id", "title", "category", "estimated_time_minutes", "mental_load",
    "priority", "preferred_time", "deadline", "scheduled_start", "subtasks", "notes",
    "is_alarm_enabled", "alarm_time", "alarm_sound", "alarm_sound_name",
    "completion_history", "frequency", "created_at",
)
JSON_COLUMNS = {"subtasks", "completion_history", "tags"}


class PersistenceError(Exception):
    """The store rejected a read or write."""


class DuplicateRecord(PersistenceError):
    """A write collided with a unique key."""


@contextmanager
def get_db():
    """Context manager for database connections. sqlite errors surface as PersistenceError."""
    try:
        conn = sqlite3.connect(DATABASE_PATH)
    except sqlite3.Error as e:
        raise PersistenceError(str(e)) from e
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    except sqlite3.IntegrityError as e:
        raise DuplicateRecord(str(e)) from e
    except sqlite3.Error as e:
        raise PersistenceError(str(e)) from e
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )


def _load_json(value, default):
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default

def _row_to_task(row) -> Task:
    """Convert a database row to a Task; `completed` reflects the current logical day."""
    history = _load_json(row["completion_history"], {})
    return Task(
        id=row["id"],
        title=row["title"],
        category=row["category"] or "General",
        estimated_time_minutes=row["estimated_time_minutes"] or 30,
        mental_load=row["mental_load"] or "Medium",
        priority=row["priority"] or "Medium",
        preferred_time=row["preferred_time"] or "Morning",
        deadline=row["deadline"],
        completed=bool(history.get(resolve_logical_date())),
        scheduled_start=row["scheduled_start"],
        subtasks=_load_json(row["subtasks"], []),
        notes=row["notes"],
        is_alarm_enabled=bool(row["is_alarm_enabled"]),
        alarm_time=row["alarm_time"],
        alarm_sound=row["alarm_sound"],
        alarm_sound_name=row["alarm_sound_name"],
        completion_history=history,
        frequency=row["frequency"] or "Once",
        created_at=row["created_at"],
    )

def _task_to_row(task: Task, user_id: str) -> tuple:
    """Serialize a task for storage. The derived `completed` flag is not stored."""
    return (
        task.id,
        user_id,
        task.title or "Untitled Task",
        task.category or "General",
        task.estimated_time_minutes or 30,
        task.mental_load,
        task.priority,
        task.preferred_time,
        task.deadline,
        task.scheduled_start,
        json.dumps(task.subtasks),
        task.notes,
        int(task.is_alarm_enabled),
        task.alarm_time,
        task.alarm_sound,
        task.alarm_sound_name,
        json.dumps(task.completion_history),
        task.frequency,
        task.created_at or datetime.now().isoformat(),
    )

_TASK_UPSERT = (
    f"INSERT OR REPLACE INTO tasks ({', '.join(TASK_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in TASK_COLUMNS)})"
)


# Task operations
def select_tasks(user_id: str) -> list[Task]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at",
            (user_id,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def upsert_task(task: Task, user_id: str) -> Task:
    with get_db() as conn:
        conn.execute(_TASK_UPSERT, _task_to_row(task, user_id))
        conn.commit()
    return task

def insert_tasks(tasks: list[Task], user_id: str) -> None:
    """Insert a batch in one transaction; nothing is written if any row fails."""
    with get_db() as conn:
        conn.executemany(
            f"INSERT INTO tasks ({', '.join(TASK_COLUMNS)}) VALUES ({', '.join('?' for _ in TASK_COLUMNS)})",
            [_task_to_row(task, user_id) for task in tasks]
        )
        conn.commit()

def update_task_fields(task_id: str, user_id: str, **updates) -> bool:
    """
    Update selected columns of one task.
    JSON columns (subtasks, completion_history) are serialized here.
    Returns False when no such task exists for the user.
    """
    changes = {}
    for field, value in updates.items():
        if field not in TASK_COLUMNS or field in ("id", "user_id"):
            raise ValueError(f"Unknown task column: {field}")
        if field in JSON_COLUMNS:
            value = json.dumps(value)
        elif isinstance(value, bool):
            value = int(value)
        changes[field] = value
    if not changes:
        return True

    set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
    values = list(changes.values()) + [task_id, user_id]
    with get_db() as conn:
        cursor = conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ? AND user_id = ?", values)
        conn.commit()
        return cursor.rowcount > 0

def delete_task(task_id: str, user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id))
        conn.commit()
        return cursor.rowcount > 0


# Journal operations
def _row_to_entry(row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        date=row["date"],
        content=row["content"] or "",
        mood=row["mood"],
        ai_reflection=row["ai_reflection"],
        tags=_load_json(row["tags"], []),
        last_updated=row["last_updated"],
    )

def select_journal_entries(user_id: str) -> list[JournalEntry]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM journal_entries WHERE user_id = ? ORDER BY last_updated DESC",
            (user_id,)
        ).fetchall()
        return [_row_to_entry(row) for row in rows]

def upsert_journal_entry(entry: JournalEntry, user_id: str) -> JournalEntry:
    with get_db() as conn:
        conn.execute(
            """INSERT OR REPLACE INTO journal_entries
               (id, user_id, date, content, mood, ai_reflection, tags, last_updated)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (entry.id, user_id, entry.date, entry.content, entry.mood,
             entry.ai_reflection, json.dumps(entry.tags), entry.last_updated)
        )
        conn.commit()
    return entry

def delete_journal_entry(entry_id: str, user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM journal_entries WHERE id = ? AND user_id = ?",
            (entry_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


# Preference operations
def get_preferences(user_id: str) -> Optional[dict]:
    """Return the stored config blob for the user, or None."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT config FROM user_preferences WHERE user_id = ?",
            (user_id,)
        ).fetchone()
        if row:
            config_blob = _load_json(row["config"], None)
            return config_blob if isinstance(config_blob, dict) else None
        return None

def upsert_preferences(user_id: str, config_blob: dict) -> None:
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            "INSERT OR REPLACE INTO user_preferences (user_id, config, updated_at) VALUES (?, ?, ?)",
            (user_id, json.dumps(config_blob), now)
        )
        conn.commit()


# Identity operations
def create_user(user_id: str, email: str, password_hash: str) -> None:
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (user_id, email, password_hash, now)
        )
        conn.commit()

def find_user_by_email(email: str) -> Optional[dict]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return dict(row) if row else None

def create_session(token: str, user_id: str) -> None:
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?)",
            (token, user_id, now)
        )
        conn.commit()

def find_session(token: str) -> Optional[dict]:
    """Session row joined with the user's email."""
    with get_db() as conn:
        row = conn.execute(
            """SELECT sessions.token, sessions.user_id, users.email
               FROM sessions JOIN users ON users.id = sessions.user_id
               WHERE sessions.token = ?""",
            (token,)
        ).fetchone()
        return dict(row) if row else None

def delete_session(token: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        conn.commit()
        return cursor.rowcount > 0
