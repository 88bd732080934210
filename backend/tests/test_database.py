"""
Tests for database.py - task rows, journal entries, preferences and identity tables.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from database import (
    DuplicateRecord,
    PersistenceError,
    create_session,
    create_user,
    delete_journal_entry,
    delete_session,
    delete_task,
    find_session,
    find_user_by_email,
    get_preferences,
    insert_tasks,
    select_journal_entries,
    select_tasks,
    update_task_fields,
    upsert_journal_entry,
    upsert_preferences,
    upsert_task,
)
from models import JournalEntry, Task
from productivity import resolve_logical_date


def make_task(**fields) -> Task:
    fields.setdefault("id", "t-1")
    fields.setdefault("title", "Task")
    fields.setdefault("created_at", "2024-05-01T08:00:00")
    return Task(**fields)


class TestTasks:
    """Task rows keyed by user."""

    def test_select_empty(self, test_db):
        """No rows for a new user."""
        assert select_tasks("u1") == []

    def test_upsert_roundtrip(self, test_db):
        """JSON and boolean columns survive storage."""
        task = make_task(
            subtasks=["one", "two"],
            completion_history={"2024-05-02": True, "2024-05-03": False},
            is_alarm_enabled=True,
            alarm_time="07:00",
            frequency="Daily",
        )
        upsert_task(task, "u1")

        stored = select_tasks("u1")[0]
        assert stored.subtasks == ["one", "two"]
        assert stored.completion_history == {"2024-05-02": True, "2024-05-03": False}
        assert stored.is_alarm_enabled is True
        assert stored.frequency == "Daily"

    def test_upsert_replaces(self, test_db):
        """Writing the same id twice keeps one row."""
        upsert_task(make_task(title="Old"), "u1")
        upsert_task(make_task(title="New"), "u1")
        assert [t.title for t in select_tasks("u1")] == ["New"]

    def test_completed_derived_for_current_day(self, test_db):
        """`completed` reflects today's ledger entry, not a stored column."""
        today = resolve_logical_date()
        upsert_task(make_task(id="done", frequency="Daily", completion_history={today: True}), "u1")
        upsert_task(make_task(id="old", frequency="Daily", completion_history={"2000-01-01": True}), "u1")
        stored = {t.id: t for t in select_tasks("u1")}
        assert stored["done"].completed is True
        assert stored["old"].completed is False

    def test_rows_scoped_to_user(self, test_db):
        """Users only see their own tasks."""
        insert_tasks([make_task(id="a"), make_task(id="b")], "u1")
        upsert_task(make_task(id="c"), "u2")
        assert {t.id for t in select_tasks("u1")} == {"a", "b"}
        assert [t.id for t in select_tasks("u2")] == ["c"]

    def test_insert_batch_is_atomic(self, test_db):
        """A duplicate id in the batch writes nothing."""
        upsert_task(make_task(id="a"), "u1")
        with pytest.raises(PersistenceError):
            insert_tasks([make_task(id="b"), make_task(id="a")], "u1")
        assert [t.id for t in select_tasks("u1")] == ["a"]

    def test_update_fields(self, test_db):
        """Selected columns change; JSON columns are serialized."""
        upsert_task(make_task(), "u1")
        assert update_task_fields("t-1", "u1", completion_history={"2024-05-02": True}, scheduled_start="09:00")
        stored = select_tasks("u1")[0]
        assert stored.completion_history == {"2024-05-02": True}
        assert stored.scheduled_start == "09:00"

    def test_update_missing_task(self, test_db):
        assert update_task_fields("nope", "u1", title="x") is False

    def test_update_other_users_task(self, test_db):
        """Another user's id is not updated."""
        upsert_task(make_task(), "u1")
        assert update_task_fields("t-1", "u2", title="Hijack") is False
        assert select_tasks("u1")[0].title == "Task"

    def test_update_unknown_column(self, test_db):
        with pytest.raises(ValueError):
            update_task_fields("t-1", "u1", completed=True)

    def test_delete(self, test_db):
        upsert_task(make_task(), "u1")
        assert delete_task("t-1", "u1") is True
        assert delete_task("t-1", "u1") is False
        assert select_tasks("u1") == []


class TestJournalEntries:
    """Journal rows."""

    def test_roundtrip_newest_first(self, test_db):
        """Entries come back newest first with tags decoded."""
        upsert_journal_entry(JournalEntry(id="j1", date="2024-05-01", content="a", last_updated=1.0), "u1")
        upsert_journal_entry(JournalEntry(id="j2", date="2024-05-02", content="b", tags=["Calm"], last_updated=2.0), "u1")
        entries = select_journal_entries("u1")
        assert [e.id for e in entries] == ["j2", "j1"]
        assert entries[0].tags == ["Calm"]

    def test_delete(self, test_db):
        upsert_journal_entry(JournalEntry(id="j1", date="2024-05-01", last_updated=1.0), "u1")
        assert delete_journal_entry("j1", "u1") is True
        assert select_journal_entries("u1") == []


class TestPreferences:
    """Preference blobs."""

    def test_missing(self, test_db):
        assert get_preferences("u1") is None

    def test_upsert_replaces(self, test_db):
        upsert_preferences("u1", {"themeName": "Dusk"})
        upsert_preferences("u1", {"themeName": "Dawn"})
        assert get_preferences("u1") == {"themeName": "Dawn"}


class TestIdentity:
    """Users and sessions."""

    def test_user_and_session(self, test_db):
        """Sessions resolve to the user's id and email."""
        create_user("u1", "ada@example.com", "hash")
        assert find_user_by_email("ada@example.com")["id"] == "u1"
        create_session("tok", "u1")
        assert find_session("tok") == {"token": "tok", "user_id": "u1", "email": "ada@example.com"}
        assert delete_session("tok") is True
        assert find_session("tok") is None

    def test_duplicate_email_rejected(self, test_db):
        create_user("u1", "ada@example.com", "hash")
        with pytest.raises(PersistenceError):
            create_user("u2", "ada@example.com", "hash")

    def test_duplicate_is_distinguishable(self, test_db):
        """Unique-key collisions raise DuplicateRecord, still a PersistenceError."""
        create_user("u1", "ada@example.com", "hash")
        with pytest.raises(DuplicateRecord):
            create_user("u2", "ada@example.com", "hash")


class TestFailures:
    """Store errors surface as PersistenceError."""

    def test_missing_tables(self, broken_db):
        with pytest.raises(PersistenceError):
            select_tasks("u1")
        with pytest.raises(PersistenceError):
            upsert_task(make_task(), "u1")

    def test_path_is_monkeypatched(self, broken_db):
        assert database.DATABASE_PATH == broken_db
