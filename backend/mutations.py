"""
In-memory task and journal state with optimistic updates.

Every mutation runs as a small saga: apply locally, attempt the remote write,
and on PersistenceError undo the local change for the affected ids only. There is
no locking and no retry; the caller re-issues the action if it wants to.
With user_id=None (offline mode) nothing is persisted and every change sticks.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import database
from models import JournalAnalysis, JournalEntry, ParsedTask, ScheduleResponse, Task
from productivity import resolve_logical_date, tasks_for_day, toggle_completion

logger = logging.getLogger(__name__)

# Fields a caller may not change through update()
IMMUTABLE_TASK_FIELDS = {"id", "completion_history", "created_at", "completed"}


@dataclass
class MutationResult:
    ok: bool
    tasks: list[Task] = field(default_factory=list)  # State after the mutation, or after rollback
    error: Optional[str] = None


class TaskMutationService:
    def __init__(self, user_id: Optional[str] = None, tasks: Optional[list[Task]] = None):
        self.user_id = user_id
        self.tasks: list[Task] = list(tasks or [])

    @property
    def online(self) -> bool:
        return self.user_id is not None

    def load(self) -> list[Task]:
        if self.online:
            self.tasks = database.select_tasks(self.user_id)
        return self.tasks

    def find(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def view(self, day: Optional[str] = None) -> list[Task]:
        return tasks_for_day(self.tasks, day or resolve_logical_date())

    def _replace(self, task: Task) -> None:
        # Always swaps into the latest list; a task deleted meanwhile stays deleted
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    def _remove(self, task_ids: set[str]) -> None:
        self.tasks = [t for t in self.tasks if t.id not in task_ids]

    def _persist(self, label: str, write: Callable[..., Any], *args, **kwargs) -> Optional[str]:
        """Run a remote write. Returns an error message on failure, None on success or offline."""
        if not self.online:
            return None
        try:
            write(*args, **kwargs)
        except database.PersistenceError as e:
            logger.error("%s fault: %s", label, e)
            return str(e)
        return None

    def toggle(self, task_id: str, day: Optional[str] = None) -> Optional[MutationResult]:
        """Flip the ledger entry for `day` (default: the current logical day)."""
        previous = self.find(task_id)
        if previous is None:
            return None
        day = day or resolve_logical_date()
        history = toggle_completion(previous.completion_history, day)
        updated = previous.model_copy(update={"completion_history": history, "completed": history[day]})
        self._replace(updated)

        error = self._persist("Sync", database.update_task_fields, task_id, self.user_id, completion_history=history)
        if error:
            self._replace(previous)
            return MutationResult(ok=False, tasks=[previous], error=error)
        return MutationResult(ok=True, tasks=[updated])

    def create(self, fields: dict) -> MutationResult:
        values = {k: v for k, v in fields.items() if k not in IMMUTABLE_TASK_FIELDS}
        task = Task.model_validate({
            **values,
            "id": str(uuid.uuid4()),
            "created_at": datetime.now().isoformat(),
            "completion_history": {},
        })
        self.tasks = [*self.tasks, task]

        error = self._persist("Write operation", database.upsert_task, task, self.user_id)
        if error:
            self._remove({task.id})
            return MutationResult(ok=False, error=error)
        return MutationResult(ok=True, tasks=[task])

    def update(self, task_id: str, changes: dict) -> Optional[MutationResult]:
        previous = self.find(task_id)
        if previous is None:
            return None
        values = {k: v for k, v in changes.items() if k not in IMMUTABLE_TASK_FIELDS}
        updated = Task.model_validate({**previous.model_dump(), **values})
        self._replace(updated)

        error = self._persist("Write operation", database.upsert_task, updated, self.user_id)
        if error:
            self._replace(previous)
            return MutationResult(ok=False, tasks=[previous], error=error)
        return MutationResult(ok=True, tasks=[updated])

    def delete(self, task_id: str) -> Optional[MutationResult]:
        deleted = self.find(task_id)
        if deleted is None:
            return None
        position = self.tasks.index(deleted)
        self._remove({task_id})

        error = self._persist("Delete operation", database.delete_task, task_id, self.user_id)
        if error:
            restored = list(self.tasks)
            restored.insert(min(position, len(restored)), deleted)
            self.tasks = restored
            return MutationResult(ok=False, tasks=[deleted], error=error)
        return MutationResult(ok=True, tasks=[deleted])

    def bulk_create(self, parsed_tasks: list[ParsedTask]) -> MutationResult:
        """Create one independent task per normalized payload, persisted as a single batch."""
        now = datetime.now().isoformat()
        new_tasks = [
            Task.model_validate({
                **parsed.model_dump(exclude_none=True),
                "id": str(uuid.uuid4()),
                "created_at": now,
                "completion_history": {},
            })
            for parsed in parsed_tasks
        ]
        if not new_tasks:
            return MutationResult(ok=True)
        self.tasks = [*self.tasks, *new_tasks]

        error = self._persist("Routine injection", database.insert_tasks, new_tasks, self.user_id)
        if error:
            self._remove({t.id for t in new_tasks})
            return MutationResult(ok=False, error=error)
        return MutationResult(ok=True, tasks=new_tasks)

    def apply_schedule(self, schedule: ScheduleResponse) -> MutationResult:
        """Adopt suggested start times; any failed write restores every affected task."""
        suggested = {t.id: t.scheduled_start for t in schedule.tasks}
        originals = [t for t in self.tasks if t.id in suggested and t.scheduled_start != suggested[t.id]]
        updated = [t.model_copy(update={"scheduled_start": suggested[t.id]}) for t in originals]
        for task in updated:
            self._replace(task)

        for task in updated:
            error = self._persist(
                "Schedule sync", database.update_task_fields, task.id, self.user_id,
                scheduled_start=task.scheduled_start,
            )
            if error:
                for original in originals:
                    self._replace(original)
                return MutationResult(ok=False, tasks=originals, error=error)
        return MutationResult(ok=True, tasks=updated)


class JournalService:
    """Journal entries, newest first. Last write wins; entries are never versioned."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id
        self._entries: list[JournalEntry] = []

    def load(self) -> list[JournalEntry]:
        if self.user_id is not None:
            self._entries = database.select_journal_entries(self.user_id)
        return self.entries()

    def find(self, entry_id: str) -> Optional[JournalEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def entries(self, query: Optional[str] = None) -> list[JournalEntry]:
        found = self._entries
        if query:
            needle = query.lower()
            found = [
                e for e in found
                if needle in e.content.lower() or any(query in tag for tag in e.tags)
            ]
        return sorted(found, key=lambda e: e.last_updated, reverse=True)

    def _persist(self, label: str, write: Callable[..., Any], *args) -> Optional[str]:
        if self.user_id is None:
            return None
        try:
            write(*args)
        except database.PersistenceError as e:
            logger.error("%s fault: %s", label, e)
            return str(e)
        return None

    def save(self, fields: dict) -> tuple[JournalEntry, bool]:
        """Create or overwrite an entry. Returns the entry now in memory and whether it synced."""
        entry_id = fields.get("id")
        previous = self.find(entry_id) if entry_id else None
        base = previous.model_dump() if previous else {"date": datetime.now().strftime("%Y-%m-%d")}
        values = {k: v for k, v in fields.items() if v is not None}
        entry = JournalEntry.model_validate({
            **base,
            **values,
            "id": entry_id or str(uuid.uuid4()),
            "last_updated": time.time(),
        })
        self._entries = [entry, *[e for e in self._entries if e.id != entry.id]]

        error = self._persist("Journal write", database.upsert_journal_entry, entry, self.user_id)
        if error:
            self._entries = [e for e in self._entries if e.id != entry.id]
            if previous is not None:
                self._entries = [previous, *self._entries]
                return previous, False
            return entry, False
        return entry, True

    def delete(self, entry_id: str) -> Optional[bool]:
        deleted = self.find(entry_id)
        if deleted is None:
            return None
        self._entries = [e for e in self._entries if e.id != entry_id]
        error = self._persist("Journal delete", database.delete_journal_entry, entry_id, self.user_id)
        if error:
            self._entries = [*self._entries, deleted]
            return False
        return True

    def apply_analysis(self, entry_id: str, analysis: JournalAnalysis) -> Optional[tuple[JournalEntry, bool]]:
        if self.find(entry_id) is None:
            return None
        return self.save({
            "id": entry_id,
            "mood": analysis.mood,
            "ai_reflection": analysis.reflection,
            "tags": analysis.tags,
        })
