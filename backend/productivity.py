"""
Logical-day rules: which tasks show up on a given day and whether they count as done.

A productivity day runs 04:00-03:59 local time, so late-night work still lands on
the day it belongs to. Completion lives only in each task's completion_history
ledger (YYYY-MM-DD -> bool); the `completed` flag on a Task is always derived here.
"""
from datetime import date, datetime, timedelta
from typing import Optional

from models import Task, TimeOfDay

LOGICAL_DAY_START_HOUR = 4
EPOCH_DATE = "1970-01-01"  # Creation date assumed for tasks that lack one
PLANNING_HORIZON_DAYS = 14  # Timeline lookahead limit
UNSCHEDULED_START = "23:59"  # Sort key for agenda entries without a start time

PERIODS: tuple[TimeOfDay, ...] = ("Morning", "Afternoon", "Evening", "Night")


def resolve_logical_date(instant: Optional[datetime] = None) -> str:
    """Return the logical date (YYYY-MM-DD) for an instant in host local time."""
    moment = instant or datetime.now()
    if moment.hour < LOGICAL_DAY_START_HOUR:
        moment = moment - timedelta(days=1)
    return moment.strftime("%Y-%m-%d")


def created_date(task: Task) -> str:
    if not task.created_at:
        return EPOCH_DATE
    return task.created_at.split("T")[0][:10]


def is_completed_on(task: Task, day: str) -> bool:
    """
    Completion status of a task on a logical day.
    One-time tasks stay done once any ledger entry is true.
    """
    if task.frequency == "Once":
        return any(done is True for done in task.completion_history.values())
    return bool(task.completion_history.get(day, False))


def is_visible_on(task: Task, day: str) -> bool:
    if task.deadline:
        return task.deadline == day
    if task.frequency != "Once":
        return created_date(task) <= day
    return True


def tasks_for_day(tasks: list[Task], day: str) -> list[Task]:
    """Tasks visible on `day` with `completed` derived for that day."""
    return [
        task.model_copy(update={"completed": is_completed_on(task, day)})
        for task in tasks
        if is_visible_on(task, day)
    ]


def is_visible_in_timeline(task: Task, query: str, today: str) -> bool:
    """
    Visibility for the history/planning timeline.
    Future dates can only show explicitly dated tasks and Daily routines;
    past and present dates also show anything that existed by then.
    """
    if task.deadline == query:
        return True
    if task.frequency == "Daily":
        return created_date(task) <= query
    if query <= today:
        # NOTE: Weekly/Monthly/Yearly tasks are never projected into the future
        return created_date(task) <= query
    return False


def timeline_tasks(tasks: list[Task], query: str, today: Optional[str] = None) -> list[Task]:
    """
    Tasks for an arbitrary timeline date; completion is the raw ledger value for that date.
    `today` is the current logical date unless given.
    """
    today = today or resolve_logical_date()
    return [
        task.model_copy(update={"completed": bool(task.completion_history.get(query, False))})
        for task in tasks
        if is_visible_in_timeline(task, query, today)
    ]


def within_planning_horizon(query: str, today: Optional[str] = None) -> bool:
    current = date.fromisoformat(today or resolve_logical_date())
    return date.fromisoformat(query) <= current + timedelta(days=PLANNING_HORIZON_DAYS)


def toggle_completion(ledger: dict[str, bool], day: str) -> dict[str, bool]:
    """Return a new ledger with `day` flipped. Missing entries count as not done."""
    updated = dict(ledger)
    updated[day] = not ledger.get(day, False)
    return updated


def day_period_for(start: str) -> TimeOfDay:
    """
    Classify a 24h HH:MM start time into a day period.
    Night wraps past midnight (21:00-03:59).
    """
    hour = int(start.split(":")[0])
    if 4 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"


def group_by_period(view: list[Task]) -> dict[str, list[Task]]:
    """Dashboard buckets: pending tasks per period, then everything completed."""
    groups: dict[str, list[Task]] = {period: [] for period in PERIODS}
    groups["completed"] = []
    for task in view:
        if task.completed:
            groups["completed"].append(task)
        else:
            groups[task.preferred_time].append(task)
    return groups


def agenda(view: list[Task]) -> list[Task]:
    pending = [task for task in view if not task.completed]
    return sorted(pending, key=lambda task: task.scheduled_start or UNSCHEDULED_START)


def summarize(view: list[Task]) -> dict:
    completed = [task for task in view if task.completed]
    high_load = [task for task in view if task.mental_load == "High"]
    return {
        # Half-up rounding, not round()'s banker's rounding
        "completion_rate": int(len(completed) * 100 / len(view) + 0.5) if view else 0,
        "focus_minutes": sum(task.estimated_time_minutes for task in completed),
        "high_load_total": len(high_load),
        "high_load_completed": sum(1 for task in high_load if task.completed),
    }
