"""
Repair pass for task-like objects produced by the model.

This is the only gate between LLM output and stored tasks: every field is
defaulted or clamped independently, and only a missing title rejects the object.
"""
import re
from typing import Any, Optional, get_args

from models import Frequency, Level, ParsedTask, TimeOfDay

MAX_TITLE_LENGTH = 200
MAX_NOTES_LENGTH = 1000
MIN_MINUTES = 1
MAX_MINUTES = 1440
DEFAULT_MINUTES = 30

LEVELS = get_args(Level)
TIMES_OF_DAY = get_args(TimeOfDay)
FREQUENCIES = get_args(Frequency)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_START_TIME = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def _parse_int(value: Any) -> Optional[int]:
    """Leading-integer parse: "45 min" -> 45, 12.7 -> 12, anything else -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def _pick(value: Any, allowed: tuple, default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def is_valid_start_time(value: Any) -> bool:
    return isinstance(value, str) and _START_TIME.match(value) is not None


def normalize_task_data(raw: Any) -> Optional[ParsedTask]:
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    # Zero falls back to the default as well
    minutes = _parse_int(raw.get("estimated_time_minutes")) or DEFAULT_MINUTES

    subtasks = raw.get("subtasks")
    notes = raw.get("notes")
    deadline = raw.get("deadline")
    category = raw.get("category")

    return ParsedTask(
        title=title.strip()[:MAX_TITLE_LENGTH],
        category=category if isinstance(category, str) else "General",
        estimated_time_minutes=max(MIN_MINUTES, min(MAX_MINUTES, minutes)),
        mental_load=_pick(raw.get("mental_load"), LEVELS, "Medium"),
        priority=_pick(raw.get("priority"), LEVELS, "Medium"),
        preferred_time=_pick(raw.get("preferred_time"), TIMES_OF_DAY, "Morning"),
        deadline=deadline if isinstance(deadline, str) else None,
        subtasks=[s for s in subtasks if isinstance(s, str) and s] if isinstance(subtasks, list) else [],
        notes=notes[:MAX_NOTES_LENGTH] if isinstance(notes, str) else None,
        frequency=_pick(raw.get("frequency"), FREQUENCIES, "Once"),
    )
