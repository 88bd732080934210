"""
Tests for normalization.py - repairing model output into task payloads.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from normalization import is_valid_start_time, normalize_task_data


class TestRejection:
    """Only a missing or blank title rejects an object."""

    @pytest.mark.parametrize("raw", [
        {},
        {"title": ""},
        {"title": "   "},
        {"title": 42},
        {"title": None, "category": "Work"},
        None,
        "Buy milk",
        ["Buy milk"],
    ])
    def test_rejects_without_usable_title(self, raw):
        """Objects without a usable title normalize to None."""
        assert normalize_task_data(raw) is None


class TestDefaults:
    """Fields are repaired independently."""

    def test_trims_title_and_clamps_minutes(self):
        """Title is trimmed, oversized duration clamped, everything else defaulted."""
        parsed = normalize_task_data({"title": "  Buy milk  ", "estimated_time_minutes": "9999"})
        assert parsed.model_dump(exclude_none=True) == {
            "title": "Buy milk",
            "category": "General",
            "estimated_time_minutes": 1440,
            "mental_load": "Medium",
            "priority": "Medium",
            "preferred_time": "Morning",
            "frequency": "Once",
            "subtasks": [],
        }

    def test_title_truncated(self):
        """Titles are cut to 200 characters."""
        parsed = normalize_task_data({"title": "x" * 500})
        assert len(parsed.title) == 200

    def test_notes_truncated_and_optional(self):
        """Notes are cut to 1000 characters; non-strings are dropped."""
        assert len(normalize_task_data({"title": "a", "notes": "n" * 2000}).notes) == 1000
        assert normalize_task_data({"title": "a", "notes": ["n"]}).notes is None

    @pytest.mark.parametrize("value,expected", [
        ("45", 45),
        ("45 min", 45),
        (90, 90),
        (12.7, 12),
        ("abc", 30),
        (None, 30),
        (0, 30),
        (-5, 1),
        (True, 30),
        ("2000", 1440),
    ])
    def test_minutes_parsing(self, value, expected):
        """Durations parse as leading integers, default to 30 and clamp to [1, 1440]."""
        parsed = normalize_task_data({"title": "a", "estimated_time_minutes": value})
        assert parsed.estimated_time_minutes == expected

    def test_invalid_enums_default(self):
        """Unknown enum values fall back to their defaults."""
        parsed = normalize_task_data({
            "title": "a",
            "mental_load": "Extreme",
            "priority": "urgent",
            "preferred_time": "Dawn",
            "frequency": "Hourly",
        })
        assert parsed.mental_load == "Medium"
        assert parsed.priority == "Medium"
        assert parsed.preferred_time == "Morning"
        assert parsed.frequency == "Once"

    def test_valid_enums_kept(self):
        """Valid enum values pass through."""
        parsed = normalize_task_data({
            "title": "a",
            "mental_load": "High",
            "priority": "Low",
            "preferred_time": "Night",
            "frequency": "Weekly",
        })
        assert (parsed.mental_load, parsed.priority, parsed.preferred_time, parsed.frequency) == (
            "High", "Low", "Night", "Weekly"
        )

    def test_category_must_be_string(self):
        """Non-string categories become General."""
        assert normalize_task_data({"title": "a", "category": 7}).category == "General"
        assert normalize_task_data({"title": "a", "category": "Health"}).category == "Health"

    def test_deadline_only_if_string(self):
        """Deadlines pass through only as strings."""
        assert normalize_task_data({"title": "a", "deadline": "2024-05-01"}).deadline == "2024-05-01"
        assert normalize_task_data({"title": "a", "deadline": 20240501}).deadline is None

    def test_subtasks_filtered(self):
        """Subtasks keep only non-empty strings; non-lists become empty."""
        parsed = normalize_task_data({"title": "a", "subtasks": ["one", "", 3, None, "two"]})
        assert parsed.subtasks == ["one", "two"]
        assert normalize_task_data({"title": "a", "subtasks": "one"}).subtasks == []


class TestStartTime:
    """24h start time validation."""

    @pytest.mark.parametrize("value", ["00:00", "9:30", "09:30", "23:59"])
    def test_valid(self, value):
        assert is_valid_start_time(value)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "3pm", "", None, 930])
    def test_invalid(self, value):
        assert not is_valid_start_time(value)
