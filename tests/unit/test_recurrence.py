"""Unit tests for the weekly recurrence filter."""

from datetime import date

import pytest

from src.core.errors import InvalidInputError
from src.domain.task import Task
from src.services.recurrence import due_tasks, is_due_on, parse_calendar_date, weekday_index


WEEKDAYS = [True, True, True, True, True, False, False]


def make_task(task_id: str, mask: list | None = None) -> Task:
    return Task(id=task_id, family_id="fam", title=f"Task {task_id}", points=1, recurring_days=mask)


@pytest.mark.unit
class TestWeekdayIndex:
    """Tests for the Monday=0 mask index."""

    def test_monday_is_zero(self):
        assert weekday_index(date(2024, 1, 1)) == 0

    def test_sunday_is_six(self):
        assert weekday_index(date(2024, 1, 7)) == 6

    def test_parse_ignores_time_component(self):
        assert parse_calendar_date("2025-08-06T23:59:59+02:00") == date(2025, 8, 6)

    @pytest.mark.parametrize("value", ["", "06/08/2025", "2025-13-01", "tomorrow"])
    def test_parse_rejects_malformed_dates(self, value):
        with pytest.raises(InvalidInputError):
            parse_calendar_date(value)


@pytest.mark.unit
class TestDueTasks:
    """Tests for due_tasks."""

    def test_weekday_mask_included_on_wednesday(self):
        """A Mon-Fri task is due on a Wednesday."""
        assert is_due_on(make_task("a", WEEKDAYS), date(2025, 8, 6))

    def test_weekday_mask_excluded_on_saturday(self):
        """A Mon-Fri task is not due on a Saturday."""
        assert not is_due_on(make_task("a", WEEKDAYS), date(2025, 8, 9))

    def test_task_without_mask_is_always_due(self):
        task = make_task("a")
        for day in range(4, 11):
            assert is_due_on(task, date(2025, 8, day))

    def test_empty_mask_counts_as_no_mask(self):
        task = make_task("a", [])
        assert task.recurring_days is None
        assert is_due_on(task, date(2025, 8, 9))

    def test_integer_mask_is_coerced(self):
        """Masks stored as 0/1 behave like booleans."""
        task = make_task("a", [1, 1, 1, 1, 1, 0, 0])
        assert is_due_on(task, date(2025, 8, 6))
        assert not is_due_on(task, date(2025, 8, 10))

    def test_preserves_order_and_original_indices(self):
        """Filtered-out tasks still consume an index."""
        weekend_only = [False] * 5 + [True, True]
        tasks = [
            make_task("weekday", WEEKDAYS),
            make_task("weekend", weekend_only),
            make_task("daily"),
        ]

        result = due_tasks(tasks, "2025-08-09")  # Saturday

        assert [(d.task.id, d.original_index) for d in result] == [("weekend", 1), ("daily", 2)]

    def test_empty_input(self):
        assert due_tasks([], "2025-08-09") == []

    def test_malformed_date_raises(self):
        with pytest.raises(InvalidInputError):
            due_tasks([make_task("a")], "not-a-date")

    def test_wrong_mask_length_is_rejected(self):
        with pytest.raises(ValueError, match="7 entries"):
            make_task("a", [True, False, True])
