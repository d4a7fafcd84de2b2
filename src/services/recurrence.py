"""Weekly recurrence filtering of tasks for a calendar day."""

from collections.abc import Sequence
from datetime import date

from src.core.errors import InvalidInputError
from src.domain.task import Task
from src.models.service_models import DueTask


def parse_calendar_date(date_str: str) -> date:
    """Parse an ISO calendar date, ignoring any time component.

    Raises:
        InvalidInputError: If the string is not an ISO date
    """
    try:
        return date.fromisoformat(date_str[:10])
    except (TypeError, ValueError) as e:
        msg = f"Invalid date: {date_str!r}. Use YYYY-MM-DD"
        raise InvalidInputError(msg) from e


def weekday_index(day: date) -> int:
    """Index into a recurrence mask: Monday=0 .. Sunday=6."""
    return day.weekday()


def is_due_on(task: Task, day: date) -> bool:
    """A task without a mask is due every day; otherwise its weekday entry decides."""
    if not task.recurring_days:
        return True
    return bool(task.recurring_days[weekday_index(day)])


def due_tasks(tasks: Sequence[Task], date_str: str) -> list[DueTask]:
    """Return the tasks due on date_str in input order, each with its original index.

    Callers use original_index to look up per-day completion entries keyed by
    position, so filtered-out tasks still consume an index.
    """
    day = parse_calendar_date(date_str)
    return [DueTask(task=task, original_index=index) for index, task in enumerate(tasks) if is_due_on(task, day)]
