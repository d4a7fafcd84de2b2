"""Completion timestamps for backdated completions."""

from datetime import datetime

from src.services.recurrence import parse_calendar_date


def resolve_completion_timestamp(selected_date: str, now: datetime | None = None) -> str:
    """Build the completed_at timestamp for a completion recorded on selected_date.

    The calendar date always comes from selected_date and only the time of day
    (hour, minute, second) comes from now, so marking a task done "as of
    yesterday" records yesterday at the current clock time rather than today or
    midnight. The timezone of now is carried onto the result.

    Args:
        selected_date: ISO calendar date the user picked (may be today, past or future)
        now: Current wall-clock time; defaults to local time

    Returns:
        ISO-8601 timestamp

    Raises:
        InvalidInputError: If selected_date is not an ISO date
    """
    day = parse_calendar_date(selected_date)
    current = now or datetime.now().astimezone()
    completed_at = datetime(
        day.year,
        day.month,
        day.day,
        current.hour,
        current.minute,
        current.second,
        tzinfo=current.tzinfo,
    )
    return completed_at.isoformat()
