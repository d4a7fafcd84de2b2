"""Overtime bonus points for tasks that took longer than estimated."""

from src.core.config import settings
from src.models.service_models import BonusPoints


def calculate_bonus_points(time_spent_minutes: int | None, estimated_minutes: int | None) -> BonusPoints:
    """One bonus point per full block of overtime minutes beyond the estimate.

    No bonus when either value is missing or non-positive, or when the task was
    finished within its estimate.
    """
    if not time_spent_minutes or not estimated_minutes or time_spent_minutes <= 0 or estimated_minutes <= 0:
        return BonusPoints(bonus_points=0, overtime_minutes=0)

    if time_spent_minutes <= estimated_minutes:
        return BonusPoints(bonus_points=0, overtime_minutes=0)

    overtime_minutes = time_spent_minutes - estimated_minutes
    bonus = overtime_minutes // settings.bonus_minutes_per_point
    if bonus == 0:
        return BonusPoints(bonus_points=0, overtime_minutes=overtime_minutes)

    explanation = (
        f"Overtime bonus: {overtime_minutes} min over estimate ({estimated_minutes} min) = {bonus} bonus points"
    )
    return BonusPoints(bonus_points=bonus, overtime_minutes=overtime_minutes, explanation=explanation)
