"""Unit tests for overtime bonus calculation."""

import pytest

from src.core.config import settings
from src.services.bonus_points import calculate_bonus_points


@pytest.mark.unit
class TestCalculateBonusPoints:
    """Tests for calculate_bonus_points."""

    def test_one_point_per_five_overtime_minutes(self):
        result = calculate_bonus_points(40, 30)

        assert result.bonus_points == 2
        assert result.overtime_minutes == 10
        assert "10 min over estimate" in result.explanation

    def test_partial_block_earns_nothing(self):
        result = calculate_bonus_points(34, 30)

        assert result.bonus_points == 0
        assert result.overtime_minutes == 4

    def test_within_estimate(self):
        assert calculate_bonus_points(25, 30).bonus_points == 0
        assert calculate_bonus_points(30, 30).bonus_points == 0

    @pytest.mark.parametrize(("spent", "estimated"), [(None, 30), (40, None), (0, 30), (40, 0), (-5, 30)])
    def test_missing_or_non_positive_inputs(self, spent, estimated):
        result = calculate_bonus_points(spent, estimated)
        assert result.bonus_points == 0
        assert result.explanation is None

    def test_divisor_comes_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "bonus_minutes_per_point", 10)
        assert calculate_bonus_points(60, 30).bonus_points == 3
