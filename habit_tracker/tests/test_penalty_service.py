"""
Tests for PenaltyService.

Tests cover:
1. Penalty formula and mode multipliers
2. Cadence table and grace period
3. What-if estimator
"""
import pytest

from habit_tracker.services.penalty_service import PenaltyService


class TestPenaltyFormula:
    """Tests for calculate_penalty"""

    def test_strict_penalty(self):
        """floor(10 × 1.5 × 2) == 30"""
        assert PenaltyService.calculate_penalty(streak=10, mode="strict", missed_days=2) == 30

    def test_flexible_penalty_is_floored(self):
        """floor(5 × 0.5 × 1) == 2"""
        assert PenaltyService.calculate_penalty(streak=5, mode="flexible", missed_days=1) == 2

    def test_zero_streak_means_no_penalty(self):
        assert PenaltyService.calculate_penalty(streak=0, mode="strict", missed_days=10) == 0

    def test_zero_missed_days_means_no_penalty(self):
        assert PenaltyService.calculate_penalty(streak=50, mode="strict", missed_days=0) == 0

    def test_negative_inputs_clamp_to_zero(self):
        assert PenaltyService.calculate_penalty(streak=-3, mode="strict", missed_days=2) == 0
        assert PenaltyService.calculate_penalty(streak=3, mode="strict", missed_days=-2) == 0

    def test_unknown_mode_uses_flexible_multiplier(self):
        assert PenaltyService.get_multiplier("lenient") == 0.5


class TestCadenceWindow:
    """Tests for allowed gaps and missed days"""

    @pytest.mark.parametrize("frequency,allowed", [
        ("daily", 1),
        ("3x_week", 3),
        ("2x_week", 4),
        ("weekly", 7),
        ("monthly", 30),
    ])
    def test_allowed_gap_table(self, frequency, allowed):
        assert PenaltyService.get_allowed_gap(frequency) == allowed

    def test_unknown_frequency_raises(self):
        with pytest.raises(KeyError):
            PenaltyService.get_allowed_gap("hourly")

    def test_grace_day_absorbs_one_late_day(self):
        """Daily habit checked 2 days later: allowed 1 + grace 1, nothing missed"""
        assert PenaltyService.calculate_missed_days(2, "daily") == 0

    def test_missed_days_is_excess_beyond_window(self):
        """Weekly habit, 10 day gap: 10 - (7 + 1) = 2"""
        assert PenaltyService.calculate_missed_days(10, "weekly") == 2

    def test_zero_grace_period(self):
        assert PenaltyService.calculate_missed_days(2, "daily", grace_period_days=0) == 1

    def test_larger_grace_period(self):
        assert PenaltyService.calculate_missed_days(10, "weekly", grace_period_days=3) == 0


class TestEstimate:
    """Tests for the what-if estimator"""

    def test_estimate_without_points(self):
        result = PenaltyService.estimate(streak=10, mode="strict", missed_days=2)

        assert result["penalty"] == 30
        assert result["multiplier"] == 1.5
        assert result["points_before"] is None
        assert result["points_after"] is None

    def test_estimate_clamps_points_after(self):
        result = PenaltyService.estimate(streak=10, mode="strict", missed_days=2, points=20)

        assert result["points_before"] == 20
        assert result["points_after"] == 0

    def test_estimate_with_points(self):
        result = PenaltyService.estimate(streak=4, mode="flexible", missed_days=3, points=100)

        # floor(4 × 0.5 × 3) = 6
        assert result["penalty"] == 6
        assert result["points_after"] == 94
