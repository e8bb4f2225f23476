"""
Penalty calculation service.
Computes point decay for check-ins that arrive after the cadence window.

All methods are pure: they take every input explicitly and never touch a
stored habit, so the same code backs both the check-in flow and the
what-if estimator.
"""
import math
from typing import Optional

from habit_tracker.constants import (
    ALLOWED_GAP_DAYS,
    PENALTY_MULTIPLIERS,
    MODE_FLEXIBLE,
    DEFAULT_GRACE_PERIOD_DAYS
)


class PenaltyService:
    """Service for penalty calculation"""

    @staticmethod
    def get_multiplier(mode: str) -> float:
        """Strict habits decay at 1.5x, anything else at 0.5x"""
        return PENALTY_MULTIPLIERS.get(mode, PENALTY_MULTIPLIERS[MODE_FLEXIBLE])

    @staticmethod
    def get_allowed_gap(frequency: str) -> int:
        """
        Days a check-in may trail the previous one, before grace.

        Raises:
            KeyError: If frequency is unknown
        """
        return ALLOWED_GAP_DAYS[frequency]

    @staticmethod
    def calculate_missed_days(
        gap: int,
        frequency: str,
        grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
    ) -> int:
        """
        Calculate how many days a check-in overshot its window.

        Window = allowed cadence gap + grace period.

        Args:
            gap: Whole days since the last check-in
            frequency: Habit cadence
            grace_period_days: Extra days tolerated before decay

        Returns:
            Days beyond the window (0 when on time)
        """
        allowed = PenaltyService.get_allowed_gap(frequency) + max(0, grace_period_days)
        return max(0, gap - allowed)

    @staticmethod
    def calculate_penalty(streak: int, mode: str, missed_days: int) -> int:
        """
        Calculate point decay for a late check-in.

        Formula: floor(streak × multiplier × missed_days)

        Returns:
            Non-negative penalty
        """
        if streak <= 0 or missed_days <= 0:
            return 0
        multiplier = PenaltyService.get_multiplier(mode)
        return math.floor(streak * multiplier * missed_days)

    @staticmethod
    def estimate(
        streak: int,
        mode: str,
        missed_days: int,
        points: Optional[int] = None
    ) -> dict:
        """
        Preview the XP loss for a hypothetical streak/mode/missed-days combination.

        Nothing is mutated. When ``points`` is given the result also shows the
        balance before and after the decay (clamped at 0).
        """
        penalty = PenaltyService.calculate_penalty(streak, mode, missed_days)
        result = {
            "streak": streak,
            "mode": mode,
            "missed_days": missed_days,
            "multiplier": PenaltyService.get_multiplier(mode),
            "penalty": penalty,
            "points_before": None,
            "points_after": None
        }
        if points is not None:
            result["points_before"] = points
            result["points_after"] = max(0, points - penalty)
        return result
