"""
Rank classification service.
Maps total points across all habits to a named tier.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from habit_tracker.schemas import HabitRecord
from habit_tracker.exceptions import ValidationException
from habit_tracker.constants import (
    STANDARD_RANK_TIERS,
    EXTENDED_RANK_TIERS,
    RANK_TABLE_STANDARD,
    RANK_TABLE_EXTENDED
)


@dataclass(frozen=True)
class RankTier:
    name: str
    color: str
    threshold: int


@dataclass(frozen=True)
class Rank:
    name: str
    color: str
    threshold: int
    total_points: int
    next_name: Optional[str] = None
    next_threshold: Optional[int] = None
    xp_to_next: Optional[int] = None


class RankTable:
    """Ordered tier ladder, lowest first, starting at 0 points"""

    def __init__(self, tiers: Sequence[Tuple[str, str, int]]):
        if not tiers:
            raise ValidationException("rank_table", "at least one tier is required")

        self.tiers: List[RankTier] = [RankTier(*tier) for tier in tiers]

        if self.tiers[0].threshold != 0:
            raise ValidationException("rank_table", "lowest tier must start at 0")
        for lower, upper in zip(self.tiers, self.tiers[1:]):
            if upper.threshold <= lower.threshold:
                raise ValidationException(
                    "rank_table",
                    f"thresholds must be strictly ascending ({lower.name} >= {upper.name})"
                )

    def __len__(self) -> int:
        return len(self.tiers)


STANDARD_RANK_TABLE = RankTable(STANDARD_RANK_TIERS)
EXTENDED_RANK_TABLE = RankTable(EXTENDED_RANK_TIERS)

RANK_TABLES = {
    RANK_TABLE_STANDARD: STANDARD_RANK_TABLE,
    RANK_TABLE_EXTENDED: EXTENDED_RANK_TABLE,
}


class RankService:
    """Service for rank classification"""

    @staticmethod
    def get_table(name: Optional[str]) -> RankTable:
        """Rank table by settings name, standard when unknown"""
        return RANK_TABLES.get(name or RANK_TABLE_STANDARD, STANDARD_RANK_TABLE)

    @staticmethod
    def total_points(habits: Iterable[HabitRecord]) -> int:
        """Sum of points across all habits"""
        return sum(habit.points for habit in habits)

    @staticmethod
    def classify(total_points: int, table: RankTable = STANDARD_RANK_TABLE) -> Rank:
        """
        Classify total points into a tier.

        Picks the highest tier whose threshold does not exceed total_points
        (lower bound inclusive) and reports the distance to the next one.

        Args:
            total_points: Sum of every habit's points
            table: Tier ladder to classify against

        Returns:
            Rank with next-tier info (None at the top tier)
        """
        points = max(0, total_points)
        index = 0
        for i, tier in enumerate(table.tiers):
            if tier.threshold <= points:
                index = i
            else:
                break

        current = table.tiers[index]
        if index + 1 < len(table):
            upcoming = table.tiers[index + 1]
            return Rank(
                name=current.name,
                color=current.color,
                threshold=current.threshold,
                total_points=points,
                next_name=upcoming.name,
                next_threshold=upcoming.threshold,
                xp_to_next=upcoming.threshold - points
            )

        return Rank(
            name=current.name,
            color=current.color,
            threshold=current.threshold,
            total_points=points
        )
