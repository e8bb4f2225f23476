"""
Progress series service.
Reshapes check-in histories into per-date rows for charting streaks, and
derives the category view over the habit collection.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Sequence

from habit_tracker.schemas import HabitRecord
from habit_tracker.services.date_service import DateService
from habit_tracker.services.penalty_service import PenaltyService
from habit_tracker.constants import SERIES_COLORS, SERIES_DATE_KEY

MIN_TREND_POINTS = 2


@dataclass
class ProgressSeries:
    dates: List[date] = field(default_factory=list)
    # One row per date: {"date": d, <habit_id>: streak or None}
    rows: List[Dict[str, object]] = field(default_factory=list)
    lines: List[Dict[str, str]] = field(default_factory=list)

    @property
    def has_trend(self) -> bool:
        """A line chart needs at least two dates to show anything"""
        return len(self.dates) >= MIN_TREND_POINTS


class ProgressService:
    """Service for progress series and category views"""

    @staticmethod
    def build_series(habits: Sequence[HabitRecord]) -> ProgressSeries:
        """
        Build an aligned per-date streak series for a group of habits.

        Dates are the sorted union of every habit's history dates. A habit
        without an entry on a date gets None for that cell (never 0), so a
        chart skips the gap instead of dropping the line to zero.

        Args:
            habits: Habits of one category, in display order

        Returns:
            ProgressSeries (possibly empty)
        """
        streak_by_habit = {
            habit.id: {entry.date: entry.streak for entry in habit.history}
            for habit in habits
        }
        dates = sorted({day for streaks in streak_by_habit.values() for day in streaks})

        rows = []
        for day in dates:
            row = {SERIES_DATE_KEY: day}
            for habit in habits:
                row[habit.id] = streak_by_habit[habit.id].get(day)
            rows.append(row)

        lines = [
            {
                "habit_id": habit.id,
                "name": habit.name,
                "color": SERIES_COLORS[index % len(SERIES_COLORS)]
            }
            for index, habit in enumerate(habits)
        ]

        return ProgressSeries(dates=dates, rows=rows, lines=lines)

    @staticmethod
    def group_by_category(habits: Sequence[HabitRecord]) -> Dict[str, List[HabitRecord]]:
        """Group habits by category, categories in order of first appearance"""
        groups: Dict[str, List[HabitRecord]] = {}
        for habit in habits:
            groups.setdefault(habit.category, []).append(habit)
        return groups

    @staticmethod
    def category_series(habits: Sequence[HabitRecord]) -> Dict[str, ProgressSeries]:
        """One progress series per category"""
        return {
            category: ProgressService.build_series(members)
            for category, members in ProgressService.group_by_category(habits).items()
        }

    @staticmethod
    def is_overdue(habit: HabitRecord, today: date) -> bool:
        """
        Whether the habit is past its cadence gap.

        Uses the bare cadence gap, so the warning shows up during the grace
        day, before any decay applies. Never-completed habits are not overdue.
        """
        if habit.last_completed is None:
            return False
        gap = DateService.days_between(today, habit.last_completed)
        return gap > PenaltyService.get_allowed_gap(habit.frequency)

