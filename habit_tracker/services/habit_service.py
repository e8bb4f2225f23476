"""
Habit management service.
Handles habit CRUD, check-ins, the points repair operation and the derived
dashboard views (rank, categories, progress).
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from habit_tracker.models import Habit
from habit_tracker.schemas import HabitCreate, HabitUpdate, HabitRecord
from habit_tracker.repositories.habit_repository import HabitRepository
from habit_tracker.repositories.settings_repository import SettingsRepository
from habit_tracker.services.date_service import DateService
from habit_tracker.services.checkin_service import CheckInService, store_lock
from habit_tracker.services.rank_service import RankService, Rank
from habit_tracker.services.progress_service import ProgressService, ProgressSeries
from habit_tracker.exceptions import (
    HabitNotFoundException, CategoryNotFoundException, ConfirmationRequiredException
)
from habit_tracker.constants import POINTS_PER_CHECK_IN

logger = logging.getLogger("habit_tracker.habits")


class HabitService:
    """Service for habit management"""

    def __init__(self, db: Session):
        self.db = db
        self.habit_repo = HabitRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService()
        self.checkin_service = CheckInService(db)

    def get_today(self) -> date:
        """Effective date according to settings"""
        settings = self.settings_repo.get(self.db)
        return self.date_service.get_effective_date(settings)

    def get_habits(self) -> List[HabitRecord]:
        """All habits in store order"""
        return [self.habit_repo.to_record(habit) for habit in self.habit_repo.get_all(self.db)]

    def get_habit(self, habit_id: str) -> HabitRecord:
        """
        Get one habit.

        Raises:
            HabitNotFoundException: If the habit does not exist
        """
        habit = self.habit_repo.get_by_id(self.db, habit_id)
        if not habit:
            raise HabitNotFoundException(habit_id)
        return self.habit_repo.to_record(habit)

    def create_habit(self, habit_data: HabitCreate) -> Optional[HabitRecord]:
        """
        Create a new habit with zero streak and points.

        Returns None (and stores nothing) when name or category is blank.
        """
        name = habit_data.name.strip()
        category = habit_data.category.strip()
        if not name or not category:
            logger.info("Ignored habit creation with blank name or category")
            return None

        with store_lock:
            habit = Habit(
                name=name,
                category=category,
                frequency=habit_data.frequency,
                mode=habit_data.mode,
                streak=0,
                points=0,
                last_completed=None,
                position=self.habit_repo.next_position(self.db)
            )
            habit = self.habit_repo.create(self.db, habit)

        logger.info(f"Created habit {habit.id} ({name!r} in {category!r})")
        return self.habit_repo.to_record(habit)

    def update_habit(self, habit_id: str, habit_update: HabitUpdate) -> HabitRecord:
        """
        Edit habit metadata. Scoring state is never touched here.

        Raises:
            HabitNotFoundException: If the habit does not exist
        """
        with store_lock:
            habit = self.habit_repo.get_by_id(self.db, habit_id)
            if not habit:
                raise HabitNotFoundException(habit_id)

            for key, value in habit_update.model_dump(exclude_unset=True).items():
                if value is None:
                    continue
                if isinstance(value, str):
                    value = value.strip() or getattr(habit, key)
                setattr(habit, key, value)

            habit = self.habit_repo.update(self.db, habit)
        return self.habit_repo.to_record(habit)

    def delete_habit(self, habit_id: str) -> bool:
        """Delete a habit and its history. Irreversible."""
        with store_lock:
            habit = self.habit_repo.get_by_id(self.db, habit_id)
            if not habit:
                return False
            self.habit_repo.delete(self.db, habit)
        logger.info(f"Deleted habit {habit_id}")
        return True

    def check_in(self, habit_id: str, today: Optional[date] = None) -> dict:
        """
        Check in a habit for today (or the given date).

        Returns:
            Dictionary with the updated habit, no-op flag, penalty and rank
        """
        today = today or self.get_today()
        habit, already_checked_in, penalty = self.checkin_service.check_in(habit_id, today)
        return {
            "habit": habit,
            "already_checked_in": already_checked_in,
            "penalty": penalty,
            "rank": self.get_rank()
        }

    def restore_points(self, habit_id: str, confirm: bool = False) -> HabitRecord:
        """
        Recompute a habit's points from its current streak (streak × 10).

        Administrative repair: discards every penalty the habit ever took
        and cannot be undone, so callers must pass confirm=True.

        Raises:
            ConfirmationRequiredException: If confirm is not True
            HabitNotFoundException: If the habit does not exist
        """
        if confirm is not True:
            raise ConfirmationRequiredException("restore_points")

        with store_lock:
            habit = self.habit_repo.get_by_id(self.db, habit_id)
            if not habit:
                raise HabitNotFoundException(habit_id)

            previous = habit.points
            habit.points = (habit.streak or 0) * POINTS_PER_CHECK_IN
            habit = self.habit_repo.update(self.db, habit)

        logger.warning(f"Restored points for habit {habit_id}: {previous} -> {habit.points}")
        return self.habit_repo.to_record(habit)

    def get_rank(self) -> Rank:
        """Rank for the current total points"""
        settings = self.settings_repo.get(self.db)
        table = RankService.get_table(settings.rank_table)
        return RankService.classify(self.habit_repo.get_total_points(self.db), table)

    def get_categories(self, today: Optional[date] = None) -> List[dict]:
        """Derived category list with per-category totals"""
        today = today or self.get_today()
        groups = ProgressService.group_by_category(self.get_habits())
        return [
            {
                "name": category,
                "habit_count": len(members),
                "total_points": RankService.total_points(members),
                "overdue_count": sum(
                    1 for habit in members if ProgressService.is_overdue(habit, today)
                )
            }
            for category, members in groups.items()
        ]

    def get_category_progress(self, category: str) -> ProgressSeries:
        """
        Progress series for one category.

        Raises:
            CategoryNotFoundException: If no habit uses the category
        """
        members = [
            self.habit_repo.to_record(habit)
            for habit in self.habit_repo.get_by_category(self.db, category)
        ]
        if not members:
            raise CategoryNotFoundException(category)
        return ProgressService.build_series(members)

    def get_all_progress(self) -> Dict[str, ProgressSeries]:
        """Progress series for every category"""
        return ProgressService.category_series(self.get_habits())

    def is_overdue(self, habit: HabitRecord, today: Optional[date] = None) -> bool:
        return ProgressService.is_overdue(habit, today or self.get_today())
