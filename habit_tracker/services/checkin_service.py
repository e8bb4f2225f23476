"""
Check-in processing service.
Applies one check-in to one habit: penalty for a late arrival, then the
streak/points increment and the history entry.
"""
import logging
import threading
from datetime import date
from typing import Tuple

from sqlalchemy.orm import Session

from habit_tracker.schemas import HabitRecord, HistoryEntry
from habit_tracker.repositories.habit_repository import HabitRepository
from habit_tracker.repositories.settings_repository import SettingsRepository
from habit_tracker.services.date_service import DateService
from habit_tracker.services.penalty_service import PenaltyService
from habit_tracker.exceptions import HabitNotFoundException, ClockRegressionException
from habit_tracker.constants import POINTS_PER_CHECK_IN, DEFAULT_GRACE_PERIOD_DAYS

logger = logging.getLogger("habit_tracker.checkin")

# Serializes every read-modify-write on the habit store within the process
store_lock = threading.RLock()


def apply_check_in(
    habit: HabitRecord,
    today: date,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> HabitRecord:
    """
    Apply a check-in for ``today`` to a habit.

    Returns the habit unchanged if it was already checked in today.

    Args:
        habit: Current habit state
        today: Calendar date of the check-in
        grace_period_days: Extra days tolerated on top of the cadence gap

    Returns:
        Updated habit

    Raises:
        ClockRegressionException: If today precedes habit.last_completed
    """
    return _apply(habit, today, grace_period_days)[0]


def _apply(habit: HabitRecord, today: date, grace_period_days: int) -> Tuple[HabitRecord, int]:
    """Check-in transition, also reporting the penalty that was deducted"""
    if habit.last_completed == today:
        return habit, 0
    if habit.last_completed is not None and today < habit.last_completed:
        raise ClockRegressionException(habit.id, today, habit.last_completed)

    points = habit.points
    penalty = 0

    if habit.last_completed is not None:
        gap = DateService.days_between(today, habit.last_completed)
        missed_days = PenaltyService.calculate_missed_days(
            gap, habit.frequency, grace_period_days
        )
        if missed_days > 0:
            penalty = PenaltyService.calculate_penalty(habit.streak, habit.mode, missed_days)
            points = max(0, points - penalty)

    streak = habit.streak + 1
    updated = habit.model_copy(update={
        "streak": streak,
        "points": points + POINTS_PER_CHECK_IN,
        "last_completed": today,
        "history": [*habit.history, HistoryEntry(date=today, streak=streak)]
    })
    return updated, penalty


class CheckInService:
    """Service applying check-ins to stored habits"""

    def __init__(self, db: Session):
        self.db = db
        self.habit_repo = HabitRepository()
        self.settings_repo = SettingsRepository()

    def check_in(self, habit_id: str, today: date) -> Tuple[HabitRecord, bool, int]:
        """
        Check in a stored habit for ``today``.

        The read, the transition and the write happen under one lock and
        one transaction, so repeated calls on the same day store exactly one
        history entry.

        Returns:
            Tuple of (updated habit, already_checked_in, penalty)

        Raises:
            HabitNotFoundException: If the habit does not exist
            ClockRegressionException: If today precedes the last check-in
        """
        with store_lock:
            habit = self.habit_repo.get_by_id(self.db, habit_id)
            if not habit:
                raise HabitNotFoundException(habit_id)

            # Pick up commits made by other sessions since this one last read
            self.db.refresh(habit)
            record = self.habit_repo.to_record(habit)

            if record.last_completed == today:
                logger.info(f"Habit {habit_id} already checked in on {today}")
                return record, True, 0

            if record.last_completed is not None and today < record.last_completed:
                logger.warning(
                    f"Rejected check-in for habit {habit_id}: {today} is before {record.last_completed}"
                )
                raise ClockRegressionException(habit_id, today, record.last_completed)

            settings = self.settings_repo.get(self.db)
            updated, penalty = _apply(record, today, settings.grace_period_days)

            try:
                self.habit_repo.apply_record(habit, updated)
                self.habit_repo.update(self.db, habit)
            except Exception:
                self.db.rollback()
                raise

        if penalty:
            logger.info(
                f"Habit {habit_id} checked in late: -{penalty} points "
                f"(streak {record.streak}, mode {record.mode})"
            )
        logger.info(f"Habit {habit_id} checked in on {today}: streak {updated.streak}, points {updated.points}")
        return updated, False, penalty
