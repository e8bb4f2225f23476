"""
Habit repository - Data access layer for Habit and HabitCheckIn models.
Translates between ORM rows and the HabitRecord shape the engine works on.
"""
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from habit_tracker.models import Habit, HabitCheckIn
from habit_tracker.schemas import HabitRecord, HistoryEntry


class HabitRepository:
    """Repository for Habit data access"""

    @staticmethod
    def to_record(habit: Habit) -> HabitRecord:
        """Build the persisted record shape from an ORM row"""
        return HabitRecord(
            id=habit.id,
            name=habit.name,
            category=habit.category,
            frequency=habit.frequency,
            mode=habit.mode,
            streak=habit.streak or 0,
            points=habit.points or 0,
            last_completed=habit.last_completed,
            history=[
                HistoryEntry(date=check_in.date, streak=check_in.streak)
                for check_in in habit.check_ins
            ]
        )

    @staticmethod
    def get_by_id(db: Session, habit_id: str) -> Optional[Habit]:
        """Get habit by ID"""
        return db.query(Habit).filter(Habit.id == habit_id).first()

    @staticmethod
    def get_all(db: Session) -> List[Habit]:
        """Get all habits in store order"""
        return db.query(Habit).options(
            selectinload(Habit.check_ins)
        ).order_by(Habit.position, Habit.created_at).all()

    @staticmethod
    def get_by_category(db: Session, category: str) -> List[Habit]:
        """Get habits of one category in store order"""
        return db.query(Habit).options(
            selectinload(Habit.check_ins)
        ).filter(Habit.category == category).order_by(Habit.position, Habit.created_at).all()

    @staticmethod
    def get_total_points(db: Session) -> int:
        """Sum of points across every habit"""
        return db.query(func.coalesce(func.sum(Habit.points), 0)).scalar() or 0

    @staticmethod
    def next_position(db: Session) -> int:
        """Position for a habit appended at the end of the store"""
        current = db.query(func.max(Habit.position)).scalar()
        return 0 if current is None else current + 1

    @staticmethod
    def create(db: Session, habit: Habit) -> Habit:
        """Create new habit"""
        db.add(habit)
        db.commit()
        db.refresh(habit)
        return habit

    @staticmethod
    def update(db: Session, habit: Habit) -> Habit:
        """Update existing habit"""
        db.commit()
        db.refresh(habit)
        return habit

    @staticmethod
    def apply_record(habit: Habit, record: HabitRecord) -> None:
        """
        Copy scoring state from a record onto an ORM row.

        History is append-only, so only entries newer than the row's
        last stored check-in are added. Does not commit.
        """
        habit.streak = record.streak
        habit.points = record.points
        habit.last_completed = record.last_completed

        stored_dates = {check_in.date for check_in in habit.check_ins}
        for entry in record.history:
            if entry.date not in stored_dates:
                habit.check_ins.append(HabitCheckIn(date=entry.date, streak=entry.streak))

    @staticmethod
    def delete(db: Session, habit: Habit) -> None:
        """Delete a habit and its check-ins"""
        db.delete(habit)
        db.commit()

    @staticmethod
    def replace_all(db: Session, records: List[HabitRecord]) -> int:
        """
        Replace the whole collection with the given records.

        Runs as a single transaction: either every record is stored or the
        previous collection is left untouched.
        """
        try:
            for existing in db.query(Habit).all():
                db.delete(existing)
            # Flush deletes first so re-imported ids do not clash in the session
            db.flush()
            for position, record in enumerate(records):
                habit = Habit(
                    id=record.id,
                    position=position,
                    name=record.name,
                    category=record.category,
                    frequency=record.frequency,
                    mode=record.mode,
                    streak=record.streak,
                    points=record.points,
                    last_completed=record.last_completed,
                    check_ins=[
                        HabitCheckIn(date=entry.date, streak=entry.streak)
                        for entry in record.history
                    ]
                )
                db.add(habit)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return len(records)
