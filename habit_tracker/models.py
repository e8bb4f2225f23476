from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from habit_tracker.database import Base
from habit_tracker.constants import (
    FREQUENCY_DAILY, MODE_FLEXIBLE, DEFAULT_GRACE_PERIOD_DAYS, RANK_TABLE_STANDARD
)


class Habit(Base):
    __tablename__ = "habits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    position = Column(Integer, nullable=False, default=0, index=True)  # Store order, not exported
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    frequency = Column(String, default=FREQUENCY_DAILY)  # daily, 2x_week, 3x_week, weekly, monthly
    mode = Column(String, default=MODE_FLEXIBLE)  # flexible or strict

    # Scoring state
    streak = Column(Integer, default=0)
    points = Column(Integer, default=0)
    last_completed = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    check_ins = relationship(
        "HabitCheckIn",
        back_populates="habit",
        cascade="all, delete-orphan",
        order_by="HabitCheckIn.date"
    )


class HabitCheckIn(Base):
    __tablename__ = "habit_checkins"
    __table_args__ = (
        UniqueConstraint("habit_id", "date", name="uq_habit_checkin_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    habit_id = Column(String, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    streak = Column(Integer, nullable=False)  # Streak right after this check-in

    habit = relationship("Habit", back_populates="check_ins")


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)

    # Penalty rule: extra days on top of the cadence gap before decay applies
    grace_period_days = Column(Integer, default=DEFAULT_GRACE_PERIOD_DAYS)

    # Rank ladder: standard or extended
    rank_table = Column(String, default=RANK_TABLE_STANDARD)

    # Day boundary settings
    day_start_enabled = Column(Boolean, default=False)
    day_start_time = Column(String, default="06:00")  # HH:MM

    # Backup settings
    auto_backup_enabled = Column(Boolean, default=True)
    backup_time = Column(String, default="03:00")  # HH:MM
    backup_keep_local_count = Column(Integer, default=10)
    last_backup_date = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
