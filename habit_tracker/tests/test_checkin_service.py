"""
Tests for the check-in processor.

Tests cover:
1. First check-in and same-day idempotence
2. Late check-ins with penalty (flexible and strict)
3. Points floor and streak growth
4. Stored check-ins through CheckInService
5. Concurrent check-ins from separate sessions
"""
import threading
import pytest
from datetime import timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from habit_tracker.database import Base
from habit_tracker.models import Habit, HabitCheckIn, Settings
from habit_tracker.services.checkin_service import apply_check_in, CheckInService
from habit_tracker.exceptions import HabitNotFoundException, ClockRegressionException


class TestApplyCheckIn:
    """Tests for the pure check-in transition"""

    def test_first_check_in(self, make_record, today):
        """New habit: streak 1, points 10, no penalty"""
        habit = make_record()

        result = apply_check_in(habit, today)

        assert result.streak == 1
        assert result.points == 10
        assert result.last_completed == today
        assert [(e.date, e.streak) for e in result.history] == [(today, 1)]

    def test_second_check_in_same_day_is_noop(self, make_record, today):
        habit = make_record()

        once = apply_check_in(habit, today)
        twice = apply_check_in(once, today)

        assert twice == once

    def test_idempotent_for_existing_streak(self, make_record, today):
        habit = make_record(points=40, history=[(today - timedelta(days=1), 4)])

        once = apply_check_in(habit, today)

        assert apply_check_in(once, today) == once

    def test_input_is_not_mutated(self, make_record, today):
        habit = make_record()

        apply_check_in(habit, today)

        assert habit.streak == 0
        assert habit.history == []

    def test_on_time_check_in_has_no_penalty(self, make_record, today):
        habit = make_record(points=30, history=[(today - timedelta(days=1), 3)])

        result = apply_check_in(habit, today)

        assert result.points == 40
        assert result.streak == 4

    def test_grace_day_has_no_penalty(self, make_record, today):
        """Daily habit two days later stays within allowed + grace"""
        habit = make_record(points=30, history=[(today - timedelta(days=2), 3)])

        result = apply_check_in(habit, today)

        assert result.points == 40

    def test_late_daily_flexible(self, make_record, today):
        """Streak 5, points 60, last 3 days ago: penalty 2, then +10"""
        habit = make_record(
            frequency="daily", mode="flexible", points=60,
            history=[(today - timedelta(days=3), 5)]
        )

        result = apply_check_in(habit, today)

        assert result.points == 68
        assert result.streak == 6

    def test_late_weekly_strict(self, make_record, today):
        """Streak 4, points 80, last 10 days ago: penalty 12, then +10"""
        habit = make_record(
            frequency="weekly", mode="strict", points=80,
            history=[(today - timedelta(days=10), 4)]
        )

        result = apply_check_in(habit, today)

        assert result.points == 78
        assert result.streak == 5

    def test_points_never_go_negative(self, make_record, today):
        """Huge penalty clamps to 0 before the +10"""
        habit = make_record(
            mode="strict", points=5,
            history=[(today - timedelta(days=60), 20)]
        )

        result = apply_check_in(habit, today)

        assert result.points == 10

    def test_streak_is_never_reset(self, make_record, today):
        habit = make_record(
            frequency="monthly", points=200,
            history=[(today - timedelta(days=400), 20)]
        )

        result = apply_check_in(habit, today)

        assert result.streak == 21

    def test_grace_period_setting(self, make_record, today):
        """Without grace, a daily habit two days late loses points"""
        habit = make_record(points=60, history=[(today - timedelta(days=2), 5)])

        result = apply_check_in(habit, today, grace_period_days=0)

        # missed 1 day: floor(5 × 0.5 × 1) = 2
        assert result.points == 68

    def test_earlier_date_is_rejected(self, make_record, today):
        """A check-in before last_completed never yields an out-of-order history"""
        habit = make_record(points=10, history=[(today, 1)])

        with pytest.raises(ClockRegressionException):
            apply_check_in(habit, today - timedelta(days=3))

    def test_each_check_in_grows_streak_and_history_by_one(self, make_record, today):
        habit = make_record()
        for offset in (0, 1, 3, 9, 10):
            before = habit
            habit = apply_check_in(habit, today + timedelta(days=offset))
            assert habit.streak == before.streak + 1
            assert len(habit.history) == len(before.history) + 1
            assert habit.points >= 0


class TestCheckInService:
    """Tests for stored check-ins"""

    def test_check_in_persists_state(self, db_session, default_settings, make_habit, today):
        habit = make_habit()

        record, already, penalty = CheckInService(db_session).check_in(habit.id, today)

        db_session.refresh(habit)
        assert already is False
        assert penalty == 0
        assert habit.streak == 1
        assert habit.points == 10
        assert habit.last_completed == today
        assert record.history[-1].date == today

    def test_repeated_check_in_stores_one_entry(self, db_session, default_settings, make_habit, today):
        habit = make_habit()
        service = CheckInService(db_session)

        service.check_in(habit.id, today)
        _, already, _ = service.check_in(habit.id, today)

        count = db_session.query(HabitCheckIn).filter(HabitCheckIn.habit_id == habit.id).count()
        assert already is True
        assert count == 1

    def test_reports_penalty(self, db_session, default_settings, make_habit, today):
        habit = make_habit(
            frequency="weekly", mode="strict", points=80,
            history=[(today - timedelta(days=10), 4)]
        )

        record, _, penalty = CheckInService(db_session).check_in(habit.id, today)

        assert penalty == 12
        assert record.points == 78

    def test_uses_grace_period_from_settings(self, db_session, default_settings, make_habit, today):
        default_settings.grace_period_days = 0
        db_session.commit()
        habit = make_habit(points=60, history=[(today - timedelta(days=2), 5)])

        record, _, penalty = CheckInService(db_session).check_in(habit.id, today)

        assert penalty == 2
        assert record.points == 68

    def test_other_habits_untouched(self, db_session, default_settings, make_habit, today):
        target = make_habit(name="Read")
        other = make_habit(name="Run", points=50, history=[(today - timedelta(days=5), 5)])

        CheckInService(db_session).check_in(target.id, today)

        db_session.refresh(other)
        assert other.points == 50
        assert other.streak == 5
        assert len(other.check_ins) == 1

    def test_missing_habit(self, db_session, default_settings, today):
        with pytest.raises(HabitNotFoundException):
            CheckInService(db_session).check_in("missing", today)

    def test_clock_regression_rejected(self, db_session, default_settings, make_habit, today):
        habit = make_habit(points=10, history=[(today, 1)])

        with pytest.raises(ClockRegressionException):
            CheckInService(db_session).check_in(habit.id, today - timedelta(days=1))

        db_session.refresh(habit)
        assert habit.streak == 1
        assert len(habit.check_ins) == 1


class TestConcurrentCheckIns:
    """Tests for check-ins racing from separate sessions"""

    WORKERS = 8

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'habits.db'}",
            connect_args={"check_same_thread": False}
        )
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        engine.dispose()

    def test_same_day_race_stores_one_entry(self, file_session_factory, today):
        setup = file_session_factory()
        setup.add(Settings())
        habit = Habit(name="Read", category="Mind", position=0)
        setup.add(habit)
        setup.commit()
        habit_id = habit.id
        setup.close()

        barrier = threading.Barrier(self.WORKERS)
        results = []
        errors = []

        def worker():
            db = file_session_factory()
            try:
                barrier.wait()
                results.append(CheckInService(db).check_in(habit_id, today))
            except Exception as e:
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=worker) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        db = file_session_factory()
        try:
            stored = db.query(Habit).filter(Habit.id == habit_id).one()
            count = db.query(HabitCheckIn).filter(HabitCheckIn.habit_id == habit_id).count()
            assert errors == []
            assert count == 1
            assert stored.streak == 1
            assert stored.points == 10
            assert sorted(already for _, already, _ in results) == [False] + [True] * (self.WORKERS - 1)
        finally:
            db.close()
