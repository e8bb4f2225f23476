"""
Date calculation service.
Supplies the effective calendar date and whole-day gap arithmetic.

This is the only place that reads the wall clock. Everything downstream
receives ``today`` as an explicit ``date``.
"""
from datetime import datetime, timedelta, date

from habit_tracker.models import Settings


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def get_effective_date(settings: Settings) -> date:
        """
        Get the effective current date based on day_start_time setting.

        If day_start_enabled is True and current time is before day_start_time,
        returns yesterday's date. Otherwise returns today's date.

        Example: If day_start_time = "06:00" and current time is 03:00,
        a check-in still counts for yesterday because the user hasn't
        started their "new day" yet.

        Args:
            settings: Settings object containing day_start configuration

        Returns:
            Effective date (today or yesterday)
        """
        now = datetime.now()
        today = now.date()

        if not settings.day_start_enabled:
            return today

        try:
            day_start_hour, day_start_minute = DateService.parse_time(
                settings.day_start_time or "06:00"
            )
        except (ValueError, IndexError, AttributeError):
            return today

        current_minutes = now.hour * 60 + now.minute
        start_minutes = day_start_hour * 60 + day_start_minute

        if current_minutes < start_minutes:
            return today - timedelta(days=1)

        return today

    @staticmethod
    def parse_time(time_str: str) -> tuple[int, int]:
        """
        Parse time string into hour and minute.

        Accepts "HH:MM" as well as "HHMM".

        Raises:
            ValueError: If time string is invalid
        """
        t_str = time_str.replace(":", "").zfill(4)
        hour = int(t_str[:2])
        minute = int(t_str[2:])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Invalid time: {time_str}")
        return hour, minute

    @staticmethod
    def days_between(later: date, earlier: date) -> int:
        """Whole calendar days from earlier to later (negative if reversed)"""
        return (later - earlier).days
