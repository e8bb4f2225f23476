"""
Custom exceptions for the habit tracker.
Each failure of the scoring engine, snapshots and backups has its own type.
"""
from datetime import date


class HabitTrackerException(Exception):
    """Base exception for habit tracker application"""
    pass


class HabitNotFoundException(HabitTrackerException):
    """Raised when a habit is not found"""
    def __init__(self, habit_id: str):
        self.habit_id = habit_id
        super().__init__(f"Habit with ID {habit_id} not found")


class CategoryNotFoundException(HabitTrackerException):
    """Raised when no habit uses a category"""
    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Category {category!r} not found")


class ClockRegressionException(HabitTrackerException):
    """Raised when a check-in date is earlier than the habit's last check-in"""
    def __init__(self, habit_id: str, today: date, last_completed: date):
        self.habit_id = habit_id
        self.today = today
        self.last_completed = last_completed
        super().__init__(
            f"Check-in for habit {habit_id} on {today} is earlier than "
            f"last completion {last_completed}"
        )


class ConfirmationRequiredException(HabitTrackerException):
    """Raised when a destructive operation is called without confirmation"""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation '{operation}' requires explicit confirmation")


class SnapshotException(HabitTrackerException):
    """Raised when a habit snapshot cannot be loaded"""
    def __init__(self, message: str):
        super().__init__(f"Invalid snapshot: {message}")


class BackupException(HabitTrackerException):
    """Raised when backup operations fail"""
    def __init__(self, message: str):
        super().__init__(f"Backup operation failed: {message}")


class ValidationException(HabitTrackerException):
    """Raised when data validation fails"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")
