from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator
from datetime import datetime, date
from typing import Any, Optional, List, Dict

from habit_tracker.constants import SNAPSHOT_VERSION, SERIES_DATE_KEY

FREQUENCY_PATTERN = r"^(daily|2x_week|3x_week|weekly|monthly)$"
MODE_PATTERN = r"^(flexible|strict)$"
TIME_PATTERN = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"


# Habit records
class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    streak: int = Field(..., ge=0)


class HabitRecord(BaseModel):
    """
    Persisted shape of a habit.

    This is exactly what export writes and import reads back; derived views
    (rank, overdue, series) never live here.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(default="daily", pattern=FREQUENCY_PATTERN)
    mode: str = Field(default="flexible", pattern=MODE_PATTERN)
    streak: int = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)
    last_completed: Optional[date] = Field(
        default=None,
        validation_alias=AliasChoices("last_completed", "lastCompleted")
    )
    history: List[HistoryEntry] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Older snapshots used numeric timestamps as ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def _check_id(cls, value):
        # Progress rows key cells by habit id next to the date
        if value == SERIES_DATE_KEY:
            raise ValueError(f"id {SERIES_DATE_KEY!r} is reserved")
        return value

    @model_validator(mode="after")
    def _check_invariants(self):
        dates = [entry.date for entry in self.history]
        if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
            raise ValueError("history dates must be strictly ascending")

        if not self.history:
            if self.last_completed is not None:
                raise ValueError("last_completed set without history")
            if self.streak != 0:
                raise ValueError("streak must be 0 without history")
            return self

        last = self.history[-1]
        if last.date != self.last_completed:
            raise ValueError("last history date must equal last_completed")
        if last.streak != self.streak:
            raise ValueError("last history streak must equal streak")
        return self


class HabitCreate(BaseModel):
    # Blank values are rejected by the service, not by the schema
    name: str = Field(default="", max_length=200)
    category: str = Field(default="", max_length=100)
    frequency: str = Field(default="daily", pattern=FREQUENCY_PATTERN)
    mode: str = Field(default="flexible", pattern=MODE_PATTERN)


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, pattern=FREQUENCY_PATTERN)
    mode: Optional[str] = Field(None, pattern=MODE_PATTERN)


class HabitResponse(HabitRecord):
    overdue: bool = False


# Rank schemas
class RankResponse(BaseModel):
    name: str
    color: str
    threshold: int
    total_points: int
    next_name: Optional[str] = None
    next_threshold: Optional[int] = None
    xp_to_next: Optional[int] = None


class CheckInResponse(BaseModel):
    habit: HabitResponse
    already_checked_in: bool = False
    penalty: int = 0
    rank: RankResponse


# Progress series schemas
class SeriesLine(BaseModel):
    habit_id: str
    name: str
    color: str


class ProgressSeriesResponse(BaseModel):
    category: str
    dates: List[date]
    rows: List[Dict[str, Any]]
    lines: List[SeriesLine]
    has_trend: bool


class CategoryResponse(BaseModel):
    name: str
    habit_count: int
    total_points: int
    overdue_count: int = 0


# Penalty estimator
class PenaltyEstimateResponse(BaseModel):
    streak: int
    mode: str
    missed_days: int
    multiplier: float
    penalty: int
    points_before: Optional[int] = None
    points_after: Optional[int] = None


# Settings schemas
class SettingsBase(BaseModel):
    grace_period_days: int = Field(default=1, ge=0, le=30)
    rank_table: str = Field(default="standard", pattern=r"^(standard|extended)$")

    # Day boundary settings
    day_start_enabled: bool = Field(default=False)
    day_start_time: str = Field(default="06:00", pattern=TIME_PATTERN)

    # Backup settings
    auto_backup_enabled: bool = Field(default=True)
    backup_time: str = Field(default="03:00", pattern=TIME_PATTERN)
    backup_keep_local_count: int = Field(default=10, ge=1, le=100)


class SettingsUpdate(SettingsBase):
    pass


class SettingsResponse(SettingsBase):
    id: int
    updated_at: Optional[datetime] = None
    last_backup_date: Optional[datetime] = None
    effective_date: Optional[date] = None  # Current effective date based on day_start_time

    model_config = ConfigDict(from_attributes=True)


# Snapshot schemas
class SnapshotDocument(BaseModel):
    version: int = SNAPSHOT_VERSION
    exported_at: Optional[datetime] = None
    habits: List[HabitRecord]

    @field_validator("version")
    @classmethod
    def _check_version(cls, value):
        if value != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported version {value!r}")
        return value


class ImportResponse(BaseModel):
    imported: int


class BackupResponse(BaseModel):
    filename: str
    size_bytes: int
    created_at: datetime

