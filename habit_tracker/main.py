from fastapi import FastAPI, Depends, HTTPException, Query, Body, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import Any, List, Optional
from datetime import date
from pathlib import Path
import logging
import os

from habit_tracker.database import engine, get_db, Base
from habit_tracker import models  # Import all models to register them with Base
from habit_tracker.schemas import (
    HabitCreate, HabitUpdate, HabitRecord, HabitResponse, CheckInResponse,
    RankResponse, ProgressSeriesResponse, CategoryResponse, PenaltyEstimateResponse,
    SettingsUpdate, SettingsResponse,
    ImportResponse, BackupResponse
)
from habit_tracker.auth import verify_api_key
from habit_tracker.exceptions import (
    HabitNotFoundException, CategoryNotFoundException, ClockRegressionException,
    ConfirmationRequiredException, SnapshotException, BackupException
)
from habit_tracker.repositories.settings_repository import SettingsRepository
from habit_tracker.services.date_service import DateService
from habit_tracker.services.habit_service import HabitService
from habit_tracker.services.penalty_service import PenaltyService
from habit_tracker.services.progress_service import ProgressService, ProgressSeries
from habit_tracker.services.rank_service import Rank
from habit_tracker.services.snapshot_service import SnapshotService
from habit_tracker.services.scheduler_service import start_scheduler, stop_scheduler
from habit_tracker.constants import (
    DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV, CORS_ALLOWED_ORIGINS
)

LOG_DIR = os.getenv("HABIT_TRACKER_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("HABIT_TRACKER_LOG_FILE", "app.log")

# Fall back to a local directory if there are no permissions for /var/log
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("habit_tracker")

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Habit Tracker API",
    description="Habit streaks, points with decay for missed check-ins, and rank tiers",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Habit Tracker API started. Logging to: {log_path}")
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Habit Tracker API")
    stop_scheduler()


def _habit_response(habit: HabitRecord, today: date) -> HabitResponse:
    return HabitResponse(
        **habit.model_dump(),
        overdue=ProgressService.is_overdue(habit, today)
    )


def _rank_response(rank: Rank) -> RankResponse:
    return RankResponse(
        name=rank.name,
        color=rank.color,
        threshold=rank.threshold,
        total_points=rank.total_points,
        next_name=rank.next_name,
        next_threshold=rank.next_threshold,
        xp_to_next=rank.xp_to_next
    )


def _series_response(category: str, series: ProgressSeries) -> ProgressSeriesResponse:
    return ProgressSeriesResponse(
        category=category,
        dates=series.dates,
        rows=series.rows,
        lines=series.lines,
        has_trend=series.has_trend
    )


# Health check (no auth required)
@app.get("/")
async def root():
    return {"message": "Habit Tracker API", "status": "active"}


# Habits
@app.get("/api/habits", response_model=List[HabitResponse], dependencies=[Depends(verify_api_key)])
def get_habits(today: Optional[date] = Query(None), db: Session = Depends(get_db)):
    """Get all habits in store order"""
    service = HabitService(db)
    today = today or service.get_today()
    return [_habit_response(habit, today) for habit in service.get_habits()]


@app.post("/api/habits", response_model=HabitResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
def create_habit(habit: HabitCreate, db: Session = Depends(get_db)):
    """Create a new habit"""
    service = HabitService(db)
    new_habit = service.create_habit(habit)
    if not new_habit:
        raise HTTPException(status_code=400, detail="Name and category are required")
    return _habit_response(new_habit, service.get_today())


@app.get("/api/habits/{habit_id}", response_model=HabitResponse, dependencies=[Depends(verify_api_key)])
def get_habit(habit_id: str, today: Optional[date] = Query(None), db: Session = Depends(get_db)):
    """Get a specific habit"""
    service = HabitService(db)
    try:
        habit = service.get_habit(habit_id)
    except HabitNotFoundException:
        raise HTTPException(status_code=404, detail="Habit not found")
    return _habit_response(habit, today or service.get_today())


@app.put("/api/habits/{habit_id}", response_model=HabitResponse, dependencies=[Depends(verify_api_key)])
def update_habit(habit_id: str, habit_update: HabitUpdate, db: Session = Depends(get_db)):
    """Edit habit name, category, frequency or mode"""
    service = HabitService(db)
    try:
        habit = service.update_habit(habit_id, habit_update)
    except HabitNotFoundException:
        raise HTTPException(status_code=404, detail="Habit not found")
    return _habit_response(habit, service.get_today())


@app.delete("/api/habits/{habit_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(verify_api_key)])
def delete_habit(habit_id: str, db: Session = Depends(get_db)):
    """Delete a habit and its history"""
    if not HabitService(db).delete_habit(habit_id):
        raise HTTPException(status_code=404, detail="Habit not found")


@app.post("/api/habits/{habit_id}/check-in", response_model=CheckInResponse, dependencies=[Depends(verify_api_key)])
def check_in_habit(habit_id: str, today: Optional[date] = Query(None), db: Session = Depends(get_db)):
    """Check in a habit for today (at most once per day)"""
    service = HabitService(db)
    today = today or service.get_today()
    try:
        result = service.check_in(habit_id, today)
    except HabitNotFoundException:
        raise HTTPException(status_code=404, detail="Habit not found")
    except ClockRegressionException as e:
        raise HTTPException(status_code=409, detail=str(e))

    return CheckInResponse(
        habit=_habit_response(result["habit"], today),
        already_checked_in=result["already_checked_in"],
        penalty=result["penalty"],
        rank=_rank_response(result["rank"])
    )


@app.post("/api/habits/{habit_id}/restore-points", response_model=HabitResponse, dependencies=[Depends(verify_api_key)])
def restore_habit_points(habit_id: str, confirm: bool = Query(False), db: Session = Depends(get_db)):
    """Recompute points from the current streak. Discards penalty history."""
    service = HabitService(db)
    try:
        habit = service.restore_points(habit_id, confirm=confirm)
    except ConfirmationRequiredException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HabitNotFoundException:
        raise HTTPException(status_code=404, detail="Habit not found")
    return _habit_response(habit, service.get_today())


# Categories and progress
@app.get("/api/categories", response_model=List[CategoryResponse], dependencies=[Depends(verify_api_key)])
def get_categories(today: Optional[date] = Query(None), db: Session = Depends(get_db)):
    """Categories derived from the habits, in order of first appearance"""
    return HabitService(db).get_categories(today)


@app.get("/api/categories/{category}/progress", response_model=ProgressSeriesResponse, dependencies=[Depends(verify_api_key)])
def get_category_progress(category: str, db: Session = Depends(get_db)):
    """Streak series for one category"""
    try:
        series = HabitService(db).get_category_progress(category)
    except CategoryNotFoundException:
        raise HTTPException(status_code=404, detail="Category not found")
    return _series_response(category, series)


@app.get("/api/progress", response_model=List[ProgressSeriesResponse], dependencies=[Depends(verify_api_key)])
def get_progress(db: Session = Depends(get_db)):
    """Streak series for every category"""
    return [
        _series_response(category, series)
        for category, series in HabitService(db).get_all_progress().items()
    ]


# Rank and penalty estimator
@app.get("/api/rank", response_model=RankResponse, dependencies=[Depends(verify_api_key)])
def get_rank(db: Session = Depends(get_db)):
    """Rank tier for the total points across all habits"""
    return _rank_response(HabitService(db).get_rank())


@app.get("/api/penalty/estimate", response_model=PenaltyEstimateResponse, dependencies=[Depends(verify_api_key)])
def estimate_penalty(
    missed_days: int = Query(..., ge=0, le=3650),
    streak: Optional[int] = Query(None, ge=0),
    mode: Optional[str] = Query(None, pattern="^(flexible|strict)$"),
    points: Optional[int] = Query(None, ge=0),
    habit_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Preview the XP loss for a streak/mode/missed-days combination.

    With habit_id, streak, mode and points default to that habit's values.
    """
    if habit_id:
        try:
            habit = HabitService(db).get_habit(habit_id)
        except HabitNotFoundException:
            raise HTTPException(status_code=404, detail="Habit not found")
        streak = habit.streak if streak is None else streak
        mode = mode or habit.mode
        points = habit.points if points is None else points

    return PenaltyService.estimate(
        streak=streak or 0,
        mode=mode or "flexible",
        missed_days=missed_days,
        points=points
    )


# Settings
@app.get("/api/settings", response_model=SettingsResponse, dependencies=[Depends(verify_api_key)])
def get_settings(db: Session = Depends(get_db)):
    """Get engine settings"""
    settings = SettingsRepository.get(db)
    response = SettingsResponse.model_validate(settings)
    response.effective_date = DateService.get_effective_date(settings)
    return response


@app.put("/api/settings", response_model=SettingsResponse, dependencies=[Depends(verify_api_key)])
def update_settings(settings_update: SettingsUpdate, db: Session = Depends(get_db)):
    """Update engine settings"""
    settings = SettingsRepository.update(db, settings_update)
    logger.info(f"Settings updated: {settings_update.model_dump(exclude_unset=True)}")
    response = SettingsResponse.model_validate(settings)
    response.effective_date = DateService.get_effective_date(settings)
    return response


# Export / import
@app.get("/api/export", dependencies=[Depends(verify_api_key)])
def export_habits(db: Session = Depends(get_db)):
    """Export the whole habit collection as a portable document"""
    return SnapshotService(db).export_document()


@app.post("/api/import", response_model=ImportResponse, dependencies=[Depends(verify_api_key)])
def import_habits(document: Any = Body(...), db: Session = Depends(get_db)):
    """Replace the whole habit collection with an exported document"""
    try:
        imported = SnapshotService(db).import_document(document)
    except SnapshotException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"imported": imported}


# Backups
@app.get("/api/backups", response_model=List[BackupResponse], dependencies=[Depends(verify_api_key)])
def list_backups(limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)):
    """List local backups (newest first)"""
    return SnapshotService(db).list_backups(limit)


@app.post("/api/backups", response_model=BackupResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
def create_backup(db: Session = Depends(get_db)):
    """Create a manual backup"""
    try:
        return SnapshotService(db).create_backup(backup_type="manual")
    except BackupException as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/backups/{filename}/restore", response_model=ImportResponse, dependencies=[Depends(verify_api_key)])
def restore_backup(filename: str, db: Session = Depends(get_db)):
    """Restore the habit collection from a backup"""
    try:
        imported = SnapshotService(db).restore_backup(filename)
    except BackupException:
        raise HTTPException(status_code=404, detail="Backup not found")
    except SnapshotException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"imported": imported}


@app.delete("/api/backups/{filename}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(verify_api_key)])
def delete_backup(filename: str, db: Session = Depends(get_db)):
    """Delete a backup file"""
    if not SnapshotService(db).delete_backup(filename):
        raise HTTPException(status_code=404, detail="Backup not found")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("habit_tracker.main:app", host="0.0.0.0", port=8000, reload=False)
