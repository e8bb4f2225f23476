"""
Snapshot service for the habit collection.
Handles export/import of the full collection as a portable JSON document
and local backup files built from those documents.
"""
import os
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from habit_tracker.schemas import HabitRecord, SnapshotDocument
from habit_tracker.repositories.habit_repository import HabitRepository
from habit_tracker.repositories.settings_repository import SettingsRepository
from habit_tracker.services.checkin_service import store_lock
from habit_tracker.exceptions import SnapshotException, BackupException
from habit_tracker.constants import (
    SNAPSHOT_VERSION,
    BACKUP_FILE_PREFIX,
    DEFAULT_BACKUP_DIRECTORY_PROD,
    DEFAULT_BACKUP_DIRECTORY_DEV
)

logger = logging.getLogger("habit_tracker.snapshot")

_records_adapter = TypeAdapter(List[HabitRecord])


def get_backup_dir() -> Path:
    """Backup directory, falling back to a local one without permissions"""
    backup_dir = Path(os.getenv("HABIT_TRACKER_BACKUP_DIR", DEFAULT_BACKUP_DIRECTORY_PROD))
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        backup_dir = Path(DEFAULT_BACKUP_DIRECTORY_DEV)
        backup_dir.mkdir(parents=True, exist_ok=True)
    return backup_dir


def parse_document(raw: Union[str, bytes, list, dict]) -> List[HabitRecord]:
    """
    Parse a snapshot into habit records.

    Accepts a bare array of habits or the versioned export object
    ({"version": ..., "habits": [...]}), either as JSON text or already
    decoded. The whole document is rejected if any record is malformed.

    Raises:
        SnapshotException: If the document is not a valid habit collection
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotException(f"not valid JSON ({e.msg})")
    else:
        data = raw

    if not isinstance(data, (dict, list)):
        raise SnapshotException("root must be an array of habits")

    try:
        if isinstance(data, dict):
            records = SnapshotDocument.model_validate(data).habits
        else:
            records = _records_adapter.validate_python(data)
    except ValidationError as e:
        raise SnapshotException(f"{e.error_count()} invalid field(s): {e.errors()[0]['msg']}")

    seen = set()
    for record in records:
        if record.id in seen:
            raise SnapshotException(f"duplicate habit id {record.id}")
        seen.add(record.id)

    return records


def load_or_empty(raw: Union[str, bytes, list, dict, None]) -> List[HabitRecord]:
    """Parse a snapshot, falling back to an empty collection when it is missing or malformed"""
    if raw is None:
        return []
    try:
        return parse_document(raw)
    except SnapshotException as e:
        logger.warning(f"Discarding stored snapshot: {e}")
        return []


class SnapshotService:
    """Service for export, import and backups of the habit collection"""

    def __init__(self, db: Session):
        self.db = db
        self.habit_repo = HabitRepository()
        self.settings_repo = SettingsRepository()

    def export_document(self) -> dict:
        """
        Export every habit in store order.

        Only persisted fields are written, so importing the result restores
        an identical collection.
        """
        habits = [self.habit_repo.to_record(habit) for habit in self.habit_repo.get_all(self.db)]
        return {
            "version": SNAPSHOT_VERSION,
            "exported_at": datetime.utcnow().isoformat(),
            "habits": [habit.model_dump(mode="json") for habit in habits]
        }

    def import_document(self, raw: Union[str, bytes, list, dict]) -> int:
        """
        Replace the whole collection with a snapshot.

        The snapshot is fully validated before anything is written, and the
        replacement is one transaction.

        Returns:
            Number of habits imported

        Raises:
            SnapshotException: If the snapshot is malformed
        """
        records = parse_document(raw)
        with store_lock:
            count = self.habit_repo.replace_all(self.db, records)
        logger.info(f"Imported {count} habits")
        return count

    def create_backup(self, backup_type: str = "auto") -> dict:
        """
        Write the current export document to the backup directory.

        Raises:
            BackupException: If the file cannot be written
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        filename = f"{BACKUP_FILE_PREFIX}_{backup_type}_{timestamp}.json"
        filepath = get_backup_dir() / filename

        try:
            with store_lock:
                document = self.export_document()
            filepath.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"✗ Backup failed: {e}")
            raise BackupException(str(e))

        size_bytes = filepath.stat().st_size
        logger.info(f"✓ Backup created: {filename} ({size_bytes} bytes)")

        settings = self.settings_repo.get(self.db)
        settings.last_backup_date = datetime.utcnow()
        self.db.commit()

        self.cleanup_old_backups(settings.backup_keep_local_count)

        return {
            "filename": filename,
            "size_bytes": size_bytes,
            "created_at": datetime.fromtimestamp(filepath.stat().st_mtime)
        }

    def list_backups(self, limit: int = 50) -> List[dict]:
        """Backups ordered by creation time (newest first)"""
        files = sorted(
            get_backup_dir().glob(f"{BACKUP_FILE_PREFIX}_*.json"),
            key=lambda path: path.stat().st_mtime,
            reverse=True
        )
        return [
            {
                "filename": path.name,
                "size_bytes": path.stat().st_size,
                "created_at": datetime.fromtimestamp(path.stat().st_mtime)
            }
            for path in files[:limit]
        ]

    def cleanup_old_backups(self, keep_count: int) -> int:
        """Remove old local backups keeping only the last N"""
        removed = 0
        for backup in self.list_backups(limit=10_000)[keep_count:]:
            try:
                (get_backup_dir() / backup["filename"]).unlink()
                removed += 1
                logger.info(f"Deleted old backup file: {backup['filename']}")
            except OSError as e:
                logger.error(f"Failed to delete backup file {backup['filename']}: {e}")
        return removed

    def restore_backup(self, filename: str) -> int:
        """
        Import a backup file.

        Raises:
            BackupException: If the backup does not exist
            SnapshotException: If its content is malformed
        """
        path = self._resolve_backup(filename)
        if path is None:
            raise BackupException(f"backup {filename} not found")
        return self.import_document(path.read_text(encoding="utf-8"))

    def delete_backup(self, filename: str) -> bool:
        """Delete a backup file"""
        path = self._resolve_backup(filename)
        if path is None:
            return False
        path.unlink()
        logger.info(f"Deleted backup: {filename}")
        return True

    def _resolve_backup(self, filename: str) -> Optional[Path]:
        """Path of a backup by bare filename, None if invalid or missing"""
        if Path(filename).name != filename or not filename.startswith(BACKUP_FILE_PREFIX):
            return None
        path = get_backup_dir() / filename
        return path if path.is_file() else None
