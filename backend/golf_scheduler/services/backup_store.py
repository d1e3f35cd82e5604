"""
Schedule Backup Store

Timestamped, checksummed snapshots of a week's schedule taken before it is
regenerated. A backup is self-contained (player details are embedded) so it
can be restored even if the roster changed afterwards.

Backups are committed as soon as they are taken: a later rollback of the
regeneration transaction must not discard the snapshot it would restore.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Callable, List

from sqlmodel import Session, select

from golf_scheduler.errors import NotFoundError, SchedulingError
from golf_scheduler.models.schedule_backup import ScheduleBackup
from golf_scheduler.utils.schedule_values import Schedule, schedule_from_payload, schedule_to_payload

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKUPS_PER_WEEK = 5
DEFAULT_RETENTION_DAYS = 30


def compute_checksum(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class BackupStore:
    def __init__(
        self,
        session: Session,
        max_per_week: int = DEFAULT_MAX_BACKUPS_PER_WEEK,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.max_per_week = max_per_week
        self.retention_days = retention_days
        self._now = now

    def snapshot(self, schedule: Schedule) -> int:
        """
        Persist a backup of ``schedule`` and prune old backups for its week.

        Returns:
            The backup id
        """
        # Canonical JSON so the checksum is stable for equal schedules
        payload = json.dumps(schedule_to_payload(schedule), sort_keys=True, separators=(",", ":"))
        backup = ScheduleBackup(
            week_id=schedule.week_id,
            original_schedule_id=schedule.id,
            payload=payload,
            checksum=compute_checksum(payload),
            size=len(payload),
            description=f"Backup of schedule {schedule.id} for week {schedule.week_id}",
            created_at=self._now(),
        )
        self.session.add(backup)
        self.session.commit()
        self.session.refresh(backup)

        logger.info("Created backup %s for week %s (%d bytes)", backup.id, schedule.week_id, backup.size)
        self.cleanup_old_backups(schedule.week_id)
        return backup.id

    def restore(self, backup_id: int) -> Schedule:
        """
        Load the schedule stored in a backup. Nothing is written.

        Raises:
            NotFoundError: No backup with this id
            SchedulingError: The backup fails its integrity check
        """
        backup = self.session.get(ScheduleBackup, backup_id)
        if not backup:
            raise NotFoundError(f"Backup {backup_id} not found")
        if not self._is_intact(backup):
            raise SchedulingError(f"Backup {backup_id} is corrupted or invalid")
        return schedule_from_payload(json.loads(backup.payload))

    def list_backups(self, week_id: int) -> List[ScheduleBackup]:
        """Backups for a week, most recent first."""
        return list(
            self.session.exec(
                select(ScheduleBackup)
                .where(ScheduleBackup.week_id == week_id)
                .order_by(ScheduleBackup.created_at.desc(), ScheduleBackup.id.desc())
            ).all()
        )

    def validate_backup(self, backup_id: int) -> bool:
        backup = self.session.get(ScheduleBackup, backup_id)
        if not backup:
            return False
        return self._is_intact(backup)

    def cleanup_old_backups(self, week_id: int) -> int:
        """
        Keep at most ``max_per_week`` backups newer than the retention cutoff.

        Returns:
            Number of backups removed
        """
        cutoff = self._now() - timedelta(days=self.retention_days)
        backups = self.list_backups(week_id)
        keep = [b for b in backups if b.created_at > cutoff][: self.max_per_week]
        keep_ids = {b.id for b in keep}
        removed = [b for b in backups if b.id not in keep_ids]

        for backup in removed:
            self.session.delete(backup)
        if removed:
            self.session.commit()
            logger.info("Removed %d old backups for week %s", len(removed), week_id)
        return len(removed)

    def _is_intact(self, backup: ScheduleBackup) -> bool:
        if compute_checksum(backup.payload) != backup.checksum:
            return False
        if len(backup.payload) != backup.size:
            return False
        try:
            schedule_from_payload(json.loads(backup.payload))
        except (ValueError, KeyError, TypeError):
            return False
        return True
