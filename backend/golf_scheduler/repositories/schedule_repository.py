"""
Schedule persistence and per-week locking.

Locks live in the ``schedulelock`` table with a unique ``week_id`` so that
acquisition is all-or-nothing: the insert either wins or hits the unique
constraint. Lock rows carry a TTL; an expired lock no longer blocks the week
and is removed on the next lock check.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from golf_scheduler.errors import NotFoundError
from golf_scheduler.models.schedule_lock import ScheduleLock
from golf_scheduler.models.week import Week
from golf_scheduler.models.weekly_schedule import WeeklySchedule
from golf_scheduler.repositories.player_repository import PlayerRepository
from golf_scheduler.utils.schedule_values import (
    AFTERNOON,
    MORNING,
    PlayerSnapshot,
    Schedule,
    time_slots_from_json,
    time_slots_to_json,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 30

# Serializes check-and-insert of lock rows within one process
_LOCK_GUARD = threading.Lock()


class ScheduleRepository:
    def __init__(
        self,
        session: Session,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.lock_ttl_seconds = lock_ttl_seconds
        self._now = now

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_week_id(self, week_id: int) -> Optional[WeeklySchedule]:
        return self.session.exec(select(WeeklySchedule).where(WeeklySchedule.week_id == week_id)).first()

    def find_by_season_id(self, season_id: int) -> List[WeeklySchedule]:
        return list(
            self.session.exec(
                select(WeeklySchedule)
                .join(Week, WeeklySchedule.week_id == Week.id)
                .where(Week.season_id == season_id)
                .order_by(Week.week_number)
            ).all()
        )

    def to_schedule(self, row: WeeklySchedule) -> Schedule:
        """
        Hydrate a stored row into a Schedule using current player data.

        Raises:
            NotFoundError: a scheduled player no longer exists
        """
        time_slots = row.time_slots or {}
        player_ids = {
            int(pid) for slot in (MORNING, AFTERNOON) for entry in time_slots.get(slot, []) for pid in entry.get("player_ids", [])
        }
        players = PlayerRepository(self.session).find_by_ids(player_ids)
        players_by_id = {p.id: PlayerSnapshot.from_model(p) for p in players}

        missing = sorted(player_ids - set(players_by_id))
        if missing:
            raise NotFoundError(f"Schedule for week {row.week_id} references unknown players: {missing}")

        slots = time_slots_from_json(row.week_id, time_slots, players_by_id)
        return Schedule(
            id=row.id,
            week_id=row.week_id,
            morning=slots[MORNING],
            afternoon=slots[AFTERNOON],
            created_at=row.created_at,
            last_modified=row.last_modified,
            regeneration_count=row.regeneration_count,
        )

    def load(self, week_id: int) -> Optional[Schedule]:
        row = self.find_by_week_id(week_id)
        if not row:
            return None
        return self.to_schedule(row)

    # ------------------------------------------------------------------
    # Writes (flush only; the caller owns the transaction)
    # ------------------------------------------------------------------

    def create(self, schedule: Schedule) -> WeeklySchedule:
        now = self._now()
        row = WeeklySchedule(
            week_id=schedule.week_id,
            time_slots=time_slots_to_json(schedule),
            created_at=now,
            last_modified=now,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, schedule: Schedule, count_regeneration: bool = False) -> WeeklySchedule:
        row = self.find_by_week_id(schedule.week_id)
        if not row:
            raise NotFoundError(f"Schedule not found for week {schedule.week_id}")

        row.time_slots = time_slots_to_json(schedule)
        now = self._now()
        # Guarantee last_modified moves forward even within one clock tick
        row.last_modified = max(now, row.last_modified + timedelta(microseconds=1)) if row.last_modified else now
        if count_regeneration:
            row.regeneration_count = (row.regeneration_count or 0) + 1
        self.session.add(row)
        self.session.flush()
        return row

    def replace(self, schedule: Schedule, count_regeneration: bool = True) -> WeeklySchedule:
        """Create the week's schedule or overwrite the existing one."""
        if self.find_by_week_id(schedule.week_id):
            return self.update(schedule, count_regeneration=count_regeneration)
        return self.create(schedule)

    def restore(self, schedule: Schedule) -> WeeklySchedule:
        """Write ``schedule`` back exactly as captured, timestamps and counters included."""
        row = self.find_by_week_id(schedule.week_id)
        if not row:
            row = WeeklySchedule(week_id=schedule.week_id)
        row.time_slots = time_slots_to_json(schedule)
        row.regeneration_count = schedule.regeneration_count
        row.created_at = schedule.created_at or row.created_at or self._now()
        row.last_modified = schedule.last_modified or self._now()
        self.session.add(row)
        self.session.flush()
        return row

    def delete_by_week_id(self, week_id: int) -> bool:
        row = self.find_by_week_id(week_id)
        if not row:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    # ------------------------------------------------------------------
    # Locking (commits immediately)
    # ------------------------------------------------------------------

    def _is_expired(self, lock: ScheduleLock) -> bool:
        return self._now() - lock.locked_at >= timedelta(seconds=lock.timeout_seconds)

    def _active_lock(self, week_id: int) -> Optional[ScheduleLock]:
        lock = self.session.exec(select(ScheduleLock).where(ScheduleLock.week_id == week_id)).first()
        if lock and self._is_expired(lock):
            logger.warning("Removing expired schedule lock %s for week %s", lock.lock_id, week_id)
            self.session.delete(lock)
            self.session.commit()
            return None
        return lock

    def lock(self, week_id: int, owner: Optional[str] = None, timeout_seconds: Optional[int] = None) -> Optional[str]:
        """
        Acquire the exclusive lock for a week.

        Returns:
            The new lock id, or None if the week is already locked
        """
        with _LOCK_GUARD:
            if self._active_lock(week_id):
                return None

            lock_id = f"lock_{uuid.uuid4().hex}"
            self.session.add(
                ScheduleLock(
                    week_id=week_id,
                    lock_id=lock_id,
                    locked_at=self._now(),
                    timeout_seconds=timeout_seconds or self.lock_ttl_seconds,
                    owner=owner,
                )
            )
            try:
                self.session.commit()
            except IntegrityError:
                # Lost the race for the unique week_id row
                self.session.rollback()
                return None
            return lock_id

    def unlock(self, week_id: int, lock_id: Optional[str] = None) -> bool:
        query = select(ScheduleLock).where(ScheduleLock.week_id == week_id)
        if lock_id:
            query = query.where(ScheduleLock.lock_id == lock_id)
        lock = self.session.exec(query).first()
        if not lock:
            return False
        self.session.delete(lock)
        self.session.commit()
        return True

    def is_locked(self, week_id: int) -> bool:
        return self._active_lock(week_id) is not None

    def force_release_lock(self, week_id: int) -> bool:
        released = self.unlock(week_id)
        if released:
            logger.warning("Force-released schedule lock for week %s", week_id)
        return released
