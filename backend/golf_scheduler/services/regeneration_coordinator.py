"""
Regeneration Coordinator

Creates and regenerates a week's schedule with rollback safety:

    idle -> confirming -> backing_up -> generating -> replacing -> completed
                                                               \\-> failed

1. Take the week lock (a locked week is rejected before any status is
   written), then check preconditions
2. Back up the current schedule (regeneration only; committed immediately)
3. Generate a candidate from the roster and the season's pairing snapshot
4. Validate the candidate (schedule constraints + business rules)
5. Replace the schedule and record pairings - single commit

On any failure before the commit the transaction is rolled back and, if a
backup was taken, it is written back. Once committed the attempt always
completes. The lock is released and the status made terminal on every exit
path.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.errors import (
    AlreadyExistsError,
    BackupRestoreError,
    ConcurrencyError,
    InsufficientResourcesError,
    NotFoundError,
    ScheduleValidationError,
    SchedulingError,
)
from golf_scheduler.repositories.player_repository import PlayerRepository
from golf_scheduler.repositories.schedule_repository import ScheduleRepository
from golf_scheduler.repositories.week_repository import WeekRepository
from golf_scheduler.services.backup_store import BackupStore
from golf_scheduler.services.pairing_history import PairingHistoryStore
from golf_scheduler.services.reliability import Deadline
from golf_scheduler.services.schedule_assigner import ScheduleAssigner, filter_available
from golf_scheduler.services.schedule_validator import INSUFFICIENT_PLAYERS, ScheduleValidator
from golf_scheduler.utils.schedule_values import MIN_VIABLE_PLAYERS, Schedule, WeekSnapshot, schedule_to_payload

logger = logging.getLogger(__name__)

IDLE = "idle"
CONFIRMING = "confirming"
BACKING_UP = "backing_up"
GENERATING = "generating"
REPLACING = "replacing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATES = (IDLE, COMPLETED, FAILED)

PROGRESS = {
    IDLE: 0,
    CONFIRMING: 10,
    BACKING_UP: 25,
    GENERATING: 50,
    REPLACING: 80,
    COMPLETED: 100,
}


# ============================================================================
# Status tracking
# ============================================================================


@dataclass(frozen=True)
class RegenerationStatus:
    week_id: int
    state: str = IDLE
    progress: int = 0
    current_step: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self):
        return {
            "week_id": self.week_id,
            "state": self.state,
            "progress": self.progress,
            "current_step": self.current_step,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


class RegenerationStatusStore:
    """In-flight status per week. One store per application instance."""

    def __init__(self, now: Callable[[], datetime] = datetime.utcnow):
        self._now = now
        self._statuses: Dict[int, RegenerationStatus] = {}
        self._lock = threading.Lock()

    def get(self, week_id: int) -> Optional[RegenerationStatus]:
        with self._lock:
            return self._statuses.get(week_id)

    def begin(self, week_id: int) -> RegenerationStatus:
        status = RegenerationStatus(
            week_id=week_id,
            state=CONFIRMING,
            progress=PROGRESS[CONFIRMING],
            current_step=CONFIRMING,
            started_at=self._now(),
        )
        with self._lock:
            self._statuses[week_id] = status
        return status

    def advance(self, week_id: int, state: str) -> RegenerationStatus:
        with self._lock:
            current = self._statuses.get(week_id) or RegenerationStatus(week_id=week_id, started_at=self._now())
            status = replace(current, state=state, progress=PROGRESS.get(state, current.progress), current_step=state)
            if state == COMPLETED:
                status = replace(status, current_step=None, completed_at=self._now(), error=None)
            self._statuses[week_id] = status
            return status

    def fail(self, week_id: int, error: str) -> RegenerationStatus:
        with self._lock:
            current = self._statuses.get(week_id) or RegenerationStatus(week_id=week_id, started_at=self._now())
            # Progress stays where the attempt stopped
            status = replace(current, state=FAILED, completed_at=self._now(), error=error)
            self._statuses[week_id] = status
            return status

    def is_in_progress(self, week_id: int) -> bool:
        status = self.get(week_id)
        return status is not None and not status.is_terminal

    def clear(self, week_id: int) -> bool:
        with self._lock:
            return self._statuses.pop(week_id, None) is not None


# ============================================================================
# Result
# ============================================================================


class ScheduleOperationResult:
    """Outcome of a successful create or regenerate"""

    def __init__(self, schedule: Schedule, warnings: Optional[List[str]] = None):
        self.schedule = schedule
        self.warnings: List[str] = list(warnings or [])
        self.backup_id: Optional[int] = None
        self.pairings_recorded = 0

    def to_dict(self):
        return {
            "status": "success",
            "week_id": self.schedule.week_id,
            "schedule": schedule_to_payload(self.schedule),
            "warnings": self.warnings,
            "backup_id": self.backup_id,
            "pairings_recorded": self.pairings_recorded,
        }


# ============================================================================
# Coordinator
# ============================================================================


class RegenerationCoordinator:
    def __init__(
        self,
        session: Session,
        status_store: RegenerationStatusStore,
        settings: Optional[SchedulerSettings] = None,
        assigner: Optional[ScheduleAssigner] = None,
        validator: Optional[ScheduleValidator] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.status_store = status_store
        self.settings = settings or SchedulerSettings()
        self.assigner = assigner or ScheduleAssigner(parallel_threshold=self.settings.parallel_assign_threshold)
        self.validator = validator or ScheduleValidator()

        self.weeks = WeekRepository(session)
        self.players = PlayerRepository(session)
        self.schedules = ScheduleRepository(session, lock_ttl_seconds=self.settings.lock_ttl_seconds, now=now)
        self.backups = BackupStore(
            session,
            max_per_week=self.settings.backup_max_per_week,
            retention_days=self.settings.backup_retention_days,
            now=now,
        )
        self.pairing_history = PairingHistoryStore(session)

    def create_weekly_schedule(
        self,
        week_id: int,
        deadline: Optional[Deadline] = None,
        validate_preconditions: bool = True,
    ) -> ScheduleOperationResult:
        """
        Generate and persist the first schedule for a week.

        Raises:
            AlreadyExistsError: The week already has a schedule
            ConcurrencyError: The week is locked
            NotFoundError: Week does not exist
            InsufficientResourcesError: Fewer than 4 available players
            ScheduleValidationError: Candidate failed validation
            ScheduleTimeoutError: Deadline expired between steps
        """
        return self._run(week_id, deadline or Deadline.unbounded(), validate_preconditions, regenerate=False)

    def regenerate_schedule(
        self,
        week_id: int,
        deadline: Optional[Deadline] = None,
        validate_preconditions: bool = True,
    ) -> ScheduleOperationResult:
        """
        Replace a week's schedule with a newly generated one.

        The current schedule is backed up first and written back if the
        attempt fails after that point.

        Raises:
            NotFoundError: Week or current schedule does not exist
            ConcurrencyError: The week is locked
            InsufficientResourcesError: Fewer than 4 available players
            ScheduleValidationError: Candidate failed validation
            ScheduleTimeoutError: Deadline expired between steps
            BackupRestoreError: Writing the backup back failed as well
        """
        return self._run(week_id, deadline or Deadline.unbounded(), validate_preconditions, regenerate=True)

    def _run(
        self,
        week_id: int,
        deadline: Deadline,
        validate_preconditions: bool,
        regenerate: bool,
    ) -> ScheduleOperationResult:
        operation = "regenerate" if regenerate else "create"

        # idle -> confirming only once the lock is ours; another holder's status is left untouched
        lock_id = self.schedules.lock(week_id, owner=f"{operation}_schedule")
        if lock_id is None:
            raise ConcurrencyError(f"Schedule for week {week_id} is locked by another operation")

        self.status_store.begin(week_id)
        step = CONFIRMING
        backup_id: Optional[int] = None

        try:
            # ====================================================================
            # Step 1: Confirm
            # ====================================================================
            week = self.weeks.find_by_id(week_id)
            if not week:
                raise NotFoundError(f"Week {week_id} not found")
            week_snapshot = WeekSnapshot.from_model(week)
            roster = self.players.snapshots_for_season(week.season_id)
            available = filter_available(week_snapshot, roster)

            existing = self.schedules.find_by_week_id(week_id)
            if regenerate and not existing:
                raise NotFoundError(f"Schedule not found for week {week_id}")
            if not regenerate and existing:
                raise AlreadyExistsError(f"Schedule already exists for week {week_id}")

            if validate_preconditions:
                preconditions = self.validator.validate_preconditions(week_id, week_snapshot, len(available), False)
                if INSUFFICIENT_PLAYERS in preconditions.codes:
                    raise InsufficientResourcesError(
                        f"Week {week_id} has {len(available)} available players; "
                        f"at least {MIN_VIABLE_PLAYERS} are required",
                        available_count=len(available),
                        minimum_required=MIN_VIABLE_PLAYERS,
                    )
            deadline.check(step)

            # ====================================================================
            # Step 2: Back up (regeneration only)
            # ====================================================================
            if regenerate:
                step = BACKING_UP
                self.status_store.advance(week_id, step)
                current = self.schedules.to_schedule(existing)
                backup_id = self.backups.snapshot(current)
                deadline.check(step)

            # ====================================================================
            # Step 3: Generate + validate
            # ====================================================================
            step = GENERATING
            self.status_store.advance(week_id, step)
            costs = self.pairing_history.snapshot(week.season_id)
            candidate = self.assigner.assign(week_snapshot, roster, season_id=week.season_id, pairing_costs=costs)

            validation = self.validator.validate_candidate(candidate, available, week_snapshot)
            if not validation.is_valid:
                raise ScheduleValidationError(
                    f"Generated schedule for week {week_id} failed validation",
                    errors=validation.errors,
                    warnings=validation.warnings,
                )
            deadline.check(step)

            # ====================================================================
            # Step 4: Replace + record pairings - single commit
            # ====================================================================
            step = REPLACING
            self.status_store.advance(week_id, step)
            row = self.schedules.replace(candidate, count_regeneration=regenerate)
            recorded = self.pairing_history.record_pairings(week.season_id, candidate, played_on=week.date)
            # Captured from the flushed row: nothing after the commit touches the database
            persisted = replace(
                candidate,
                id=row.id,
                created_at=row.created_at,
                last_modified=row.last_modified,
                regeneration_count=row.regeneration_count,
            )
            deadline.check(step)
            self.session.commit()

        except Exception as e:
            self.session.rollback()
            logger.warning("%s schedule for week %s failed at step %s: %s", operation, week_id, step, e)

            if backup_id is not None:
                try:
                    self._restore_backup(backup_id)
                except Exception as restore_error:
                    self.session.rollback()
                    logger.exception("Restoring backup %s for week %s failed", backup_id, week_id)
                    self.status_store.fail(week_id, f"{e}; restore failed: {restore_error}")
                    raise BackupRestoreError(
                        f"Schedule {operation} failed at step {step} and backup {backup_id} could not be restored",
                        original_error=e,
                        restore_error=restore_error,
                    ) from e

            self.status_store.fail(week_id, str(e))
            if isinstance(e, (SchedulingError, OperationalError)):
                raise
            logger.exception("Unexpected error in %s schedule for week %s", operation, week_id)
            raise SchedulingError(f"Schedule {operation} failed at step {step}: {e}") from e

        else:
            # Committed: from here on the attempt can only complete
            self.status_store.advance(week_id, COMPLETED)
            result = ScheduleOperationResult(persisted, warnings=validation.warnings)
            result.backup_id = backup_id
            result.pairings_recorded = recorded
            logger.info(
                "%s schedule for week %s: %d players in %d foursomes",
                operation.capitalize(),
                week_id,
                persisted.player_count,
                len(persisted.all_foursomes()),
            )
            return result

        finally:
            self.schedules.unlock(week_id, lock_id)

    def _restore_backup(self, backup_id: int) -> None:
        restored = self.backups.restore(backup_id)
        self.schedules.restore(restored)
        self.session.commit()
        logger.info("Restored backup %s for week %s", backup_id, restored.week_id)
