"""
Scheduling Service

Single entry point used by the HTTP routes. Composes the coordinator,
editor, validator and conflict report builder, and wraps every mutating
operation with ReliabilityWrapper.call() (timeout, retry, circuit breaker).

The status store and breaker registry are passed in so that one instance of
each can be shared by every request of an application.
"""

import logging
import time
from typing import Callable, List, Optional

from sqlmodel import Session

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.errors import ConcurrencyError, NotFoundError
from golf_scheduler.repositories.player_repository import PlayerRepository
from golf_scheduler.repositories.schedule_repository import ScheduleRepository
from golf_scheduler.repositories.week_repository import WeekRepository
from golf_scheduler.services.conflict_report_builder import ConflictReportBuilder
from golf_scheduler.services.pairing_history import PairingHistoryStore, PairingMetrics
from golf_scheduler.services.regeneration_coordinator import (
    RegenerationCoordinator,
    RegenerationStatus,
    RegenerationStatusStore,
    ScheduleOperationResult,
)
from golf_scheduler.services.reliability import (
    CircuitBreakerRegistry,
    ReliabilityWrapper,
    ScheduleOperationOptions,
)
from golf_scheduler.services.schedule_assigner import ScheduleAssigner, filter_available
from golf_scheduler.services.schedule_editor import EditResult, ScheduleEditOperation, ScheduleEditor
from golf_scheduler.services.schedule_validator import ScheduleValidator, ValidationResult
from golf_scheduler.utils.conflict_report import ConflictReport
from golf_scheduler.utils.schedule_values import Schedule

logger = logging.getLogger(__name__)


def operation_key(operation: str, week_id: int) -> str:
    """Circuit breaker key for an operation on one week."""
    return f"{operation}:{week_id}"


class SchedulingService:
    def __init__(
        self,
        session: Session,
        status_store: RegenerationStatusStore,
        breakers: CircuitBreakerRegistry,
        settings: Optional[SchedulerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.settings = settings or SchedulerSettings()
        self.status_store = status_store
        self.breakers = breakers

        self.validator = ScheduleValidator()
        self.coordinator = RegenerationCoordinator(
            session,
            status_store,
            settings=self.settings,
            assigner=ScheduleAssigner(parallel_threshold=self.settings.parallel_assign_threshold),
            validator=self.validator,
        )
        self.editor = ScheduleEditor(session, settings=self.settings, validator=self.validator)
        self.reports = ConflictReportBuilder(self.validator)
        self.reliability = ReliabilityWrapper(breakers, settings=self.settings, clock=clock, sleep=sleep)

        self.weeks = WeekRepository(session)
        self.players = PlayerRepository(session)
        self.schedules = ScheduleRepository(session, lock_ttl_seconds=self.settings.lock_ttl_seconds)
        self.pairing_history = PairingHistoryStore(session)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def create_weekly_schedule(
        self, week_id: int, options: Optional[ScheduleOperationOptions] = None
    ) -> ScheduleOperationResult:
        options = options or ScheduleOperationOptions()
        return self.reliability.call(
            operation_key("create_weekly_schedule", week_id),
            lambda deadline: self.coordinator.create_weekly_schedule(
                week_id, deadline=deadline, validate_preconditions=options.validate_preconditions
            ),
            options,
        )

    def regenerate_schedule(
        self, week_id: int, options: Optional[ScheduleOperationOptions] = None
    ) -> ScheduleOperationResult:
        options = options or ScheduleOperationOptions()
        return self.reliability.call(
            operation_key("regenerate_schedule", week_id),
            lambda deadline: self.coordinator.regenerate_schedule(
                week_id, deadline=deadline, validate_preconditions=options.validate_preconditions
            ),
            options,
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def apply_edit(
        self,
        week_id: int,
        op: ScheduleEditOperation,
        commit: bool = True,
        options: Optional[ScheduleOperationOptions] = None,
    ) -> EditResult:
        return self.reliability.call(
            operation_key("apply_edit", week_id),
            lambda deadline: self.editor.apply_edit(week_id, op, commit=commit),
            options,
        )

    def validate_edit(self, week_id: int, schedule: Schedule) -> ValidationResult:
        return self.editor.validate_edit(week_id, schedule)

    def validate_time_slots(self, week_id: int, time_slots: dict) -> ValidationResult:
        """validate_edit for a client-supplied schedule (player ids only)."""
        return self.editor.validate_edit(week_id, self.editor.hydrate(week_id, time_slots))

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_regeneration_status(self, week_id: int) -> RegenerationStatus:
        return self.status_store.get(week_id) or RegenerationStatus(week_id=week_id)

    def clear_regeneration_status(self, week_id: int) -> bool:
        return self.status_store.clear(week_id)

    def is_regeneration_allowed(self, week_id: int) -> ValidationResult:
        """Preconditions only; nothing is locked or generated."""
        week = self.weeks.find_by_id(week_id)
        snapshot = None
        available_count = 0
        if week:
            snapshot = self.weeks.get_snapshot(week_id)
            available_count = len(filter_available(snapshot, self.players.snapshots_for_season(week.season_id)))
        in_progress = self.schedules.is_locked(week_id) or self.status_store.is_in_progress(week_id)
        return self.validator.validate_preconditions(week_id, snapshot, available_count, in_progress)

    def update_availability(self, week_id: int, player_id: int, status: Optional[str]) -> dict:
        """
        Set one player's availability for a week; ``None`` clears it.

        Raises:
            NotFoundError: Week does not exist, or the player is not on its season's roster
        """
        week = self.weeks.find_by_id(week_id)
        if not week:
            raise NotFoundError(f"Week {week_id} not found")
        player = self.players.find_by_id(player_id)
        if not player or player.season_id != week.season_id:
            raise NotFoundError(f"Player {player_id} not found in season {week.season_id}")

        week = self.weeks.set_availability(week_id, player_id, status)
        self.session.commit()
        self.session.refresh(week)
        current = self.weeks.availability_status(week, player_id)
        logger.info("Week %s availability for player %s set to %s", week_id, player_id, current)
        return {"week_id": week_id, "player_id": player_id, "status": current}

    def force_release_lock(self, week_id: int) -> bool:
        return self.schedules.force_release_lock(week_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_schedule(self, week_id: int) -> Schedule:
        schedule = self.schedules.load(week_id)
        if schedule is None:
            raise NotFoundError(f"Schedule not found for week {week_id}")
        return schedule

    def schedule_history(self, season_id: int) -> List[Schedule]:
        return [self.schedules.to_schedule(row) for row in self.schedules.find_by_season_id(season_id)]

    def conflict_report(self, week_id: int, schedule: Optional[Schedule] = None) -> ConflictReport:
        """Report for the committed schedule, or for ``schedule`` when given."""
        week = self.weeks.get_snapshot(week_id)
        schedule = schedule or self.get_schedule(week_id)
        roster = self.players.snapshots_for_season(week.season_id)
        return self.reports.compute(schedule, week, roster, regeneration_in_progress=self.schedules.is_locked(week_id))

    def delete_schedule(self, week_id: int) -> bool:
        lock_id = self.schedules.lock(week_id, owner="delete_schedule")
        if lock_id is None:
            raise ConcurrencyError(f"Schedule for week {week_id} is locked by another operation")
        try:
            deleted = self.schedules.delete_by_week_id(week_id)
            if not deleted:
                raise NotFoundError(f"Schedule not found for week {week_id}")
            self.session.commit()
            logger.info("Deleted schedule for week %s", week_id)
            return deleted
        except Exception:
            self.session.rollback()
            raise
        finally:
            self.schedules.unlock(week_id, lock_id)

    # ------------------------------------------------------------------
    # Pairing history
    # ------------------------------------------------------------------

    def pairing_metrics(self, season_id: int) -> PairingMetrics:
        player_ids = [p.id for p in self.players.find_by_season_id(season_id)]
        return self.pairing_history.pairing_metrics(season_id, player_ids)

    def reset_pairing_history(self, season_id: int) -> int:
        removed = self.pairing_history.reset(season_id)
        self.session.commit()
        return removed

    # ------------------------------------------------------------------
    # Circuit breakers
    # ------------------------------------------------------------------

    def circuit_breaker_status(self, op_key: str) -> dict:
        return self.breakers.status(op_key)

    def reset_circuit_breaker(self, op_key: Optional[str] = None) -> List[str]:
        return self.breakers.reset(op_key)
