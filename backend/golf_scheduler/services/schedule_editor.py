"""
Manual Schedule Editor: edit operations on a committed schedule

Supported operations:

1. **move**: move a player from one foursome to another
2. **swap**: exchange two players (anywhere in the schedule)
3. **add**: put a roster player into a foursome
4. **remove**: take a player out of a foursome

Every edit works on a copy of the current schedule. The copy is checked with
the schedule-constraint and business-rule layers and either persisted as a
whole or rejected as a whole; pairing history is never touched.
"""

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.errors import ConcurrencyError, NotFoundError, ScheduleValidationError
from golf_scheduler.repositories.player_repository import PlayerRepository
from golf_scheduler.repositories.schedule_repository import ScheduleRepository
from golf_scheduler.repositories.week_repository import WeekRepository
from golf_scheduler.services.schedule_assigner import filter_available
from golf_scheduler.services.schedule_validator import ScheduleValidator, ValidationResult
from golf_scheduler.utils.schedule_values import (
    AFTERNOON,
    MORNING,
    TIME_SLOTS,
    Foursome,
    PlayerSnapshot,
    Schedule,
    WeekSnapshot,
    schedule_to_payload,
    time_slots_from_json,
)

logger = logging.getLogger(__name__)

MOVE = "move"
SWAP = "swap"
ADD = "add"
REMOVE = "remove"


class ScheduleEditOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["move", "swap", "add", "remove"]
    player_id: int = Field(alias="playerId")
    from_foursome_id: Optional[str] = Field(default=None, alias="fromFoursomeId")
    to_foursome_id: Optional[str] = Field(default=None, alias="toFoursomeId")
    second_player_id: Optional[int] = Field(default=None, alias="secondPlayerId")


class EditResult:
    def __init__(self, schedule: Schedule, validation: ValidationResult, persisted: bool):
        self.schedule = schedule
        self.validation = validation
        self.persisted = persisted

    def to_dict(self):
        return {
            "status": "success",
            "persisted": self.persisted,
            "schedule": schedule_to_payload(self.schedule),
            "warnings": self.validation.warnings,
        }


# ============================================================================
# Pure edit application
# ============================================================================


def _require_field(value, name: str, op_type: str):
    if value is None:
        raise ScheduleValidationError(
            f"Invalid {op_type} operation", errors=[f"{name} is required for a {op_type} operation"]
        )
    return value


def _require_foursome(schedule: Schedule, foursome_id: str, role: str) -> Foursome:
    foursome = schedule.find_foursome(foursome_id)
    if not foursome:
        raise NotFoundError(f"{role} foursome {foursome_id} not found")
    return foursome


def apply_operation(
    schedule: Schedule,
    op: ScheduleEditOperation,
    roster: Optional[Dict[int, PlayerSnapshot]] = None,
) -> Schedule:
    """
    Return a new Schedule with ``op`` applied. ``schedule`` is not modified.

    Structural problems (unknown foursome or player) raise; rule violations
    such as an overfull foursome are left for the validator to report.

    Args:
        schedule: Current schedule
        op: Edit to apply
        roster: Players that may be added (by id); required for ``add``

    Raises:
        NotFoundError: Foursome or player does not exist
        ScheduleValidationError: Operation is missing a required field
    """
    changed: Dict[str, Foursome] = {}

    def current(foursome: Foursome) -> Foursome:
        return changed.get(foursome.id, foursome)

    if op.type == MOVE:
        from_id = _require_field(op.from_foursome_id, "from_foursome_id", op.type)
        to_id = _require_field(op.to_foursome_id, "to_foursome_id", op.type)
        source = _require_foursome(schedule, from_id, "Source")
        target = _require_foursome(schedule, to_id, "Target")
        player = next((p for p in source.players if p.id == op.player_id), None)
        if not player:
            raise NotFoundError(f"Player {op.player_id} not found in source foursome {from_id}")
        if source.id != target.id:
            changed[source.id] = source.with_players(p for p in source.players if p.id != op.player_id)
            changed[target.id] = target.with_players(target.players + (player,))

    elif op.type == SWAP:
        second_id = _require_field(op.second_player_id, "second_player_id", op.type)
        first = schedule.find_player(op.player_id)
        second = schedule.find_player(second_id)
        if not first:
            raise NotFoundError(f"Player {op.player_id} not found in any foursome")
        if not second:
            raise NotFoundError(f"Player {second_id} not found in any foursome")
        (first_foursome, first_player), (second_foursome, second_player) = first, second

        # Each player takes the other's place in line
        substitutions = {first_player.id: second_player, second_player.id: first_player}
        for foursome in {first_foursome.id: first_foursome, second_foursome.id: second_foursome}.values():
            changed[foursome.id] = foursome.with_players(substitutions.get(p.id, p) for p in foursome.players)

    elif op.type == ADD:
        to_id = _require_field(op.to_foursome_id, "to_foursome_id", op.type)
        target = _require_foursome(schedule, to_id, "Target")
        player = (roster or {}).get(op.player_id)
        if not player:
            raise NotFoundError(f"Player {op.player_id} not found")
        changed[target.id] = target.with_players(target.players + (player,))

    elif op.type == REMOVE:
        from_id = _require_field(op.from_foursome_id, "from_foursome_id", op.type)
        source = _require_foursome(schedule, from_id, "Source")
        if not source.has_player(op.player_id):
            raise NotFoundError(f"Player {op.player_id} not found in foursome {from_id}")
        changed[source.id] = source.with_players(p for p in source.players if p.id != op.player_id)

    return schedule.with_foursomes(current(f) for f in schedule.all_foursomes())


# ============================================================================
# Editor service
# ============================================================================


class ScheduleEditor:
    def __init__(
        self,
        session: Session,
        settings: Optional[SchedulerSettings] = None,
        validator: Optional[ScheduleValidator] = None,
    ):
        self.session = session
        self.settings = settings or SchedulerSettings()
        self.validator = validator or ScheduleValidator()
        self.weeks = WeekRepository(session)
        self.players = PlayerRepository(session)
        self.schedules = ScheduleRepository(session, lock_ttl_seconds=self.settings.lock_ttl_seconds)

    def _available_players(self, week: WeekSnapshot) -> List[PlayerSnapshot]:
        return filter_available(week, self.players.snapshots_for_season(week.season_id))

    def apply_edit(self, week_id: int, op: ScheduleEditOperation, commit: bool = True) -> EditResult:
        """
        Apply one edit to the week's schedule.

        Args:
            week_id: Week whose schedule is edited
            op: Edit operation
            commit: Persist the edited schedule (False returns it without writing)

        Returns:
            EditResult with the edited schedule and any warnings

        Raises:
            ConcurrencyError: The week is locked
            NotFoundError: Week, schedule, foursome or player does not exist
            ScheduleValidationError: The edit violates a rule; nothing is written
        """
        week = self.weeks.get_snapshot(week_id)

        lock_id = self.schedules.lock(week_id, owner="apply_edit")
        if lock_id is None:
            raise ConcurrencyError(f"Schedule for week {week_id} is locked by another operation")

        try:
            row = self.schedules.find_by_week_id(week_id)
            if not row:
                raise NotFoundError(f"Schedule not found for week {week_id}")
            original = self.schedules.to_schedule(row)

            roster = {p.id: p for p in self.players.snapshots_for_season(week.season_id)}
            candidate = apply_operation(original, op, roster)

            validation = self.validator.validate_candidate(candidate, self._available_players(week), week)
            if not validation.is_valid:
                raise ScheduleValidationError(
                    f"Manual edit validation failed: {'; '.join(validation.errors)}",
                    errors=validation.errors,
                    warnings=validation.warnings,
                )

            if not commit:
                return EditResult(candidate, validation, persisted=False)

            row = self.schedules.update(candidate)
            self.session.commit()
            self.session.refresh(row)
            logger.info("Applied %s edit for player %s on week %s", op.type, op.player_id, week_id)
            return EditResult(self.schedules.to_schedule(row), validation, persisted=True)

        except Exception:
            self.session.rollback()
            raise

        finally:
            self.schedules.unlock(week_id, lock_id)

    def hydrate(self, week_id: int, time_slots: dict) -> Schedule:
        """
        Build a Schedule from client-supplied time slots (player ids only).

        Raises:
            ScheduleValidationError: A slot other than morning or afternoon is given
            NotFoundError: A referenced player does not exist
        """
        unknown_slots = sorted(set(time_slots or {}) - set(TIME_SLOTS))
        if unknown_slots:
            raise ScheduleValidationError(
                "Invalid time slots",
                errors=[f"Unknown time slot: {slot}" for slot in unknown_slots],
            )

        player_ids = {
            int(pid) for entries in (time_slots or {}).values() for entry in entries for pid in entry.get("player_ids", [])
        }
        players_by_id = {p.id: PlayerSnapshot.from_model(p) for p in self.players.find_by_ids(player_ids)}
        missing = sorted(player_ids - set(players_by_id))
        if missing:
            raise NotFoundError(f"Unknown players: {missing}")
        slots = time_slots_from_json(week_id, time_slots, players_by_id)
        return Schedule(week_id=week_id, morning=slots[MORNING], afternoon=slots[AFTERNOON])

    def validate_edit(self, week_id: int, schedule: Schedule) -> ValidationResult:
        """Run the schedule-constraint and business-rule layers. Nothing is written."""
        week = self.weeks.get_snapshot(week_id)
        return self.validator.validate_candidate(schedule, self._available_players(week), week)
