"""
Schedule Validator

Three independent layers, composed by the caller:

1. Preconditions      - can a schedule be generated for this week at all?
2. Schedule constraints - does every placement respect availability and
                          time preference?
3. Business rules     - is the schedule as a whole acceptable?

Every layer collects all violations in one pass and returns a
ValidationResult; nothing here raises for an invalid schedule.
"""

from collections import Counter
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from golf_scheduler.utils.schedule_values import (
    ABSENT,
    AFTERNOON,
    AM,
    FOURSOME_SIZE,
    LEFT,
    MIN_VIABLE_PLAYERS,
    MORNING,
    PM,
    RIGHT,
    UNAVAILABLE,
    PlayerSnapshot,
    Schedule,
    WeekSnapshot,
)

# Rule codes (stable identifiers for the violated rule)
WEEK_NOT_FOUND = "week_not_found"
INSUFFICIENT_PLAYERS = "insufficient_players"
REGENERATION_IN_PROGRESS = "regeneration_in_progress"
PLAYER_UNAVAILABLE = "player_unavailable"
PLAYER_NO_AVAILABILITY_DATA = "player_no_availability_data"
PLAYER_NOT_AVAILABLE = "player_not_in_available_set"
DUPLICATE_PLAYER = "duplicate_player"
WRONG_TIME_SLOT = "wrong_time_slot"
FOURSOME_OVERFULL = "foursome_overfull"
FOURSOME_SLOT_MISMATCH = "foursome_slot_mismatch"
FOURSOME_EMPTY = "foursome_empty"
HANDEDNESS_IMBALANCE = "handedness_imbalance"
PLAYER_IN_BOTH_SLOTS = "player_in_both_slots"
SCHEDULE_NOT_VIABLE = "schedule_not_viable"
MIXED_SEASONS = "mixed_seasons"
WRONG_SEASON = "wrong_season"


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    codes: List[str] = Field(default_factory=list)

    def add_error(self, code: str, message: str) -> None:
        self.errors.append(message)
        if code not in self.codes:
            self.codes.append(code)
        self.is_valid = False

    def add_warning(self, code: str, message: str) -> None:
        self.warnings.append(message)
        if code not in self.codes:
            self.codes.append(code)

    @classmethod
    def merge(cls, *results: "ValidationResult") -> "ValidationResult":
        merged = cls()
        for result in results:
            merged.errors.extend(result.errors)
            merged.warnings.extend(result.warnings)
            for code in result.codes:
                if code not in merged.codes:
                    merged.codes.append(code)
        merged.is_valid = not merged.errors
        return merged


def _label(player: PlayerSnapshot) -> str:
    return f"{player.name} ({player.id})" if player.name else str(player.id)


class ScheduleValidator:
    # ------------------------------------------------------------------
    # Layer 1: preconditions
    # ------------------------------------------------------------------

    def validate_preconditions(
        self,
        week_id: int,
        week: Optional[WeekSnapshot],
        available_count: int,
        regeneration_in_progress: bool,
    ) -> ValidationResult:
        result = ValidationResult()

        if week is None:
            result.add_error(WEEK_NOT_FOUND, f"Week {week_id} not found")

        if available_count < MIN_VIABLE_PLAYERS:
            result.add_error(
                INSUFFICIENT_PLAYERS,
                f"Only {available_count} players are available; at least {MIN_VIABLE_PLAYERS} are required",
            )

        if regeneration_in_progress:
            result.add_error(
                REGENERATION_IN_PROGRESS,
                f"A schedule operation is already in progress for week {week_id}",
            )

        return result

    # ------------------------------------------------------------------
    # Layer 2: schedule constraints
    # ------------------------------------------------------------------

    def validate_schedule_constraints(
        self,
        schedule: Schedule,
        available_players: Iterable[PlayerSnapshot],
        week: Optional[WeekSnapshot] = None,
    ) -> ValidationResult:
        result = ValidationResult()
        available_ids = {p.id for p in available_players}

        # Availability: each scheduled player must be in the available set
        reported = set()
        for _, player in schedule.iter_players():
            if player.id in available_ids or player.id in reported:
                continue
            reported.add(player.id)
            status = week.availability_status(player.id) if week else None
            if status == UNAVAILABLE:
                result.add_error(
                    PLAYER_UNAVAILABLE, f"Player {_label(player)} is scheduled but is marked as unavailable"
                )
            elif status == ABSENT:
                result.add_error(
                    PLAYER_NO_AVAILABILITY_DATA,
                    f"Player {_label(player)} is scheduled but has no availability data",
                )
            else:
                result.add_error(
                    PLAYER_NOT_AVAILABLE, f"Player {_label(player)} is in schedule but not in available players"
                )

        # Each player exactly once
        counts = Counter(schedule.all_player_ids())
        seen_labels = {}
        for _, player in schedule.iter_players():
            seen_labels.setdefault(player.id, _label(player))
        for player_id, count in counts.items():
            if count > 1:
                result.add_error(
                    DUPLICATE_PLAYER, f"Player {seen_labels[player_id]} appears {count} times in schedule"
                )

        for slot_name in (MORNING, AFTERNOON):
            for index, foursome in enumerate(schedule.slot(slot_name)):
                if foursome.time_slot != slot_name:
                    result.add_error(
                        FOURSOME_SLOT_MISMATCH,
                        f"{slot_name.capitalize()} foursome at position {index} has incorrect time slot: {foursome.time_slot}",
                    )

                if foursome.size > FOURSOME_SIZE:
                    result.add_error(
                        FOURSOME_OVERFULL,
                        f"Foursome {foursome.id} has {foursome.size} players (maximum {FOURSOME_SIZE})",
                    )
                elif foursome.size == 0:
                    result.add_warning(FOURSOME_EMPTY, f"Foursome {foursome.id} is empty")

                # Time preference is a hard constraint
                for player in foursome.players:
                    if slot_name == MORNING and player.time_preference == PM:
                        result.add_error(
                            WRONG_TIME_SLOT,
                            f"Player {_label(player)} has PM preference but is scheduled in morning",
                        )
                    elif slot_name == AFTERNOON and player.time_preference == AM:
                        result.add_error(
                            WRONG_TIME_SLOT,
                            f"Player {_label(player)} has AM preference but is scheduled in afternoon",
                        )

                # Handedness balance is a soft preference: warning only
                if foursome.size >= 2:
                    lefties = sum(1 for p in foursome.players if p.handedness == LEFT)
                    righties = sum(1 for p in foursome.players if p.handedness == RIGHT)
                    if abs(lefties - righties) >= 2:
                        result.add_warning(
                            HANDEDNESS_IMBALANCE,
                            f"Foursome {foursome.id} is unbalanced: {lefties} left-handed, {righties} right-handed",
                        )

        return result

    # ------------------------------------------------------------------
    # Layer 3: business rules
    # ------------------------------------------------------------------

    def validate_business_rules(self, schedule: Schedule, week: Optional[WeekSnapshot] = None) -> ValidationResult:
        result = ValidationResult()

        morning_players = {p.id: p for f in schedule.morning for p in f.players}
        afternoon_players = {p.id: p for f in schedule.afternoon for p in f.players}
        for player_id in sorted(set(morning_players) & set(afternoon_players)):
            result.add_error(
                PLAYER_IN_BOTH_SLOTS,
                f"Player {_label(morning_players[player_id])} is scheduled in both morning and afternoon",
            )

        if not any(f.size >= 2 for f in schedule.all_foursomes()):
            result.add_error(SCHEDULE_NOT_VIABLE, "Schedule is not viable: no foursome has at least 2 players")

        seasons = sorted({p.season_id for _, p in schedule.iter_players()})
        if len(seasons) > 1:
            result.add_error(MIXED_SEASONS, f"Scheduled players belong to multiple seasons: {seasons}")
        elif seasons and week is not None and seasons[0] != week.season_id:
            result.add_error(
                WRONG_SEASON,
                f"Scheduled players belong to season {seasons[0]} but week {week.id} is in season {week.season_id}",
            )

        return result

    # ------------------------------------------------------------------
    # Composition helpers
    # ------------------------------------------------------------------

    def validate_candidate(
        self,
        schedule: Schedule,
        available_players: Sequence[PlayerSnapshot],
        week: Optional[WeekSnapshot] = None,
    ) -> ValidationResult:
        """Layers 2 and 3, as run before any schedule is committed."""
        return ValidationResult.merge(
            self.validate_schedule_constraints(schedule, available_players, week),
            self.validate_business_rules(schedule, week),
        )
