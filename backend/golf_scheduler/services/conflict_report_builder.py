"""
Conflict Report Builder

Explains what is wrong with a schedule and what to do about it.
- Works on snapshots only (no session, no request context)
- Runs all three validation layers and merges them
- Output order is fixed: conflicts by slot, position, player id;
  suggestions by severity, then kind
"""

from typing import Dict, Iterable, List

from golf_scheduler.services.schedule_assigner import filter_available
from golf_scheduler.services.schedule_validator import ScheduleValidator, ValidationResult
from golf_scheduler.utils.conflict_report import (
    SEVERITY_RANK,
    SUGGESTION_KINDS,
    ConflictReport,
    ConflictSummary,
    PlayerConflict,
    ResolutionSuggestion,
)
from golf_scheduler.utils.schedule_values import (
    AFTERNOON,
    AVAILABLE,
    MORNING,
    UNAVAILABLE,
    PlayerSnapshot,
    Schedule,
    WeekSnapshot,
)

# Share of conflicting players above which a manual review is suggested
MANUAL_REVIEW_RATIO = 0.3


class ConflictReportBuilder:
    def __init__(self, validator: ScheduleValidator = None):
        self.validator = validator or ScheduleValidator()

    def compute(
        self,
        schedule: Schedule,
        week: WeekSnapshot,
        players: Iterable[PlayerSnapshot],
        regeneration_in_progress: bool = False,
    ) -> ConflictReport:
        """
        Compute a conflict report for a schedule.

        Args:
            schedule: Schedule to inspect (persisted or candidate)
            week: Week snapshot providing availability
            players: Season roster (used for names and the available set)
            regeneration_in_progress: Whether the week is currently locked

        Returns:
            ConflictReport with merged validation results, per-player
            conflicts and ranked suggestions

        Guarantees:
            - Same input -> same output
            - No I/O
        """
        roster = list(players)
        available = filter_available(week, roster)

        validation = ValidationResult.merge(
            self.validator.validate_preconditions(week.id, week, len(available), regeneration_in_progress),
            self.validator.validate_schedule_constraints(schedule, available, week),
            self.validator.validate_business_rules(schedule, week),
        )

        conflicts = self._player_conflicts(schedule, week)
        suggestions = self._suggestions(conflicts, validation, schedule)

        affected_slots = [slot for slot in (MORNING, AFTERNOON) if any(c.time_slot == slot for c in conflicts)]
        summary = ConflictSummary(
            week_id=week.id,
            season_id=week.season_id,
            week_number=week.week_number,
            total_players=schedule.player_count,
            total_conflicts=len(conflicts),
            error_count=len(validation.errors),
            warning_count=len(validation.warnings),
            affected_time_slots=affected_slots,
            affected_player_ids=sorted({c.player_id for c in conflicts}),
        )

        return ConflictReport(
            summary=summary,
            is_valid=validation.is_valid,
            errors=validation.errors,
            warnings=validation.warnings,
            conflicts=conflicts,
            suggestions=suggestions,
            schedule_id=schedule.id,
        )

    def _player_conflicts(self, schedule: Schedule, week: WeekSnapshot) -> List[PlayerConflict]:
        conflicts = []
        for foursome, player in schedule.iter_players():
            status = week.availability_status(player.id)
            if status == AVAILABLE:
                continue
            conflicts.append(
                PlayerConflict(
                    player_id=player.id,
                    player_name=player.name or str(player.id),
                    time_slot=foursome.time_slot,
                    foursome_id=foursome.id,
                    foursome_position=foursome.position,
                    availability_status=status,
                    conflict_type="unavailable" if status == UNAVAILABLE else "no_data",
                )
            )

        slot_order = {MORNING: 0, AFTERNOON: 1}
        conflicts.sort(key=lambda c: (slot_order.get(c.time_slot, 2), c.foursome_position, c.player_id))
        return conflicts

    def _suggestions(
        self,
        conflicts: List[PlayerConflict],
        validation: ValidationResult,
        schedule: Schedule,
    ) -> List[ResolutionSuggestion]:
        by_kind: Dict[str, ResolutionSuggestion] = {}

        def add(suggestion: ResolutionSuggestion) -> None:
            # De-duplicate by kind, keeping the more severe entry
            existing = by_kind.get(suggestion.kind)
            if existing is None or SEVERITY_RANK[suggestion.severity] > SEVERITY_RANK[existing.severity]:
                by_kind[suggestion.kind] = suggestion

        unavailable = sorted({c.player_id for c in conflicts if c.conflict_type == "unavailable"})
        no_data = sorted({c.player_id for c in conflicts if c.conflict_type == "no_data"})

        if unavailable:
            add(
                ResolutionSuggestion(
                    kind="remove_player",
                    severity="high",
                    description=f"Remove {len(unavailable)} unavailable player(s) from the schedule",
                    player_ids=unavailable,
                )
            )

        if no_data:
            add(
                ResolutionSuggestion(
                    kind="update_availability",
                    severity="high",
                    description=f"Set availability for {len(no_data)} player(s) missing availability data",
                    player_ids=no_data,
                )
            )

        if conflicts:
            add(
                ResolutionSuggestion(
                    kind="regenerate",
                    severity="medium",
                    description="Regenerate the schedule after updating player availability",
                )
            )

        total = schedule.player_count
        if conflicts and total and len(conflicts) > total * MANUAL_REVIEW_RATIO:
            add(
                ResolutionSuggestion(
                    kind="manual_review",
                    severity="high",
                    description="High number of conflicts detected - manual review recommended",
                )
            )
        elif len(validation.errors) > len(conflicts):
            # Violations beyond availability (slot, duplicates, size) need a person
            add(
                ResolutionSuggestion(
                    kind="manual_review",
                    severity="medium",
                    description="Schedule has rule violations that need manual review",
                )
            )

        return sorted(
            by_kind.values(),
            key=lambda s: (-SEVERITY_RANK[s.severity], SUGGESTION_KINDS.index(s.kind)),
        )
