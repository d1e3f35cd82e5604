"""
Conflict report models

Returned by ConflictReportBuilder.compute() and served as-is by the
conflicts route. No logic lives here.
"""

from typing import List, Optional

from pydantic import BaseModel

# Suggestion kinds in tie-break order
SUGGESTION_KINDS = ("remove_player", "update_availability", "regenerate", "manual_review")

SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


class PlayerConflict(BaseModel):
    """A scheduled player whose availability does not allow the placement"""

    player_id: int
    player_name: str
    time_slot: str
    foursome_id: str
    foursome_position: int
    availability_status: str
    conflict_type: str  # unavailable | no_data


class ResolutionSuggestion(BaseModel):
    kind: str
    severity: str
    description: str
    player_ids: List[int] = []


class ConflictSummary(BaseModel):
    week_id: int
    season_id: int
    week_number: int
    total_players: int
    total_conflicts: int
    error_count: int
    warning_count: int
    affected_time_slots: List[str]
    affected_player_ids: List[int]


class ConflictReport(BaseModel):
    """Complete conflict report for one schedule"""

    summary: ConflictSummary
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    conflicts: List[PlayerConflict]
    suggestions: List[ResolutionSuggestion]
    schedule_id: Optional[int] = None
