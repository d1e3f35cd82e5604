"""
Schedule Assigner - Pairing-Aware Foursome Builder

Turns a week's roster into a candidate Schedule. Pure: no database access,
no mutation of its inputs; the same roster, week and pairing snapshot always
produce the same Schedule.

Algorithm:
1. Keep only players whose availability is explicitly "available"
2. AM players go to the morning pool, PM players to the afternoon pool
3. Either players (input order) go to the pool with the larger deficit to the
   next multiple of 4; ties go to the smaller pool, then morning
4. Each pool is cut into foursomes greedily: the next player is the one with
   the lowest total pairing count against the foursome being filled, ties
   broken by alternating handedness, then pool order
5. A trailing group of 1-3 players is kept as-is
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from golf_scheduler.errors import InsufficientResourcesError
from golf_scheduler.services.pairing_history import PairingCosts
from golf_scheduler.utils.schedule_values import (
    AFTERNOON,
    AM,
    FOURSOME_SIZE,
    LEFT,
    MIN_VIABLE_PLAYERS,
    MORNING,
    PM,
    RIGHT,
    Foursome,
    PlayerSnapshot,
    Schedule,
    WeekSnapshot,
    foursome_id,
)

logger = logging.getLogger(__name__)

DEFAULT_PARALLEL_THRESHOLD = 48


@dataclass(frozen=True)
class PoolPartition:
    morning: Tuple[PlayerSnapshot, ...]
    afternoon: Tuple[PlayerSnapshot, ...]


def filter_available(week: WeekSnapshot, players: Iterable[PlayerSnapshot]) -> List[PlayerSnapshot]:
    """Strict filtering: unavailable and absent (no data) are both excluded."""
    return [p for p in players if week.is_available(p.id)]


def _deficit(pool_size: int) -> int:
    """Players missing to reach the next multiple of 4."""
    return (-pool_size) % FOURSOME_SIZE


def partition_by_preference(players: Sequence[PlayerSnapshot]) -> PoolPartition:
    morning: List[PlayerSnapshot] = [p for p in players if p.time_preference == AM]
    afternoon: List[PlayerSnapshot] = [p for p in players if p.time_preference == PM]

    for player in players:
        if player.time_preference in (AM, PM):
            continue
        morning_key = (-_deficit(len(morning)), len(morning), 0)
        afternoon_key = (-_deficit(len(afternoon)), len(afternoon), 1)
        if morning_key <= afternoon_key:
            morning.append(player)
        else:
            afternoon.append(player)

    return PoolPartition(morning=tuple(morning), afternoon=tuple(afternoon))


def _opposite(handedness: str) -> Optional[str]:
    if handedness == LEFT:
        return RIGHT
    if handedness == RIGHT:
        return LEFT
    return None


def build_foursomes(
    week_id: int,
    time_slot: str,
    pool: Sequence[PlayerSnapshot],
    costs: PairingCosts,
) -> Tuple[Foursome, ...]:
    """
    Greedily cut one pool into foursomes.

    Selection key for the next player: (aggregate pairing cost against the
    foursome so far, 0 if handedness alternates else 1, pool index).
    """
    remaining: List[Tuple[int, PlayerSnapshot]] = list(enumerate(pool))
    foursomes: List[Foursome] = []

    while remaining:
        group: List[PlayerSnapshot] = []
        while remaining and len(group) < FOURSOME_SIZE:
            group_ids = [p.id for p in group]
            wanted = _opposite(group[-1].handedness) if group else None

            best_index = None
            best_key = None
            for candidate_index, (pool_index, candidate) in enumerate(remaining):
                key = (
                    costs.aggregate(candidate.id, group_ids),
                    0 if wanted is None or candidate.handedness == wanted else 1,
                    pool_index,
                )
                if best_key is None or key < best_key:
                    best_key = key
                    best_index = candidate_index

            # Removal from the pool on placement: no player is placed twice
            _, chosen = remaining.pop(best_index)
            group.append(chosen)

        position = len(foursomes)
        foursomes.append(
            Foursome(
                id=foursome_id(week_id, time_slot, position),
                time_slot=time_slot,
                position=position,
                players=tuple(group),
            )
        )

    return tuple(foursomes)


class ScheduleAssigner:
    def __init__(self, parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD):
        self.parallel_threshold = parallel_threshold

    def assign(
        self,
        week: WeekSnapshot,
        available_players: Iterable[PlayerSnapshot],
        season_id: Optional[int] = None,
        pairing_costs: Optional[PairingCosts] = None,
        parallel: Optional[bool] = None,
    ) -> Schedule:
        """
        Build a candidate schedule for a week.

        Args:
            week: Week snapshot (availability is re-checked strictly)
            available_players: Roster to draw from
            season_id: Season the pairing costs belong to (defaults to the week's)
            pairing_costs: Pairing snapshot; empty when omitted
            parallel: Force (True) or forbid (False) building pools on worker
                threads; by default pools are parallel for large rosters

        Returns:
            New Schedule value (id unset)

        Raises:
            InsufficientResourcesError: 1-3 players are available
        """
        players = filter_available(week, available_players)
        effective_season = season_id if season_id is not None else week.season_id
        costs = pairing_costs or PairingCosts()

        if not players:
            logger.info("No available players for week %s, returning empty schedule", week.id)
            return Schedule(week_id=week.id)

        if len(players) < MIN_VIABLE_PLAYERS:
            raise InsufficientResourcesError(
                f"Week {week.id} has {len(players)} available players; at least {MIN_VIABLE_PLAYERS} are required",
                available_count=len(players),
                minimum_required=MIN_VIABLE_PLAYERS,
            )

        partition = partition_by_preference(players)
        use_parallel = parallel if parallel is not None else len(players) >= self.parallel_threshold

        if use_parallel:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="assign-pool") as executor:
                morning_future = executor.submit(build_foursomes, week.id, MORNING, partition.morning, costs)
                afternoon_future = executor.submit(build_foursomes, week.id, AFTERNOON, partition.afternoon, costs)
                morning = morning_future.result()
                afternoon = afternoon_future.result()
        else:
            morning = build_foursomes(week.id, MORNING, partition.morning, costs)
            afternoon = build_foursomes(week.id, AFTERNOON, partition.afternoon, costs)

        logger.info(
            "Assigned week %s (season %s): %d morning / %d afternoon players in %d foursomes%s",
            week.id,
            effective_season,
            len(partition.morning),
            len(partition.afternoon),
            len(morning) + len(afternoon),
            " (parallel)" if use_parallel else "",
        )
        return Schedule(week_id=week.id, morning=morning, afternoon=afternoon)
