"""
Pairing History Store

Tracks, per season, how many times two players have shared a foursome.
Counts are the only cost signal the assigner uses. They only ever grow:
record_pairings() runs inside the commit transaction of a successful
schedule write, and reset() is the single explicit way to clear a season.
"""

import logging
from dataclasses import dataclass
from datetime import date
from itertools import combinations
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlmodel import Session

from golf_scheduler.repositories.pairing_history_repository import PairingHistoryRepository, pair_key
from golf_scheduler.utils.schedule_values import Schedule

logger = logging.getLogger(__name__)


class PairingCosts:
    """Read-only snapshot of a season's pairing counts."""

    def __init__(self, counts: Optional[Mapping[Tuple[int, int], int]] = None):
        self._counts = MappingProxyType({pair_key(a, b): c for (a, b), c in (counts or {}).items()})

    def cost(self, player_a_id: int, player_b_id: int) -> int:
        if player_a_id == player_b_id:
            return 0
        return self._counts.get(pair_key(player_a_id, player_b_id), 0)

    def aggregate(self, player_id: int, others: Iterable[int]) -> int:
        return sum(self.cost(player_id, other) for other in others)

    def as_dict(self) -> Dict[Tuple[int, int], int]:
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)


@dataclass(frozen=True)
class PairingMetrics:
    pair_count: int
    min_pairings: int
    max_pairings: int
    average_pairings: float

    def to_dict(self) -> dict:
        return {
            "pair_count": self.pair_count,
            "min_pairings": self.min_pairings,
            "max_pairings": self.max_pairings,
            "average_pairings": self.average_pairings,
        }


class PairingHistoryStore:
    def __init__(self, session: Session):
        self.session = session
        self.repository = PairingHistoryRepository(session)

    def record_pairings(self, season_id: int, schedule: Schedule, played_on: Optional[date] = None) -> int:
        """
        Increment the count of every unordered pair sharing a foursome.

        Flushes but does not commit: the caller commits together with the
        schedule write so a rolled-back attempt leaves counts untouched.

        Returns:
            Number of pair increments applied
        """
        increments = 0
        for foursome in schedule.all_foursomes():
            for a, b in combinations(foursome.player_ids, 2):
                self.repository.increment(season_id, a, b, played_on=played_on)
                increments += 1

        logger.info(
            "Recorded %d pairings for season %s (week %s)", increments, season_id, schedule.week_id
        )
        return increments

    def pairing_cost(self, season_id: int, player_a_id: int, player_b_id: int) -> int:
        return self.repository.get_count(season_id, player_a_id, player_b_id)

    def snapshot(self, season_id: int) -> PairingCosts:
        records = self.repository.list_for_season(season_id)
        return PairingCosts({(r.player_a_id, r.player_b_id): r.count for r in records})

    def pairings_for_player(self, season_id: int, player_id: int) -> List[dict]:
        """Partners of a player, most frequent first."""
        result = []
        for record in self.repository.list_for_player(season_id, player_id):
            partner = record.player_b_id if record.player_a_id == player_id else record.player_a_id
            result.append({"partner_id": partner, "count": record.count})
        return sorted(result, key=lambda r: (-r["count"], r["partner_id"]))

    def score_foursome(self, season_id: int, player_ids: Iterable[int]) -> int:
        """Total pairing count inside a group (lower is better)."""
        costs = self.snapshot(season_id)
        return sum(costs.cost(a, b) for a, b in combinations(list(player_ids), 2))

    def pairing_metrics(self, season_id: int, player_ids: Iterable[int]) -> PairingMetrics:
        costs = self.snapshot(season_id)
        counts = [costs.cost(a, b) for a, b in combinations(sorted(set(player_ids)), 2)]
        if not counts:
            return PairingMetrics(pair_count=0, min_pairings=0, max_pairings=0, average_pairings=0.0)
        return PairingMetrics(
            pair_count=len(counts),
            min_pairings=min(counts),
            max_pairings=max(counts),
            average_pairings=round(sum(counts) / len(counts), 3),
        )

    def reset(self, season_id: int) -> int:
        """Clear a season's history. Flushes; the caller commits."""
        removed = self.repository.delete_for_season(season_id)
        logger.warning("Reset pairing history for season %s (%d records removed)", season_id, removed)
        return removed
