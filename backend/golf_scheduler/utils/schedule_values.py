"""
Immutable schedule values shared by the assigner, validator, editor and
coordinator.

Table rows (Player, Week, WeeklySchedule) are converted to these frozen
snapshots at the service boundary so the scheduling algorithms work on
values that cannot be mutated behind their back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

AVAILABLE = "available"
UNAVAILABLE = "unavailable"
ABSENT = "absent"

MORNING = "morning"
AFTERNOON = "afternoon"
TIME_SLOTS = (MORNING, AFTERNOON)

LEFT = "left"
RIGHT = "right"

AM = "AM"
PM = "PM"
EITHER = "Either"

FOURSOME_SIZE = 4
MIN_VIABLE_PLAYERS = 4


def normalize_availability_value(value) -> str:
    """Map a stored availability value onto the tri-state."""
    if value is True:
        return AVAILABLE
    if value is False:
        return UNAVAILABLE
    if value is None:
        return ABSENT
    text = str(value).strip().lower()
    if text in (AVAILABLE, "true", "yes"):
        return AVAILABLE
    if text in (UNAVAILABLE, "false", "no"):
        return UNAVAILABLE
    return ABSENT


def normalize_availability(raw: Optional[Mapping]) -> Dict[int, str]:
    """Normalize a week's availability JSON; absent entries are dropped."""
    result: Dict[int, str] = {}
    for key, value in (raw or {}).items():
        status = normalize_availability_value(value)
        if status != ABSENT:
            result[int(key)] = status
    return result


@dataclass(frozen=True)
class PlayerSnapshot:
    id: int
    first_name: str
    last_name: str
    handedness: str
    time_preference: str
    season_id: int

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_model(cls, player) -> "PlayerSnapshot":
        return cls(
            id=player.id,
            first_name=player.first_name,
            last_name=player.last_name,
            handedness=player.handedness,
            time_preference=player.time_preference,
            season_id=player.season_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "handedness": self.handedness,
            "time_preference": self.time_preference,
            "season_id": self.season_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "PlayerSnapshot":
        return cls(
            id=int(data["id"]),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            handedness=data.get("handedness", RIGHT),
            time_preference=data.get("time_preference", EITHER),
            season_id=int(data["season_id"]),
        )


@dataclass(frozen=True)
class WeekSnapshot:
    id: int
    season_id: int
    week_number: int
    date: Optional[date]
    availability: Mapping[int, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        object.__setattr__(self, "availability", MappingProxyType(dict(self.availability)))

    def availability_status(self, player_id: int) -> str:
        return self.availability.get(player_id, ABSENT)

    def is_available(self, player_id: int) -> bool:
        # Strict: only an explicit "available" counts
        return self.availability_status(player_id) == AVAILABLE

    @classmethod
    def from_model(cls, week) -> "WeekSnapshot":
        return cls(
            id=week.id,
            season_id=week.season_id,
            week_number=week.week_number,
            date=week.date,
            availability=normalize_availability(week.availability),
        )


@dataclass(frozen=True)
class Foursome:
    id: str
    time_slot: str
    position: int
    players: Tuple[PlayerSnapshot, ...] = ()

    @property
    def player_ids(self) -> Tuple[int, ...]:
        return tuple(p.id for p in self.players)

    @property
    def size(self) -> int:
        return len(self.players)

    def has_player(self, player_id: int) -> bool:
        return player_id in self.player_ids

    def with_players(self, players: Iterable[PlayerSnapshot]) -> "Foursome":
        return replace(self, players=tuple(players))


def foursome_id(week_id: int, time_slot: str, position: int) -> str:
    return f"{week_id}-{time_slot}-{position}"


@dataclass(frozen=True)
class Schedule:
    week_id: int
    morning: Tuple[Foursome, ...] = ()
    afternoon: Tuple[Foursome, ...] = ()
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    regeneration_count: int = 0

    def slot(self, time_slot: str) -> Tuple[Foursome, ...]:
        if time_slot == MORNING:
            return self.morning
        if time_slot == AFTERNOON:
            return self.afternoon
        raise ValueError(f"Unknown time slot: {time_slot}")

    def all_foursomes(self) -> Tuple[Foursome, ...]:
        return self.morning + self.afternoon

    def iter_players(self) -> Iterator[Tuple[Foursome, PlayerSnapshot]]:
        for foursome in self.all_foursomes():
            for player in foursome.players:
                yield foursome, player

    def all_player_ids(self) -> List[int]:
        """Player ids in schedule order; duplicates are kept."""
        return [player.id for _, player in self.iter_players()]

    @property
    def player_count(self) -> int:
        return sum(f.size for f in self.all_foursomes())

    def find_foursome(self, foursome_id: str) -> Optional[Foursome]:
        for foursome in self.all_foursomes():
            if foursome.id == foursome_id:
                return foursome
        return None

    def find_player(self, player_id: int) -> Optional[Tuple[Foursome, PlayerSnapshot]]:
        for foursome, player in self.iter_players():
            if player.id == player_id:
                return foursome, player
        return None

    def is_empty(self) -> bool:
        return not self.morning and not self.afternoon

    def with_foursomes(self, foursomes: Iterable[Foursome]) -> "Schedule":
        """Return a copy whose slots are rebuilt from ``foursomes`` (kept in position order)."""
        foursomes = list(foursomes)
        morning = sorted((f for f in foursomes if f.time_slot == MORNING), key=lambda f: f.position)
        afternoon = sorted((f for f in foursomes if f.time_slot == AFTERNOON), key=lambda f: f.position)
        return replace(self, morning=tuple(morning), afternoon=tuple(afternoon))


# ============================================================================
# Serialization
# ============================================================================


def time_slots_to_json(schedule: Schedule) -> Dict[str, List[dict]]:
    """Foursomes as stored on WeeklySchedule.time_slots (player ids only)."""
    return {
        slot: [
            {"id": f.id, "position": f.position, "player_ids": list(f.player_ids)}
            for f in schedule.slot(slot)
        ]
        for slot in TIME_SLOTS
    }


def time_slots_from_json(
    week_id: int,
    time_slots: Mapping,
    players_by_id: Mapping[int, PlayerSnapshot],
) -> Dict[str, Tuple[Foursome, ...]]:
    """
    Rebuild foursomes from stored JSON.

    Raises:
        KeyError: a stored player id is missing from ``players_by_id``
    """
    result: Dict[str, Tuple[Foursome, ...]] = {}
    for slot in TIME_SLOTS:
        foursomes = []
        for index, entry in enumerate((time_slots or {}).get(slot, [])):
            position = entry.get("position", index)
            foursomes.append(
                Foursome(
                    id=entry.get("id") or foursome_id(week_id, slot, position),
                    time_slot=slot,
                    position=position,
                    players=tuple(players_by_id[int(pid)] for pid in entry.get("player_ids", [])),
                )
            )
        result[slot] = tuple(sorted(foursomes, key=lambda f: f.position))
    return result


def schedule_to_payload(schedule: Schedule) -> dict:
    """Self-contained representation used by backups and API responses."""
    players = {}
    for _, player in schedule.iter_players():
        players[player.id] = player.to_dict()
    return {
        "id": schedule.id,
        "week_id": schedule.week_id,
        "time_slots": time_slots_to_json(schedule),
        "players": [players[pid] for pid in sorted(players)],
        "created_at": schedule.created_at.isoformat() if schedule.created_at else None,
        "last_modified": schedule.last_modified.isoformat() if schedule.last_modified else None,
        "regeneration_count": schedule.regeneration_count,
    }


def schedule_from_payload(payload: Mapping) -> Schedule:
    players_by_id = {int(p["id"]): PlayerSnapshot.from_dict(p) for p in payload.get("players", [])}
    week_id = int(payload["week_id"])
    slots = time_slots_from_json(week_id, payload.get("time_slots", {}), players_by_id)
    created_at = payload.get("created_at")
    last_modified = payload.get("last_modified")
    return Schedule(
        id=payload.get("id"),
        week_id=week_id,
        morning=slots[MORNING],
        afternoon=slots[AFTERNOON],
        created_at=datetime.fromisoformat(created_at) if created_at else None,
        last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
        regeneration_count=payload.get("regeneration_count", 0),
    )
