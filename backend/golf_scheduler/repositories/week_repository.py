from datetime import datetime
from typing import Optional

from sqlmodel import Session

from golf_scheduler.errors import NotFoundError
from golf_scheduler.models.week import Week
from golf_scheduler.utils.schedule_values import ABSENT, WeekSnapshot, normalize_availability_value

_UPDATABLE_FIELDS = {"week_number", "date", "availability"}


class WeekRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, week_id: int) -> Optional[Week]:
        return self.session.get(Week, week_id)

    def get_snapshot(self, week_id: int) -> WeekSnapshot:
        week = self.find_by_id(week_id)
        if not week:
            raise NotFoundError(f"Week {week_id} not found")
        return WeekSnapshot.from_model(week)

    def update(self, week_id: int, patch: dict) -> Week:
        week = self.find_by_id(week_id)
        if not week:
            raise NotFoundError(f"Week {week_id} not found")

        unknown = set(patch) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update week fields: {sorted(unknown)}")

        for key, value in patch.items():
            if key == "availability":
                # JSON columns only persist on reassignment
                value = dict(value or {})
            setattr(week, key, value)
        week.updated_at = datetime.utcnow()
        self.session.add(week)
        self.session.flush()
        return week

    def set_availability(self, week_id: int, player_id: int, status) -> Week:
        """Set one player's availability; ``None``/absent removes the entry."""
        week = self.find_by_id(week_id)
        if not week:
            raise NotFoundError(f"Week {week_id} not found")

        availability = dict(week.availability or {})
        normalized = normalize_availability_value(status)
        if normalized == ABSENT:
            availability.pop(str(player_id), None)
        else:
            availability[str(player_id)] = normalized
        return self.update(week_id, {"availability": availability})

    def availability_status(self, week: Week, player_id: int) -> str:
        """Tri-state availability of one player: available, unavailable or absent."""
        availability = week.availability or {}
        return normalize_availability_value(availability.get(str(player_id), availability.get(player_id)))
