from typing import Iterable, List, Optional

from sqlmodel import Session, select

from golf_scheduler.models.player import Player
from golf_scheduler.utils.schedule_values import PlayerSnapshot


class PlayerRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, player_id: int) -> Optional[Player]:
        return self.session.get(Player, player_id)

    def find_by_ids(self, player_ids: Iterable[int]) -> List[Player]:
        ids = sorted(set(player_ids))
        if not ids:
            return []
        return list(self.session.exec(select(Player).where(Player.id.in_(ids)).order_by(Player.id)).all())

    def find_by_season_id(self, season_id: int) -> List[Player]:
        """Season roster in stable (id) order."""
        return list(self.session.exec(select(Player).where(Player.season_id == season_id).order_by(Player.id)).all())

    def snapshots_for_season(self, season_id: int) -> List[PlayerSnapshot]:
        return [PlayerSnapshot.from_model(p) for p in self.find_by_season_id(season_id)]
