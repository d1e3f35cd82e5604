from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlmodel import Session, select

from golf_scheduler.models.pairing_record import PairingRecord


def pair_key(player_a_id: int, player_b_id: int) -> Tuple[int, int]:
    """Unordered pair key: the smaller id always comes first."""
    return (player_a_id, player_b_id) if player_a_id < player_b_id else (player_b_id, player_a_id)


class PairingHistoryRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, season_id: int, player_a_id: int, player_b_id: int) -> Optional[PairingRecord]:
        a, b = pair_key(player_a_id, player_b_id)
        return self.session.exec(
            select(PairingRecord).where(
                PairingRecord.season_id == season_id,
                PairingRecord.player_a_id == a,
                PairingRecord.player_b_id == b,
            )
        ).first()

    def get_count(self, season_id: int, player_a_id: int, player_b_id: int) -> int:
        if player_a_id == player_b_id:
            return 0
        record = self.get(season_id, player_a_id, player_b_id)
        return record.count if record else 0

    def list_for_season(self, season_id: int) -> List[PairingRecord]:
        return list(
            self.session.exec(
                select(PairingRecord)
                .where(PairingRecord.season_id == season_id)
                .order_by(PairingRecord.player_a_id, PairingRecord.player_b_id)
            ).all()
        )

    def list_for_player(self, season_id: int, player_id: int) -> List[PairingRecord]:
        return list(
            self.session.exec(
                select(PairingRecord).where(
                    PairingRecord.season_id == season_id,
                    or_(PairingRecord.player_a_id == player_id, PairingRecord.player_b_id == player_id),
                )
            ).all()
        )

    def increment(
        self,
        season_id: int,
        player_a_id: int,
        player_b_id: int,
        played_on: Optional[date] = None,
        by: int = 1,
    ) -> PairingRecord:
        """Add ``by`` to a pair's count, creating the record if needed. Flushes, does not commit."""
        if player_a_id == player_b_id:
            raise ValueError("Cannot pair a player with themselves")
        if by < 0:
            raise ValueError("Pairing counts only increase; use reset() to clear a season")

        record = self.get(season_id, player_a_id, player_b_id)
        if not record:
            a, b = pair_key(player_a_id, player_b_id)
            record = PairingRecord(season_id=season_id, player_a_id=a, player_b_id=b, count=0)

        record.count += by
        if played_on and (record.last_played_date is None or played_on > record.last_played_date):
            record.last_played_date = played_on
        record.updated_at = datetime.utcnow()
        self.session.add(record)
        self.session.flush()
        return record

    def delete_for_season(self, season_id: int) -> int:
        records = self.list_for_season(season_id)
        for record in records:
            self.session.delete(record)
        self.session.flush()
        return len(records)
