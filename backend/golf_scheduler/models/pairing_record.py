from datetime import date, datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class PairingRecord(SQLModel, table=True):
    __table_args__ = (
        # player_a_id < player_b_id always holds, so one row per unordered pair
        SAUniqueConstraint("season_id", "player_a_id", "player_b_id", name="uq_pairing_season_pair"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(index=True)
    player_a_id: int
    player_b_id: int
    count: int = Field(default=0)
    last_played_date: Optional[date] = Field(default=None)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
