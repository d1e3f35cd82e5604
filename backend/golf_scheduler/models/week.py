from datetime import date, datetime
from typing import Dict, Optional

from sqlalchemy import JSON
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class Week(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "week_number", name="uq_week_season_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(index=True)
    week_number: int
    date: date
    # player_id (as string) -> "available" | "unavailable"; a missing key means no data
    availability: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
