from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(index=True)
    first_name: str
    last_name: str
    handedness: str = Field(default="right", max_length=5)  # "left" | "right"
    time_preference: str = Field(default="Either", max_length=6)  # "AM" | "PM" | "Either"
    created_at: datetime = Field(default_factory=datetime.utcnow)
