from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class WeeklySchedule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    week_id: int = Field(foreign_key="week.id", unique=True, index=True)
    # {"morning": [{"id", "position", "player_ids"}], "afternoon": [...]}
    time_slots: Dict[str, List[dict]] = Field(default_factory=dict, sa_column=Column(JSON))
    regeneration_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_modified: datetime = Field(default_factory=datetime.utcnow)
