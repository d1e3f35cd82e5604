from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class ScheduleBackup(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    week_id: int = Field(index=True)
    original_schedule_id: Optional[int] = None
    payload: str  # JSON-serialized schedule, players embedded
    checksum: str = Field(max_length=64)
    size: int = Field(default=0)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
