from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class ScheduleLock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    week_id: int = Field(unique=True, index=True)
    lock_id: str = Field(max_length=64)
    locked_at: datetime = Field(default_factory=datetime.utcnow)
    timeout_seconds: int = Field(default=30)
    owner: Optional[str] = None
