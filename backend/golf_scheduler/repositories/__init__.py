"""
Repositories Layer

Thin persistence wrappers over a SQLModel Session. Repositories add and flush;
transaction boundaries (commit/rollback) belong to the caller, except for the
schedule lock table whose rows must be visible to other sessions immediately.
"""

from golf_scheduler.repositories.pairing_history_repository import PairingHistoryRepository
from golf_scheduler.repositories.player_repository import PlayerRepository
from golf_scheduler.repositories.schedule_repository import ScheduleRepository
from golf_scheduler.repositories.week_repository import WeekRepository

__all__ = [
    "PairingHistoryRepository",
    "PlayerRepository",
    "ScheduleRepository",
    "WeekRepository",
]
