from golf_scheduler.models.pairing_record import PairingRecord
from golf_scheduler.models.player import Player
from golf_scheduler.models.schedule_backup import ScheduleBackup
from golf_scheduler.models.schedule_lock import ScheduleLock
from golf_scheduler.models.week import Week
from golf_scheduler.models.weekly_schedule import WeeklySchedule

__all__ = [
    "Player",
    "Week",
    "WeeklySchedule",
    "PairingRecord",
    "ScheduleBackup",
    "ScheduleLock",
]
