"""Force SQLModel table registration at test discovery time"""

from golf_scheduler.models import (  # noqa: F401
    PairingRecord,
    Player,
    ScheduleBackup,
    ScheduleLock,
    Week,
    WeeklySchedule,
)
