from datetime import datetime, timedelta

import pytest
from sqlmodel import Session

from golf_scheduler.errors import NotFoundError, SchedulingError
from golf_scheduler.models import ScheduleBackup
from golf_scheduler.services.backup_store import BackupStore
from tests.factories import make_schedule, snapshot


class SteppingClock:
    """utcnow replacement that moves forward one minute per call"""

    def __init__(self, start=datetime(2026, 5, 1, 8, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(minutes=1)
        return value


def _schedule(week_id=1):
    players = [snapshot(i, handedness="left" if i % 2 else "right") for i in range(1, 7)]
    return make_schedule([players[:4]], [players[4:]], week_id=week_id)


def test_snapshot_and_restore_round_trip(session: Session):
    store = BackupStore(session)
    schedule = _schedule()

    backup_id = store.snapshot(schedule)
    restored = store.restore(backup_id)

    assert restored.morning == schedule.morning
    assert restored.afternoon == schedule.afternoon
    assert store.validate_backup(backup_id)


def test_restore_rejects_corrupted_backup(session: Session):
    store = BackupStore(session)
    backup_id = store.snapshot(_schedule())

    backup = session.get(ScheduleBackup, backup_id)
    backup.payload = backup.payload.replace('"week_id":1', '"week_id":2')
    session.add(backup)
    session.commit()

    assert not store.validate_backup(backup_id)
    with pytest.raises(SchedulingError, match="corrupted"):
        store.restore(backup_id)


def test_restore_unknown_backup(session: Session):
    with pytest.raises(NotFoundError):
        BackupStore(session).restore(999)


def test_only_most_recent_backups_are_kept(session: Session):
    store = BackupStore(session, max_per_week=5, now=SteppingClock())

    ids = [store.snapshot(_schedule()) for _ in range(7)]
    store.snapshot(_schedule(week_id=2))

    kept = [b.id for b in store.list_backups(1)]
    assert kept == list(reversed(ids[2:]))
    assert len(store.list_backups(2)) == 1


def test_backups_past_retention_are_removed(session: Session):
    clock = SteppingClock()
    store = BackupStore(session, retention_days=30, now=clock)
    old_id = store.snapshot(_schedule())

    clock.current += timedelta(days=31)
    new_id = store.snapshot(_schedule())

    assert [b.id for b in store.list_backups(1)] == [new_id]
    assert not store.validate_backup(old_id)
