from datetime import datetime, timedelta

from sqlmodel import Session

from golf_scheduler.repositories.schedule_repository import ScheduleRepository


class ManualClock:
    def __init__(self):
        self.current = datetime(2026, 5, 2, 7, 0)

    def __call__(self):
        return self.current


def test_lock_is_exclusive_until_released(session: Session):
    repository = ScheduleRepository(session)

    lock_id = repository.lock(4, owner="regenerate_schedule")

    assert lock_id is not None
    assert repository.lock(4) is None
    assert repository.is_locked(4)
    assert not repository.unlock(4, "lock_other")
    assert repository.unlock(4, lock_id)
    assert not repository.is_locked(4)


def test_locks_are_per_week(session: Session):
    repository = ScheduleRepository(session)

    assert repository.lock(1) is not None
    assert repository.lock(2) is not None


def test_expired_lock_no_longer_blocks(session: Session):
    clock = ManualClock()
    repository = ScheduleRepository(session, lock_ttl_seconds=30, now=clock)
    repository.lock(4)

    clock.current += timedelta(seconds=29)
    assert repository.is_locked(4)

    clock.current += timedelta(seconds=1)
    assert not repository.is_locked(4)
    assert repository.lock(4) is not None


def test_force_release(session: Session):
    repository = ScheduleRepository(session)
    repository.lock(4)

    assert repository.force_release_lock(4)
    assert not repository.force_release_lock(4)
