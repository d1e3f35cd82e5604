import os

# Keep app startup off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from golf_scheduler.config import SchedulerSettings  # noqa: E402
from golf_scheduler.database import get_session, init_db, make_engine  # noqa: E402
from golf_scheduler.main import create_app  # noqa: E402
from golf_scheduler.models import Player, Week  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"


# ============================================================================
# Test database
# ============================================================================
# One in-memory engine per test. make_engine() gives memory URLs a single
# shared connection, so the app's sessions and the test's see the same data.
# Tables are created here, not by app startup.


@pytest.fixture(name="engine")
def engine_fixture():
    engine = make_engine(TEST_DATABASE_URL)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="settings")
def settings_fixture():
    """Defaults, except retries never sleep"""
    return SchedulerSettings(retry_delay_ms=0)


@pytest.fixture(name="client")
def client_fixture(engine, settings):
    """Test client on a fresh app whose session dependency uses the test engine"""
    app = create_app(settings)

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="seed_week")
def seed_week_fixture(session: Session):
    """
    Factory creating players and a week.

    Each player spec is (first_name, handedness, time_preference, availability);
    availability None leaves the player out of the week's availability map.
    """

    def _seed(player_specs, season_id=1, week_number=1, played_on=date(2026, 5, 2)):
        players = []
        for first_name, handedness, time_preference, _ in player_specs:
            player = Player(
                season_id=season_id,
                first_name=first_name,
                last_name="Golfer",
                handedness=handedness,
                time_preference=time_preference,
            )
            session.add(player)
            players.append(player)
        session.commit()
        for player in players:
            session.refresh(player)

        availability = {
            str(player.id): spec[3] for player, spec in zip(players, player_specs) if spec[3] is not None
        }
        week = Week(season_id=season_id, week_number=week_number, date=played_on, availability=availability)
        session.add(week)
        session.commit()
        session.refresh(week)
        return week, players

    return _seed
