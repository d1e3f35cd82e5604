"""
Engine and session setup.

DATABASE_URL picks the database; the default is a SQLite file next to the
working directory. In-memory SQLite URLs share a single connection so every
session sees the same data.
"""

import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./golf_scheduler.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")


def make_engine(url: str, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo)

    # Parallel assignment and TestClient touch connections from other threads
    options = {"echo": echo, "connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        options["poolclass"] = StaticPool
    else:
        Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, **options)


engine: Engine = make_engine(DATABASE_URL, echo=SQL_ECHO)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def init_db(bind: Engine = None) -> None:
    """Create every table that is missing."""
    import golf_scheduler.models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind or engine)
