import os

# Settings are cached on first import; point the app engine at an in-memory database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.time_slot import TimeSlot  # noqa: E402

# (id, start, end, is_break, applicable_days); slot 4 is the lunch break, slot 9 only runs on Sunday.
PERIODS = [
    ("1", "10:15", "11:05", False, []),
    ("2", "11:05", "11:55", False, []),
    ("3", "11:55", "12:45", False, []),
    ("4", "12:45", "13:35", True, []),
    ("5", "13:35", "14:25", False, []),
    ("6", "14:25", "15:15", False, []),
    ("7", "15:15", "16:05", False, []),
    ("9", "16:05", "16:55", False, [0]),
]


def seed_periods(session_factory) -> None:
    with session_factory() as db:
        for sort_order, (slot_id, start, end, is_break, days) in enumerate(PERIODS, start=1):
            db.add(
                TimeSlot(
                    id=slot_id,
                    label="Lunch Break" if is_break else f"{start}-{end}",
                    start_time=start,
                    end_time=end,
                    sort_order=sort_order,
                    is_break=is_break,
                    applicable_days=days,
                )
            )
        db.commit()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    seed_periods(factory)
    yield factory
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
