from collections.abc import Generator

from fastapi import Header
from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(x_actor: str | None = Header(default=None, max_length=100)) -> str | None:
    """Free-form caller name recorded in the activity log; routines are not access controlled."""
    if x_actor is None:
        return None
    actor = x_actor.strip()
    return actor or None
