from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    actor: str | None,
    action: str,
    scope: object | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    teacher_ids: Iterable[str] = (),
    room_ids: Iterable[str] = (),
    details: dict | None = None,
) -> ActivityLog:
    """Stage an audit row in the caller's transaction so it commits or rolls back with the change."""
    record = ActivityLog(
        actor=actor,
        action=action,
        scope=str(scope) if scope is not None else None,
        entity_type=entity_type,
        entity_id=entity_id,
        affected_teacher_ids=list(dict.fromkeys(teacher_ids)),
        affected_room_ids=list(dict.fromkeys(room_ids)),
        details=details or {},
    )
    db.add(record)
    logger.debug("Audit %s by %s on %s %s", action, actor or "anonymous", entity_type, entity_id)
    return record
