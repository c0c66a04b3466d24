from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..models import Notification

logger = logging.getLogger(__name__)


def notify_many(db: Session, user_ids: Iterable[int], notification_type: str, payload: dict[str, Any]) -> int:
    """Record one notification per distinct recipient.

    Runs after the triggering write has committed; a failure here is logged
    and never undoes that write.
    """
    recipients = sorted({user_id for user_id in user_ids if user_id})
    if not recipients:
        return 0
    try:
        db.add_all(
            Notification(user_id=user_id, type=notification_type, payload=payload)
            for user_id in recipients
        )
        db.commit()
    except Exception:  # pragma: no cover - delivery is best effort
        db.rollback()
        logger.exception("Failed to record %s notifications for %s", notification_type, recipients)
        return 0
    logger.info("Queued %s notification(s) of type %s", len(recipients), notification_type)
    return len(recipients)


def list_for_user(db: Session, user_id: int, limit: int = 20) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )
