from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session, joinedload

from ..config import get_settings
from ..constants import ADMIN, NOTIFY_UPDATED, SLOT_CANCELLED, SLOT_CONFIRMED, SLOT_REPLACED, SUPER_ADMIN
from ..errors import NotFoundError, ValidationError
from ..identity import Caller
from ..models import Organization, Slot, User
from .notifications import notify_many

logger = logging.getLogger(__name__)


def local_today(db: Session, caller: Caller) -> date:
    """Current date in the caller's organization timezone."""
    tz_name = None
    if caller.org_id:
        tz_name = db.query(Organization.timezone).filter(Organization.id == caller.org_id).scalar()
    tz_name = tz_name or get_settings().default_timezone
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
        zone = ZoneInfo("UTC")
    return datetime.now(zone).date()


def _own_slot(db: Session, caller: Caller, slot_id: int) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id, Slot.user_id == caller.user_id).one_or_none()
    if not slot:
        raise NotFoundError("Slot not found", code="SLOT_NOT_FOUND", field="slotId")
    return slot


def get_schedule_for_user(db: Session, caller: Caller, today: Optional[date] = None) -> list[Slot]:
    today = today or local_today(db, caller)
    return (
        db.query(Slot)
        .options(joinedload(Slot.plan), joinedload(Slot.org))
        .filter(Slot.user_id == caller.user_id, Slot.date_end >= today)
        .order_by(Slot.date_start.asc(), Slot.id.asc())
        .all()
    )


def confirm_slot(db: Session, caller: Caller, slot_id: int) -> Slot:
    slot = _own_slot(db, caller, slot_id)
    if slot.status == SLOT_CANCELLED:
        raise ValidationError("Cancelled slot cannot be confirmed", code="SLOT_CANCELLED", field="slotId")
    slot.status = SLOT_CONFIRMED
    db.commit()
    notify_many(
        db,
        [caller.user_id],
        NOTIFY_UPDATED,
        {"planId": slot.plan_id, "slotId": slot.id, "status": SLOT_CONFIRMED},
    )
    return slot


def request_swap(db: Session, caller: Caller, slot_id: int, comment: str, now: Optional[datetime] = None) -> Slot:
    slot = _own_slot(db, caller, slot_id)
    stamp = (now or datetime.utcnow()).isoformat()
    line = f"[swap] {stamp} {comment.strip()}"
    slot.note = f"{slot.note}\n{line}" if slot.note else line
    slot.status = SLOT_REPLACED
    db.commit()
    logger.info("User %s requested a swap for slot %s", caller.user_id, slot.id)

    admins = [user_id for (user_id,) in db.query(User.id).filter(User.role.in_((ADMIN, SUPER_ADMIN)))]
    notify_many(
        db,
        admins,
        NOTIFY_UPDATED,
        {
            "planId": slot.plan_id,
            "slotId": slot.id,
            "orgId": slot.org_id,
            "comment": comment,
            "requestedBy": caller.user_id,
        },
    )
    return slot
