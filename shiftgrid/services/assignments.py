from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..constants import (
    ASSIGNMENT_ACTIVE,
    ASSIGNMENT_ARCHIVED,
    NOTIFY_CANCELLED,
    NOTIFY_CREATED,
    NOTIFY_MOVED,
    NOTIFY_UPDATED,
    ORG_MANAGER,
)
from ..errors import ConflictError, NotFoundError
from ..models import Assignment, Shift, User
from ..schemas.assignment import AssignmentCreate, AssignmentListQuery, AssignmentUpdate, ShiftInput
from . import directory
from .intervals import validate_interval
from .notifications import notify_many

logger = logging.getLogger(__name__)

OPEN_END = datetime(9999, 12, 31, 23, 59, 59)


def _ensure_no_overlap(
    db: Session,
    user_id: int,
    starts_at: datetime,
    ends_at: Optional[datetime],
    assignment_id: Optional[int] = None,
) -> None:
    query = db.query(Assignment).filter(
        Assignment.user_id == user_id,
        Assignment.status == ASSIGNMENT_ACTIVE,
        Assignment.starts_at <= (ends_at or OPEN_END),
        or_(Assignment.ends_at.is_(None), Assignment.ends_at >= starts_at),
    )
    if assignment_id is not None:
        query = query.filter(Assignment.id != assignment_id)
    overlapping = query.first()
    if overlapping:
        raise ConflictError(
            f"Assignment overlaps active assignment {overlapping.id}",
            code="ASSIGNMENT_OVERLAP",
            field="startsAt",
        )


def _build_shifts(shifts: Sequence[ShiftInput]) -> list[Shift]:
    built = []
    for index, shift in enumerate(shifts):
        validate_interval(shift.starts_at, shift.ends_at, field=f"shifts[{index}].endsAt", strict=True)
        built.append(Shift(kind=shift.kind, date=shift.day, starts_at=shift.starts_at, ends_at=shift.ends_at))
    return built


def _recipients(db: Session, assignment: Assignment) -> list[int]:
    recipients = {assignment.user_id}
    managers = db.query(User.id).filter(User.org_id == assignment.workplace.org_id, User.role == ORG_MANAGER)
    recipients.update(manager_id for (manager_id,) in managers)
    return sorted(recipients)


def _payload(assignment: Assignment, **overrides: Any) -> dict[str, Any]:
    workplace = assignment.workplace
    payload = {
        "assignmentId": assignment.id,
        "userId": assignment.user_id,
        "workplaceId": assignment.workplace_id,
        "workplaceCode": workplace.code,
        "workplaceName": workplace.name,
        "startsAt": assignment.starts_at.isoformat(),
        "endsAt": assignment.ends_at.isoformat() if assignment.ends_at else None,
        "status": assignment.status,
        "orgId": workplace.org_id,
    }
    payload.update(overrides)
    return payload


def get_assignment(db: Session, assignment_id: int) -> Assignment:
    assignment = (
        db.query(Assignment)
        .options(joinedload(Assignment.shifts), joinedload(Assignment.workplace))
        .filter(Assignment.id == assignment_id)
        .one_or_none()
    )
    if not assignment:
        raise NotFoundError("Assignment not found", code="ASSIGNMENT_NOT_FOUND", field="id")
    return assignment


def list_assignments(db: Session, query: AssignmentListQuery) -> tuple[list[Assignment], int]:
    base = db.query(Assignment)
    if query.user_id:
        base = base.filter(Assignment.user_id == query.user_id)
    if query.workplace_id:
        base = base.filter(Assignment.workplace_id == query.workplace_id)
    if query.status:
        base = base.filter(Assignment.status == query.status)
    if query.date_from:
        base = base.filter(Assignment.starts_at >= query.date_from)
    if query.date_to:
        base = base.filter(Assignment.starts_at <= query.date_to)
    total = base.count()
    items = (
        base.options(joinedload(Assignment.shifts))
        .order_by(Assignment.starts_at.desc(), Assignment.id.desc())
        .offset(query.offset)
        .limit(query.page_size)
        .all()
    )
    return items, total


def create_assignment(db: Session, payload: AssignmentCreate) -> Assignment:
    validate_interval(payload.starts_at, payload.ends_at, field="endsAt")
    shifts = _build_shifts(payload.shifts)
    directory.get_user(db, payload.user_id)
    directory.get_workplace(db, payload.workplace_id)
    status = payload.status or ASSIGNMENT_ACTIVE
    if status == ASSIGNMENT_ACTIVE:
        _ensure_no_overlap(db, payload.user_id, payload.starts_at, payload.ends_at)

    assignment = Assignment(
        user_id=payload.user_id,
        workplace_id=payload.workplace_id,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        status=status,
        shifts=shifts,
    )
    db.add(assignment)
    db.commit()
    logger.info("Created assignment %s for user %s", assignment.id, assignment.user_id)
    notify_many(db, _recipients(db, assignment), NOTIFY_CREATED, _payload(assignment))
    return assignment


def update_assignment(db: Session, assignment_id: int, payload: AssignmentUpdate) -> Assignment:
    changes = payload.model_dump(exclude_unset=True)
    assignment = get_assignment(db, assignment_id)
    previous = _payload(assignment)
    previous_user = assignment.user_id
    previous_window = (assignment.starts_at, assignment.ends_at)
    previous_status = assignment.status

    next_user = changes.get("user_id") or assignment.user_id
    next_start = changes.get("starts_at") or assignment.starts_at
    next_end = changes["ends_at"] if "ends_at" in changes else assignment.ends_at
    next_status = changes.get("status") or assignment.status
    validate_interval(next_start, next_end, field="endsAt")
    shifts = _build_shifts(payload.shifts) if payload.shifts is not None else None
    if changes.get("user_id"):
        directory.get_user(db, next_user)
    if changes.get("workplace_id"):
        directory.get_workplace(db, changes["workplace_id"])
        assignment.workplace_id = changes["workplace_id"]
    if next_status == ASSIGNMENT_ACTIVE:
        _ensure_no_overlap(db, next_user, next_start, next_end, assignment.id)

    assignment.user_id = next_user
    assignment.starts_at = next_start
    assignment.ends_at = next_end
    assignment.status = next_status
    if shifts is not None:
        assignment.shifts = shifts
    db.commit()
    db.refresh(assignment)

    if next_user != previous_user:
        previous["status"] = ASSIGNMENT_ARCHIVED
        notify_many(db, [previous_user], NOTIFY_CANCELLED, previous)
        notify_many(db, _recipients(db, assignment), NOTIFY_CREATED, _payload(assignment))
        return assignment

    notification_type = NOTIFY_UPDATED
    if previous_status != next_status and next_status == ASSIGNMENT_ARCHIVED:
        notification_type = NOTIFY_CANCELLED
    elif previous_window != (assignment.starts_at, assignment.ends_at):
        notification_type = NOTIFY_MOVED
    notify_many(db, _recipients(db, assignment), notification_type, _payload(assignment))
    return assignment
