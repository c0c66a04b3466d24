"""Lookups for users, organizations and workplaces, plus guarded deletion."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..constants import ASSIGNMENT_ACTIVE
from ..errors import DependencyError, NotFoundError
from ..models import Assignment, Constraint, Notification, Organization, Slot, User, Workplace
from .slot_store import SlotStore

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int, *, field: str = "userId") -> User:
    user = db.query(User).filter(User.id == user_id).one_or_none()
    if not user:
        raise NotFoundError(f"User {user_id} not found", code="USER_NOT_FOUND", field=field)
    return user


def get_org(db: Session, org_id: int, *, field: str = "orgId") -> Organization:
    org = db.query(Organization).filter(Organization.id == org_id).one_or_none()
    if not org:
        raise NotFoundError(f"Organization {org_id} not found", code="ORG_NOT_FOUND", field=field)
    return org


def get_workplace(db: Session, workplace_id: int, *, field: str = "workplaceId") -> Workplace:
    workplace = db.query(Workplace).filter(Workplace.id == workplace_id).one_or_none()
    if not workplace:
        raise NotFoundError(f"Workplace {workplace_id} not found", code="WORKPLACE_NOT_FOUND", field=field)
    return workplace


def ensure_exist(db: Session, model, ids: Iterable[int], *, field: str, code: str) -> None:
    wanted = {value for value in ids if value is not None}
    if not wanted:
        return
    found = {row_id for (row_id,) in db.query(model.id).filter(model.id.in_(wanted))}
    missing = sorted(wanted - found)
    if missing:
        raise NotFoundError(
            f"Unknown {field}: {', '.join(str(value) for value in missing)}",
            code=code,
            field=field,
        )


def org_slug_map(db: Session, org_ids: Iterable[int]) -> dict[int, str]:
    wanted = set(org_ids)
    if not wanted:
        return {}
    return {
        org_id: slug
        for org_id, slug in db.query(Organization.id, Organization.slug).filter(Organization.id.in_(wanted))
    }


def delete_workplace(db: Session, workplace_id: int) -> dict:
    workplace = get_workplace(db, workplace_id, field="id")

    active_assignments = (
        db.query(func.count(Assignment.id))
        .filter(Assignment.workplace_id == workplace.id, Assignment.status == ASSIGNMENT_ACTIVE)
        .scalar()
    )
    active_slots = SlotStore(db).count_active(workplace_id=workplace.id)
    if active_assignments or active_slots:
        raise DependencyError(
            f"Workplace {workplace.code} still has {active_assignments} active assignment(s) and "
            f"{active_slots} active slot(s). Reassign or archive them first.",
            field="id",
        )

    for assignment in db.query(Assignment).filter(Assignment.workplace_id == workplace.id).all():
        db.delete(assignment)
    db.flush()
    db.query(Slot).filter(Slot.workplace_id == workplace.id).delete(synchronize_session=False)
    db.delete(workplace)
    db.commit()
    logger.info("Deleted workplace %s with its archived dependents", workplace_id)
    return {"id": workplace_id, "deleted": True}


def delete_org(db: Session, org_id: int) -> dict:
    org = get_org(db, org_id, field="id")
    workplace_ids = [row_id for (row_id,) in db.query(Workplace.id).filter(Workplace.org_id == org.id)]
    user_ids = [row_id for (row_id,) in db.query(User.id).filter(User.org_id == org.id)]

    assignment_scope = []
    if workplace_ids:
        assignment_scope.append(Assignment.workplace_id.in_(workplace_ids))
    if user_ids:
        assignment_scope.append(Assignment.user_id.in_(user_ids))
    active_assignments = 0
    if assignment_scope:
        active_assignments = (
            db.query(func.count(Assignment.id))
            .filter(or_(*assignment_scope), Assignment.status == ASSIGNMENT_ACTIVE)
            .scalar()
        )
    active_slots = SlotStore(db).count_active(org_id=org.id, user_ids=user_ids)
    if active_assignments or active_slots:
        raise DependencyError(
            f"Organization {org.name} still has {active_assignments} active assignment(s) and "
            f"{active_slots} active slot(s). Reassign or archive them first.",
            field="id",
        )

    if assignment_scope:
        for assignment in db.query(Assignment).filter(or_(*assignment_scope)).all():
            db.delete(assignment)
        db.flush()
    slot_scope = [Slot.org_id == org.id]
    if user_ids:
        slot_scope.append(Slot.user_id.in_(user_ids))
    db.query(Slot).filter(or_(*slot_scope)).delete(synchronize_session=False)
    constraint_scope = [Constraint.org_id == org.id]
    if user_ids:
        constraint_scope.append(Constraint.user_id.in_(user_ids))
        db.query(Notification).filter(Notification.user_id.in_(user_ids)).delete(synchronize_session=False)
    db.query(Constraint).filter(or_(*constraint_scope)).delete(synchronize_session=False)
    db.query(Workplace).filter(Workplace.org_id == org.id).delete(synchronize_session=False)
    db.query(User).filter(User.org_id == org.id).delete(synchronize_session=False)
    db.delete(org)
    db.commit()
    logger.info("Deleted organization %s with %s user(s) and %s workplace(s)", org_id, len(user_ids), len(workplace_ids))
    return {"id": org_id, "deleted": True}
