from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..constants import PLAN_ARCHIVED, PLAN_DRAFT, PLAN_PUBLISHED
from ..errors import NotFoundError, ValidationError
from ..models import Constraint, Plan, Slot
from ..schemas.common import PageQuery
from ..schemas.plan import ConstraintUpsert, PlanCreate, PlanListQuery
from . import directory
from .intervals import validate_interval
from .slot_store import SlotStore

logger = logging.getLogger(__name__)


def assert_plan_mutable(plan: Plan) -> None:
    if plan.status == PLAN_ARCHIVED:
        raise ValidationError("Archived plan cannot be modified", code="PLAN_ARCHIVED", field="planId")


def create_plan(db: Session, payload: PlanCreate) -> Plan:
    validate_interval(payload.starts_at, payload.ends_at, field="endsAt")
    plan = Plan(name=payload.name.strip(), starts_at=payload.starts_at, ends_at=payload.ends_at)
    db.add(plan)
    db.commit()
    logger.info("Created plan %s (%s..%s)", plan.id, plan.starts_at, plan.ends_at)
    return plan


def list_plans(db: Session, query: PlanListQuery) -> tuple[list[Plan], int]:
    base = db.query(Plan)
    if query.status:
        base = base.filter(Plan.status == query.status)
    if query.date_from:
        base = base.filter(Plan.ends_at >= query.date_from)
    if query.date_to:
        base = base.filter(Plan.starts_at <= query.date_to)
    total = base.count()
    plans = (
        base.order_by(Plan.starts_at.asc(), Plan.id.asc())
        .offset(query.offset)
        .limit(query.page_size)
        .all()
    )
    return plans, total


def get_plan_with_slots(db: Session, plan_id: int, query: PageQuery) -> tuple[Plan, list[Slot], int]:
    plan = SlotStore(db).get_plan(plan_id)
    base = db.query(Slot).filter(Slot.plan_id == plan.id)
    total = base.count()
    slots = (
        base.order_by(Slot.date_start.asc(), Slot.id.asc())
        .offset(query.offset)
        .limit(query.page_size)
        .all()
    )
    return plan, slots, total


def publish_plan(db: Session, plan_id: int) -> Plan:
    plan = SlotStore(db).get_plan(plan_id)
    if plan.status == PLAN_PUBLISHED:
        return plan
    if plan.status == PLAN_ARCHIVED:
        raise ValidationError("Archived plan cannot be published", code="PLAN_ARCHIVED", field="planId")
    plan.status = PLAN_PUBLISHED
    db.commit()
    return plan


def archive_plan(db: Session, plan_id: int) -> Plan:
    plan = SlotStore(db).get_plan(plan_id)
    if plan.status != PLAN_ARCHIVED:
        plan.status = PLAN_ARCHIVED
        db.commit()
    return plan


def delete_plan(db: Session, plan_id: int) -> dict:
    plan = SlotStore(db).get_plan(plan_id)
    if plan.status != PLAN_DRAFT:
        raise ValidationError("Only draft plans can be deleted", code="PLAN_NOT_DRAFT", field="planId")
    db.delete(plan)
    db.commit()
    logger.info("Deleted draft plan %s", plan_id)
    return {"id": plan_id}


def list_constraints(db: Session) -> list[Constraint]:
    return db.query(Constraint).order_by(Constraint.created_at.desc(), Constraint.id.desc()).all()


def upsert_constraint(db: Session, payload: ConstraintUpsert) -> Constraint:
    if payload.user_id is not None:
        directory.get_user(db, payload.user_id)
    if payload.org_id is not None:
        directory.get_org(db, payload.org_id)
    if payload.id:
        constraint = db.query(Constraint).filter(Constraint.id == payload.id).one_or_none()
        if not constraint:
            raise NotFoundError("Constraint not found", code="CONSTRAINT_NOT_FOUND", field="id")
    else:
        constraint = Constraint()
        db.add(constraint)
    constraint.type = payload.type.strip().upper()
    constraint.payload = payload.payload
    constraint.user_id = payload.user_id
    constraint.org_id = payload.org_id
    db.commit()
    return constraint
