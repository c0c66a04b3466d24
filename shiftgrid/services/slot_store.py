"""Persistence access for plans and their slots.

The bulk engine and the auto-assignment planner only talk to the store
through this class, so every multi-slot write goes through ``atomic()``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterable, Iterator, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..constants import ACTIVE_SLOT_STATUSES, PLAN_ARCHIVED
from ..errors import NotFoundError, SchedulingError
from ..models import Plan, Slot

logger = logging.getLogger(__name__)


class SlotStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def atomic(self) -> Iterator["SlotStore"]:
        """Commit everything written inside the block, or nothing."""
        try:
            yield self
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Slot transaction rolled back")
            raise

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).one_or_none()
        if not plan:
            raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND", field="planId")
        return plan

    def get_slot(self, plan_id: int, slot_id: int) -> Slot:
        slot = self.db.query(Slot).filter(Slot.id == slot_id, Slot.plan_id == plan_id).one_or_none()
        if not slot:
            raise NotFoundError(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND", field="slotId")
        return slot

    def find_many(
        self,
        *,
        plan_id: Optional[int] = None,
        ids: Optional[Iterable[int]] = None,
        user_ids: Optional[Iterable[int]] = None,
        org_id: Optional[int] = None,
        overlapping: Optional[tuple[date, date]] = None,
        statuses: Optional[Sequence[str]] = None,
        exclude_statuses: Optional[Sequence[str]] = None,
        exclude_ids: Optional[Iterable[int]] = None,
        skip_archived_plans: bool = False,
    ) -> list[Slot]:
        query = self.db.query(Slot)
        if plan_id is not None:
            query = query.filter(Slot.plan_id == plan_id)
        if ids is not None:
            query = query.filter(Slot.id.in_(list(ids)))
        if user_ids is not None:
            query = query.filter(Slot.user_id.in_(list(user_ids)))
        if org_id is not None:
            query = query.filter(Slot.org_id == org_id)
        if overlapping is not None:
            window_start, window_end = overlapping
            query = query.filter(Slot.date_start <= window_end, Slot.date_end >= window_start)
        if statuses:
            query = query.filter(Slot.status.in_(list(statuses)))
        if exclude_statuses:
            query = query.filter(Slot.status.notin_(list(exclude_statuses)))
        excluded = list(exclude_ids or [])
        if excluded:
            query = query.filter(Slot.id.notin_(excluded))
        if skip_archived_plans:
            query = query.join(Plan, Slot.plan_id == Plan.id).filter(Plan.status != PLAN_ARCHIVED)
        return query.order_by(Slot.date_start.asc(), Slot.id.asc()).all()

    def create_many(self, plan: Plan, rows: Sequence[dict[str, Any]]) -> list[Slot]:
        slots = [Slot(plan_id=plan.id, **row) for row in rows]
        self.db.add_all(slots)
        self.db.flush()
        logger.debug("Staged %s slot(s) for plan %s", len(slots), plan.id)
        return slots

    def update_many(self, changes: Sequence[tuple[Slot, dict[str, Any]]]) -> list[Slot]:
        updated: list[Slot] = []
        for slot, values in changes:
            for key, value in values.items():
                setattr(slot, key, value)
            updated.append(slot)
        self.db.flush()
        return updated

    def delete(self, slot: Slot) -> None:
        self.db.delete(slot)
        self.db.flush()

    def count_active(
        self,
        *,
        org_id: Optional[int] = None,
        workplace_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> int:
        """Count live slots matching any of the given scopes."""
        scope = []
        if org_id is not None:
            scope.append(Slot.org_id == org_id)
        if workplace_id is not None:
            scope.append(Slot.workplace_id == workplace_id)
        wanted = list(user_ids or [])
        if wanted:
            scope.append(Slot.user_id.in_(wanted))
        if not scope:
            return 0
        query = self.db.query(func.count(Slot.id)).filter(or_(*scope), Slot.status.in_(ACTIVE_SLOT_STATUSES))
        return int(query.scalar() or 0)
