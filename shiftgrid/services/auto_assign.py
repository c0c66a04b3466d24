"""Greedy day-by-day staffing of an organization inside a plan."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import cycle
from typing import Any, Iterator, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..constants import (
    ACTIVE_SLOT_STATUSES,
    ASSIGNABLE_ROLES,
    CONSTRAINT_AVAILABILITY,
    CONSTRAINT_MAX_SLOTS_PER_WEEK,
    CONSTRAINT_ORG_BLACKLIST,
    NOTIFY_CREATED,
    SLOT_PLANNED,
)
from ..errors import ValidationError
from ..identity import Caller
from ..models import Constraint, Organization, Slot, User, Workplace
from ..schemas.slot import BulkOutcome, SkippedItem, SlotRead, UncoveredDay
from . import directory
from .conflicts import find_conflicts
from .intervals import validate_interval
from .notifications import notify_many
from .plans import assert_plan_mutable
from .slot_store import SlotStore

logger = logging.getLogger(__name__)

REASON_ORG_BLACKLIST = "ORG_BLACKLIST"
REASON_UNAVAILABLE = "UNAVAILABLE"
REASON_WEEKLY_LIMIT = "MAX_SLOTS_PER_WEEK"
REASON_CONFLICT = "CONFLICT"
REASON_LOCKED_CONFLICT = "LOCKED_CONFLICT"


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iso_week_key(value: date) -> tuple[int, int]:
    year, week, _ = value.isocalendar()
    return year, week


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring malformed constraint date %r", value)
        return None


@dataclass
class UserRules:
    """Constraint payloads folded into per-user checks."""

    blacklisted: bool = False
    unavailable: list[tuple[date, date]] = field(default_factory=list)
    weekly_limit: Optional[int] = None

    def is_unavailable(self, day: date) -> bool:
        return any(start <= day <= end for start, end in self.unavailable)

    def absorb(self, constraint: Constraint, org_id: int) -> None:
        payload = constraint.payload
        kind = (constraint.type or "").upper()
        if kind == CONSTRAINT_ORG_BLACKLIST:
            org_ids = payload if isinstance(payload, list) else (payload or {}).get("orgIds", [])
            if org_id in {int(value) for value in org_ids if str(value).isdigit()}:
                self.blacklisted = True
        elif kind == CONSTRAINT_AVAILABILITY and isinstance(payload, dict):
            for window in payload.get("unavailable") or []:
                start = _parse_date((window or {}).get("from"))
                end = _parse_date((window or {}).get("to"))
                if start and end:
                    self.unavailable.append((start, end))
            for value in payload.get("dates") or []:
                day = _parse_date(value)
                if day:
                    self.unavailable.append((day, day))
        elif kind == CONSTRAINT_MAX_SLOTS_PER_WEEK and isinstance(payload, dict):
            limit = payload.get("limit")
            if isinstance(limit, int) and limit > 0:
                self.weekly_limit = limit if self.weekly_limit is None else min(self.weekly_limit, limit)


def _load_rules(db: Session, org_id: int, user_ids: list[int]) -> dict[int, UserRules]:
    rules = {user_id: UserRules() for user_id in user_ids}
    scope = [
        (Constraint.user_id.is_(None)) & (Constraint.org_id.is_(None)),
        (Constraint.user_id.is_(None)) & (Constraint.org_id == org_id),
    ]
    if user_ids:
        scope.append(Constraint.user_id.in_(user_ids))
    for constraint in db.query(Constraint).filter(or_(*scope)).order_by(Constraint.id.asc()):
        targets = [constraint.user_id] if constraint.user_id else user_ids
        for user_id in targets:
            if user_id in rules:
                rules[user_id].absorb(constraint, org_id)
    return rules


def _eligible_users(db: Session, org_id: int, window: tuple[date, date], team_size: int) -> list[User]:
    users = (
        db.query(User)
        .filter(User.org_id == org_id, User.is_active.is_(True), User.role.in_(ASSIGNABLE_ROLES))
        .order_by(User.id.asc())
        .all()
    )
    load: dict[int, int] = defaultdict(int)
    if users:
        for slot in SlotStore(db).find_many(
            user_ids=[user.id for user in users],
            overlapping=window,
            statuses=ACTIVE_SLOT_STATUSES,
            skip_archived_plans=True,
        ):
            load[slot.user_id] += 1
    users.sort(key=lambda user: (load[user.id], user.id))
    return users[:team_size]


def _weekly_counts(db: Session, user_ids: list[int], window: tuple[date, date]) -> dict[tuple[int, tuple[int, int]], int]:
    start, end = window
    widened = (start - timedelta(days=start.weekday()), end + timedelta(days=6 - end.weekday()))
    counts: dict[tuple[int, tuple[int, int]], int] = defaultdict(int)
    if not user_ids:
        return counts
    for slot in SlotStore(db).find_many(
        user_ids=user_ids,
        overlapping=widened,
        statuses=ACTIVE_SLOT_STATUSES,
        skip_archived_plans=True,
    ):
        weeks = {iso_week_key(day) for day in iter_days(max(slot.date_start, widened[0]), min(slot.date_end, widened[1]))}
        for week in weeks:
            counts[(slot.user_id, week)] += 1
    return counts


def auto_assign(
    db: Session,
    caller: Caller,
    plan_id: int,
    *,
    org_id: int,
    team_size: int,
    date_start: date,
    date_end: date,
    respect_constraints: bool = True,
) -> BulkOutcome:
    """Plan up to ``team_size`` single-day slots per date of the window.

    Candidates are skipped, never retried, when a constraint excludes them
    or they would overlap a live slot. Days that could not be fully staffed
    are listed in ``uncovered``.
    """
    if not 1 <= team_size <= 100:
        raise ValidationError("teamSize must be between 1 and 100", field="teamSize")
    validate_interval(date_start, date_end, field="dateEnd")

    store = SlotStore(db)
    plan = store.get_plan(plan_id)
    assert_plan_mutable(plan)
    if date_end < plan.starts_at or plan.ends_at < date_start:
        raise ValidationError("Dates are outside of the plan range", code="OUTSIDE_PLAN", field="dateStart")
    org: Organization = directory.get_org(db, org_id)
    window_start = max(date_start, plan.starts_at)
    window_end = min(date_end, plan.ends_at)
    window = (window_start, window_end)

    team = _eligible_users(db, org.id, window, team_size)
    team_ids = [user.id for user in team]
    rules = _load_rules(db, org.id, team_ids) if respect_constraints else {}
    weekly = _weekly_counts(db, team_ids, window) if respect_constraints else {}
    workplaces = (
        db.query(Workplace)
        .filter(Workplace.org_id == org.id, Workplace.is_active.is_(True))
        .order_by(Workplace.code.asc(), Workplace.id.asc())
        .all()
    )
    workplace_cycle = cycle(workplaces) if workplaces else None
    color_code = org.slug.upper() if org.slug else None

    outcome = BulkOutcome()
    rows: list[dict] = []
    for day in iter_days(window_start, window_end):
        placed = 0
        for user in team:
            if placed >= team_size:
                break
            candidate = {"userId": user.id, "orgId": org.id, "date": day.isoformat()}
            user_rules = rules.get(user.id)
            if user_rules:
                reason = None
                if user_rules.blacklisted:
                    reason = REASON_ORG_BLACKLIST
                elif user_rules.is_unavailable(day):
                    reason = REASON_UNAVAILABLE
                elif user_rules.weekly_limit is not None and weekly[(user.id, iso_week_key(day))] >= user_rules.weekly_limit:
                    reason = REASON_WEEKLY_LIMIT
                if reason:
                    outcome.skipped.append(SkippedItem(input=candidate, reason=reason))
                    continue
            conflicts = find_conflicts(db, user.id, day, day)
            if conflicts:
                reason = REASON_LOCKED_CONFLICT if any(slot.locked for slot in conflicts) else REASON_CONFLICT
                outcome.skipped.append(
                    SkippedItem(input=candidate, reason=reason, slot_ids=sorted(slot.id for slot in conflicts))
                )
                continue
            workplace = next(workplace_cycle) if workplace_cycle else None
            rows.append(
                {
                    "user_id": user.id,
                    "org_id": org.id,
                    "workplace_id": workplace.id if workplace else None,
                    "date_start": day,
                    "date_end": day,
                    "status": SLOT_PLANNED,
                    "color_code": color_code,
                    "locked": False,
                }
            )
            if respect_constraints:
                weekly[(user.id, iso_week_key(day))] += 1
            placed += 1
        if placed < team_size:
            outcome.uncovered.append(UncoveredDay(day=day, missing=team_size - placed))

    created: list[Slot] = []
    if rows:
        with store.atomic():
            created = store.create_many(plan, rows)
    outcome.created = [SlotRead.model_validate(slot) for slot in created]
    logger.info(
        "Auto-assign on plan %s for org %s by user %s: %s created, %s skipped, %s day(s) short",
        plan.id,
        org.id,
        caller.user_id,
        len(created),
        len(outcome.skipped),
        len(outcome.uncovered),
    )
    notify_many(db, (slot.user_id for slot in created), NOTIFY_CREATED, {"planId": plan.id, "orgId": org.id})
    return outcome
