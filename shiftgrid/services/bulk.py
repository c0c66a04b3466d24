"""Multi-slot mutations that commit as a single transaction."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import NOTIFY_CANCELLED, NOTIFY_CREATED, NOTIFY_MOVED, NOTIFY_UPDATED, SLOT_CANCELLED, SLOT_PLANNED
from ..errors import ConflictError, NotFoundError, SlotLockedError, ValidationError
from ..identity import Caller
from ..models import Organization, Slot, User, Workplace
from ..schemas.slot import BulkOutcome, ConflictPolicy, SkippedItem, SlotInput, SlotRead, UpdateSlotRequest
from . import directory
from .conflicts import ConflictSet, PendingIntervals, classify_conflicts, find_conflicts
from .intervals import validate_interval
from .notifications import notify_many
from .plans import assert_plan_mutable
from .slot_store import SlotStore

logger = logging.getLogger(__name__)

LOCKED_FIELDS = ("date_start", "date_end", "org_id", "user_id", "workplace_id")

REASON_LOCKED = "LOCKED"
REASON_LOCKED_CONFLICT = "LOCKED_CONFLICT"
REASON_CONFLICT = "CONFLICT"
REASON_BATCH_OVERLAP = "BATCH_OVERLAP"
REASON_INVALID_RANGE = "INVALID_RANGE"


def resolve_policy(value: Optional[ConflictPolicy | str] = None) -> ConflictPolicy:
    raw = value if value is not None else get_settings().bulk_conflict_policy
    try:
        return ConflictPolicy(str(getattr(raw, "value", raw)).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown conflict policy {raw!r}", field="conflictPolicy") from exc


def check_batch_size(count: int, field: str) -> None:
    limit = get_settings().max_bulk_items
    if count < 1:
        raise ValidationError("At least one item is required", code="EMPTY_BATCH", field=field)
    if count > limit:
        raise ValidationError(f"At most {limit} items can be processed at once", code="BATCH_TOO_LARGE", field=field)


def _claim_conflicts(
    conflicts: ConflictSet,
    policy: ConflictPolicy,
    cancelled: dict[int, Slot],
) -> Optional[str]:
    """Return the skip reason for a candidate, or claim its unlocked conflicts."""
    if conflicts.locked:
        return REASON_LOCKED_CONFLICT
    if conflicts.unlocked and policy is ConflictPolicy.REJECT:
        return REASON_CONFLICT
    for slot in conflicts.unlocked:
        cancelled[slot.id] = slot
    return None


def bulk_assign(
    db: Session,
    caller: Caller,
    plan_id: int,
    slots: Sequence[SlotInput],
    conflict_policy: Optional[ConflictPolicy] = None,
) -> BulkOutcome:
    """Create many slots in one plan.

    Every interval is checked before the store is touched; one inverted
    range rejects the whole request. Items that collide with a locked slot,
    with another item of the batch, or (under ``REJECT``) with any live
    slot are skipped and reported. Under ``OVERWRITE`` the colliding
    unlocked slots are cancelled and returned in ``replaced``.
    """
    check_batch_size(len(slots), "slots")
    for index, item in enumerate(slots):
        validate_interval(item.date_start, item.date_end, field=f"slots[{index}].dateEnd")
    policy = resolve_policy(conflict_policy)

    store = SlotStore(db)
    plan = store.get_plan(plan_id)
    assert_plan_mutable(plan)
    directory.ensure_exist(db, User, (item.user_id for item in slots), field="userId", code="USER_NOT_FOUND")
    directory.ensure_exist(db, Organization, (item.org_id for item in slots), field="orgId", code="ORG_NOT_FOUND")
    directory.ensure_exist(
        db, Workplace, (item.workplace_id for item in slots), field="workplaceId", code="WORKPLACE_NOT_FOUND"
    )
    slugs = directory.org_slug_map(db, {item.org_id for item in slots})

    outcome = BulkOutcome()
    pending = PendingIntervals()
    cancelled: dict[int, Slot] = {}
    rows: list[dict] = []
    with store.atomic():
        for item in slots:
            if pending.overlaps(item.user_id, item.date_start, item.date_end):
                outcome.skipped.append(SkippedItem(input=item.to_json(), reason=REASON_BATCH_OVERLAP))
                continue
            conflicts = classify_conflicts(
                find_conflicts(db, item.user_id, item.date_start, item.date_end, exclude_ids=cancelled.keys())
            )
            reason = _claim_conflicts(conflicts, policy, cancelled)
            if reason:
                outcome.skipped.append(
                    SkippedItem(input=item.to_json(), reason=reason, slot_ids=conflicts.slot_ids)
                )
                continue
            pending.add(item.user_id, item.date_start, item.date_end)
            slug = slugs.get(item.org_id)
            rows.append(
                {
                    "user_id": item.user_id,
                    "org_id": item.org_id,
                    "workplace_id": item.workplace_id,
                    "date_start": item.date_start,
                    "date_end": item.date_end,
                    "status": item.status or SLOT_PLANNED,
                    "color_code": item.color_code or (slug.upper() if slug else None),
                    "note": item.note,
                    "locked": bool(item.locked),
                }
            )
        store.update_many([(slot, {"status": SLOT_CANCELLED}) for slot in cancelled.values()])
        created = store.create_many(plan, rows) if rows else []

    outcome.created = [SlotRead.model_validate(slot) for slot in created]
    outcome.replaced = [SlotRead.model_validate(slot) for slot in cancelled.values()]
    logger.info(
        "Bulk assign on plan %s by user %s: %s created, %s skipped, %s replaced (%s)",
        plan.id,
        caller.user_id,
        len(outcome.created),
        len(outcome.skipped),
        len(outcome.replaced),
        policy.value,
    )
    notify_many(db, (slot.user_id for slot in created), NOTIFY_CREATED, {"planId": plan.id})
    if cancelled:
        notify_many(
            db,
            (slot.user_id for slot in cancelled.values()),
            NOTIFY_CANCELLED,
            {"planId": plan.id, "slotIds": sorted(cancelled)},
        )
    return outcome


def _dedupe(values: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def bulk_move(
    db: Session,
    caller: Caller,
    plan_id: int,
    slot_ids: Sequence[int],
    *,
    new_date_start: Optional[date] = None,
    new_date_end: Optional[date] = None,
    new_org_id: Optional[int] = None,
    new_user_id: Optional[int] = None,
    conflict_policy: Optional[ConflictPolicy] = None,
) -> BulkOutcome:
    """Apply the same change to every named slot of a plan.

    Locked slots are reported with reason ``LOCKED`` and left untouched.
    A skipped slot keeps its range, and no accepted move may overlap it.
    """
    if new_date_start is None and new_date_end is None and new_org_id is None and new_user_id is None:
        raise ValidationError(
            "At least one of newDateStart, newDateEnd, newOrgId or newUserId is required",
            code="NO_CHANGES",
            field="slotIds",
        )
    ids = _dedupe(slot_ids)
    check_batch_size(len(ids), "slotIds")
    validate_interval(new_date_start, new_date_end, field="newDateEnd")
    policy = resolve_policy(conflict_policy)

    store = SlotStore(db)
    plan = store.get_plan(plan_id)
    assert_plan_mutable(plan)
    found = {slot.id: slot for slot in store.find_many(plan_id=plan.id, ids=ids)}
    missing = [slot_id for slot_id in ids if slot_id not in found]
    if missing:
        raise NotFoundError(
            f"Slots not found in plan {plan.id}: {', '.join(str(value) for value in missing)}",
            code="SLOT_NOT_FOUND",
            field="slotIds",
        )
    if new_user_id is not None:
        directory.get_user(db, new_user_id, field="newUserId")
    if new_org_id is not None:
        directory.get_org(db, new_org_id, field="newOrgId")

    outcome = BulkOutcome()
    movable: list[tuple[Slot, dict]] = []
    for slot_id in ids:
        slot = found[slot_id]
        if slot.locked:
            outcome.skipped.append(SkippedItem(input={"slotId": slot.id}, reason=REASON_LOCKED, slot_ids=[slot.id]))
            continue
        next_start = new_date_start or slot.date_start
        next_end = new_date_end or slot.date_end
        if next_end < next_start:
            outcome.skipped.append(
                SkippedItem(input={"slotId": slot.id}, reason=REASON_INVALID_RANGE, slot_ids=[slot.id])
            )
            continue
        values = {"date_start": next_start, "date_end": next_end}
        if new_user_id is not None:
            values["user_id"] = new_user_id
        if new_org_id is not None and new_org_id != slot.org_id:
            values["org_id"] = new_org_id
            values["workplace_id"] = None
        movable.append((slot, values))

    moving_ids = {slot.id for slot, _ in movable}
    previous_users = {slot.id: slot.user_id for slot, _ in movable}
    # Skipped slots keep their old range; repeat until no accepted move overlaps one.
    staying: dict[int, SkippedItem] = {}
    with store.atomic():
        while True:
            pending = PendingIntervals()
            for slot, _ in movable:
                if slot.id in staying:
                    pending.add(slot.user_id, slot.date_start, slot.date_end)
            cancelled: dict[int, Slot] = {}
            accepted: list[tuple[Slot, dict]] = []
            newly_skipped = False
            for slot, values in movable:
                if slot.id in staying:
                    continue
                user_id = values.get("user_id", slot.user_id)
                if slot.status != SLOT_CANCELLED:
                    if pending.overlaps(user_id, values["date_start"], values["date_end"]):
                        staying[slot.id] = SkippedItem(
                            input={"slotId": slot.id}, reason=REASON_BATCH_OVERLAP, slot_ids=[slot.id]
                        )
                        newly_skipped = True
                        continue
                    conflicts = classify_conflicts(
                        find_conflicts(
                            db,
                            user_id,
                            values["date_start"],
                            values["date_end"],
                            exclude_ids=moving_ids | set(cancelled),
                        )
                    )
                    reason = _claim_conflicts(conflicts, policy, cancelled)
                    if reason:
                        staying[slot.id] = SkippedItem(
                            input={"slotId": slot.id}, reason=reason, slot_ids=conflicts.slot_ids
                        )
                        newly_skipped = True
                        continue
                    pending.add(user_id, values["date_start"], values["date_end"])
                accepted.append((slot, values))
            if not newly_skipped:
                break
        outcome.skipped.extend(staying[slot.id] for slot, _ in movable if slot.id in staying)
        store.update_many([(slot, {"status": SLOT_CANCELLED}) for slot in cancelled.values()])
        updated = store.update_many(accepted)

    outcome.updated = [SlotRead.model_validate(slot) for slot in updated]
    outcome.replaced = [SlotRead.model_validate(slot) for slot in cancelled.values()]
    logger.info(
        "Bulk move on plan %s by user %s: %s moved, %s skipped",
        plan.id,
        caller.user_id,
        len(outcome.updated),
        len(outcome.skipped),
    )
    recipients = [slot.user_id for slot in updated] + [previous_users[slot.id] for slot in updated]
    notify_many(db, recipients, NOTIFY_MOVED, {"planId": plan.id, "slotIds": [slot.id for slot in updated]})
    if cancelled:
        notify_many(
            db,
            (slot.user_id for slot in cancelled.values()),
            NOTIFY_CANCELLED,
            {"planId": plan.id, "slotIds": sorted(cancelled)},
        )
    return outcome


def update_slot(db: Session, caller: Caller, plan_id: int, slot_id: int, payload: UpdateSlotRequest) -> Slot:
    changes = payload.model_dump(exclude_unset=True)
    store = SlotStore(db)
    plan = store.get_plan(plan_id)
    assert_plan_mutable(plan)
    slot = store.get_slot(plan.id, slot_id)

    if slot.locked and any(changes.get(name) is not None for name in LOCKED_FIELDS):
        raise SlotLockedError(f"Slot {slot.id} is locked and cannot be moved", field="slotId")

    next_start = changes.get("date_start") or slot.date_start
    next_end = changes.get("date_end") or slot.date_end
    validate_interval(next_start, next_end, field="dateEnd")
    if changes.get("user_id") is not None:
        directory.get_user(db, changes["user_id"])
    if changes.get("org_id") is not None:
        directory.get_org(db, changes["org_id"])
    if changes.get("workplace_id") is not None:
        directory.get_workplace(db, changes["workplace_id"])

    next_user = changes.get("user_id") or slot.user_id
    next_status = changes.get("status") or slot.status
    moved = (next_start, next_end, next_user) != (slot.date_start, slot.date_end, slot.user_id)
    revived = slot.status == SLOT_CANCELLED
    previous_user = slot.user_id
    cancelled: dict[int, Slot] = {}
    if (moved or revived) and next_status != SLOT_CANCELLED:
        conflicts = classify_conflicts(find_conflicts(db, next_user, next_start, next_end, exclude_ids=[slot.id]))
        if _claim_conflicts(conflicts, resolve_policy(), cancelled):
            raise ConflictError(
                f"Slot {slot.id} would overlap slot(s) {', '.join(str(value) for value in conflicts.slot_ids)}",
                code="SLOT_CONFLICT",
                field="dateStart",
            )

    values = {key: value for key, value in changes.items() if value is not None or key == "note"}
    values["date_start"] = next_start
    values["date_end"] = next_end
    with store.atomic():
        store.update_many([(other, {"status": SLOT_CANCELLED}) for other in cancelled.values()])
        store.update_many([(slot, values)])

    notify_many(db, [slot.user_id, previous_user], NOTIFY_UPDATED, {"planId": plan.id, "slotId": slot.id})
    if cancelled:
        notify_many(
            db,
            (other.user_id for other in cancelled.values()),
            NOTIFY_CANCELLED,
            {"planId": plan.id, "slotIds": sorted(cancelled)},
        )
    return slot


def delete_slot(db: Session, caller: Caller, plan_id: int, slot_id: int) -> dict:
    store = SlotStore(db)
    plan = store.get_plan(plan_id)
    assert_plan_mutable(plan)
    slot = store.get_slot(plan.id, slot_id)
    if slot.locked:
        raise SlotLockedError(f"Slot {slot.id} is locked and cannot be removed", field="slotId")
    user_id = slot.user_id
    with store.atomic():
        store.delete(slot)
    logger.info("Slot %s removed from plan %s by user %s", slot_id, plan.id, caller.user_id)
    notify_many(db, [user_id], NOTIFY_UPDATED, {"planId": plan.id, "slotId": slot_id, "removed": True})
    return {"id": slot_id}
