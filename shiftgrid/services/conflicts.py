from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List

from sqlalchemy.orm import Session

from ..constants import SLOT_CANCELLED
from ..models import Slot
from .intervals import overlaps
from .slot_store import SlotStore


@dataclass
class ConflictSet:
    locked: List[Slot] = field(default_factory=list)
    unlocked: List[Slot] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.locked or self.unlocked)

    @property
    def slot_ids(self) -> list[int]:
        return sorted(slot.id for slot in self.locked + self.unlocked)


def find_conflicts(
    db: Session,
    user_id: int,
    date_start: date,
    date_end: date,
    *,
    exclude_ids: Iterable[int] = (),
) -> list[Slot]:
    """Return live slots of ``user_id`` overlapping ``[date_start, date_end]``.

    Cancelled slots and slots of archived plans never conflict.
    """
    return SlotStore(db).find_many(
        user_ids=[user_id],
        overlapping=(date_start, date_end),
        exclude_statuses=[SLOT_CANCELLED],
        exclude_ids=exclude_ids,
        skip_archived_plans=True,
    )


def classify_conflicts(slots: Iterable[Slot]) -> ConflictSet:
    result = ConflictSet()
    for slot in slots:
        if slot.locked:
            result.locked.append(slot)
        else:
            result.unlocked.append(slot)
    return result


class PendingIntervals:
    """Tracks ranges accepted earlier in the same batch, per user."""

    def __init__(self) -> None:
        self._ranges: dict[int, list[tuple[date, date]]] = {}

    def overlaps(self, user_id: int, date_start: date, date_end: date) -> bool:
        return any(
            overlaps(start, end, date_start, date_end)
            for start, end in self._ranges.get(user_id, [])
        )

    def add(self, user_id: int, date_start: date, date_end: date) -> None:
        self._ranges.setdefault(user_id, []).append((date_start, date_end))
