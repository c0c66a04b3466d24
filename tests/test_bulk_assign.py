import unittest
from datetime import date
from unittest.mock import patch

from tests.support import DatabaseTestCase

from shiftgrid.constants import NOTIFY_CANCELLED, NOTIFY_CREATED, PLAN_ARCHIVED, SLOT_CANCELLED, SLOT_PLANNED
from shiftgrid.errors import NotFoundError, ValidationError
from shiftgrid.models import Notification, Slot
from shiftgrid.schemas.slot import ConflictPolicy, SlotInput
from shiftgrid.services.bulk import bulk_assign
from shiftgrid.services.slot_store import SlotStore


def d(day: int) -> date:
    return date(2025, 3, day)


class BulkAssignTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.plan = self.make_plan(d(3), d(9))
        self.alice = self.make_user(self.org, "Alice")
        self.bob = self.make_user(self.org, "Bob")

    def _item(self, user, start: int, end: int | None = None, **extra) -> SlotInput:
        return SlotInput(user_id=user.id, org_id=self.org.id, date_start=d(start), date_end=d(end or start), **extra)

    def _slot_count(self) -> int:
        return self.db.query(Slot).count()

    def test_creates_slots_with_org_color(self) -> None:
        outcome = bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 3, 4), self._item(self.bob, 3)])

        self.assertEqual(len(outcome.created), 2)
        self.assertEqual(outcome.skipped, [])
        self.assertEqual({slot.color_code for slot in outcome.created}, {"ACME"})
        self.assertEqual({slot.status for slot in outcome.created}, {SLOT_PLANNED})
        self.assertEqual(self._slot_count(), 2)

    def test_explicit_color_wins(self) -> None:
        outcome = bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 3, color_code="NIGHT")])
        self.assertEqual(outcome.created[0].color_code, "NIGHT")

    def test_one_inverted_range_rejects_whole_batch(self) -> None:
        items = [self._item(self.alice, 3), self._item(self.bob, 6, 5)]

        with self.assertRaises(ValidationError) as ctx:
            bulk_assign(self.db, self.caller, self.plan.id, items)

        self.assertEqual(ctx.exception.code, "INVALID_RANGE")
        self.assertEqual(ctx.exception.field, "slots[1].dateEnd")
        self.assertEqual(self._slot_count(), 0)

    def test_locked_conflict_skips_item(self) -> None:
        locked = self.make_slot(self.plan, self.alice, d(5), locked=True)

        outcome = bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 4, 6)])

        self.assertEqual(outcome.created, [])
        self.assertEqual(len(outcome.skipped), 1)
        self.assertEqual(outcome.skipped[0].reason, "LOCKED_CONFLICT")
        self.assertEqual(outcome.skipped[0].slot_ids, [locked.id])
        self.assertEqual(self.reload(locked).status, SLOT_PLANNED)

    def test_overwrite_policy_cancels_unlocked_conflict(self) -> None:
        existing = self.make_slot(self.plan, self.alice, d(5))

        outcome = bulk_assign(
            self.db, self.caller, self.plan.id, [self._item(self.alice, 5)], ConflictPolicy.OVERWRITE
        )

        self.assertEqual(len(outcome.created), 1)
        self.assertEqual([slot.id for slot in outcome.replaced], [existing.id])
        self.assertEqual(self.reload(existing).status, SLOT_CANCELLED)

    def test_reject_policy_skips_conflicting_item(self) -> None:
        existing = self.make_slot(self.plan, self.alice, d(5))

        outcome = bulk_assign(
            self.db,
            self.caller,
            self.plan.id,
            [self._item(self.alice, 5), self._item(self.bob, 5)],
            ConflictPolicy.REJECT,
        )

        self.assertEqual([slot.user_id for slot in outcome.created], [self.bob.id])
        self.assertEqual(outcome.skipped[0].reason, "CONFLICT")
        self.assertEqual(outcome.skipped[0].slot_ids, [existing.id])
        self.assertEqual(outcome.replaced, [])
        self.assertEqual(self.reload(existing).status, SLOT_PLANNED)

    def test_items_overlapping_inside_batch(self) -> None:
        outcome = bulk_assign(
            self.db, self.caller, self.plan.id, [self._item(self.alice, 3, 4), self._item(self.alice, 4, 5)]
        )

        self.assertEqual(len(outcome.created), 1)
        self.assertEqual(outcome.skipped[0].reason, "BATCH_OVERLAP")
        self.assertEqual(outcome.skipped[0].input["dateStart"], "2025-03-04")

    def test_cancelled_and_archived_slots_never_conflict(self) -> None:
        self.make_slot(self.plan, self.alice, d(5), status=SLOT_CANCELLED)
        archived = self.make_plan(d(1), d(31), name="Old", status=PLAN_ARCHIVED)
        self.make_slot(archived, self.alice, d(5), locked=True)

        outcome = bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 5)])

        self.assertEqual(len(outcome.created), 1)
        self.assertEqual(outcome.replaced, [])

    def test_conflict_in_other_plan_is_detected(self) -> None:
        other = self.make_plan(d(1), d(31), name="Other")
        existing = self.make_slot(other, self.alice, d(7), locked=True)

        outcome = bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 6, 8)])

        self.assertEqual(outcome.skipped[0].slot_ids, [existing.id])

    def test_archived_plan_is_rejected(self) -> None:
        archived = self.make_plan(d(3), d(9), status=PLAN_ARCHIVED)

        with self.assertRaises(ValidationError) as ctx:
            bulk_assign(self.db, self.caller, archived.id, [self._item(self.alice, 3)])
        self.assertEqual(ctx.exception.code, "PLAN_ARCHIVED")

    def test_unknown_references_are_rejected(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            bulk_assign(
                self.db,
                self.caller,
                self.plan.id,
                [SlotInput(user_id=9999, org_id=self.org.id, date_start=d(3), date_end=d(3))],
            )
        self.assertEqual(ctx.exception.code, "USER_NOT_FOUND")

        with self.assertRaises(NotFoundError) as ctx:
            bulk_assign(self.db, self.caller, 9999, [self._item(self.alice, 3)])
        self.assertEqual(ctx.exception.code, "PLAN_NOT_FOUND")

    def test_affected_users_are_notified(self) -> None:
        self.make_slot(self.plan, self.bob, d(4))

        bulk_assign(self.db, self.caller, self.plan.id, [self._item(self.alice, 3), self._item(self.bob, 4)])

        created = self.db.query(Notification).filter(Notification.type == NOTIFY_CREATED).all()
        cancelled = self.db.query(Notification).filter(Notification.type == NOTIFY_CANCELLED).all()
        self.assertEqual(sorted(item.user_id for item in created), sorted([self.alice.id, self.bob.id]))
        self.assertEqual([item.user_id for item in cancelled], [self.bob.id])

    def test_failed_insert_undoes_cancellations(self) -> None:
        existing = self.make_slot(self.plan, self.alice, d(5))
        real_create = SlotStore.create_many

        def create_then_fail(store, plan, rows):
            real_create(store, plan, rows)
            raise RuntimeError("connection lost")

        with patch.object(SlotStore, "create_many", autospec=True, side_effect=create_then_fail):
            with self.assertLogs("shiftgrid.services.slot_store", level="ERROR"):
                with self.assertRaises(RuntimeError):
                    bulk_assign(
                        self.db,
                        self.caller,
                        self.plan.id,
                        [self._item(self.alice, 5), self._item(self.bob, 6)],
                        ConflictPolicy.OVERWRITE,
                    )

        self.assertEqual(self.reload(existing).status, SLOT_PLANNED)
        self.assertEqual(self._slot_count(), 1)
        self.assertEqual(self.db.query(Notification).count(), 0)


if __name__ == "__main__":
    unittest.main()
