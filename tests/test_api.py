import unittest
from datetime import date, datetime

from tests.support import ApiTestCase

from shiftgrid.constants import AUDITOR, WORKER
from shiftgrid.dependencies import get_caller
from shiftgrid.models import Assignment, Plan, Slot
from shiftgrid.routers.auth import get_password_hash


class PlanApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user(self.org, "Alice")
        self.bob = self.make_user(self.org, "Bob")
        self.plan = self.make_plan(date(2025, 3, 3), date(2025, 3, 9))

    def _slot(self, user, start: str, end: str | None = None) -> dict:
        return {"userId": user.id, "orgId": self.org.id, "dateStart": start, "dateEnd": end or start}

    def test_create_and_list_plans(self) -> None:
        response = self.client.post("/plans", json={"name": "April", "startsAt": "2025-04-01", "endsAt": "2025-04-30"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["status"], "DRAFT")

        listing = self.client.get("/plans", params={"from": "2025-04-01", "pageSize": 10}).json()
        self.assertEqual(listing["meta"], {"total": 1, "page": 1, "pageSize": 10})
        self.assertEqual(listing["data"][0]["name"], "April")

    def test_inverted_plan_range(self) -> None:
        response = self.client.post("/plans", json={"name": "Bad", "startsAt": "2025-04-30", "endsAt": "2025-04-01"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_RANGE")
        self.assertEqual(response.json()["field"], "endsAt")

    def test_bulk_assign_then_read_plan(self) -> None:
        response = self.client.post(
            f"/plans/{self.plan.id}/slots/bulk-assign",
            json={"slots": [self._slot(self.alice, "2025-03-03", "2025-03-04"), self._slot(self.bob, "2025-03-05")]},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()["data"]
        self.assertEqual(len(body["created"]), 2)
        self.assertEqual(body["skipped"], [])
        self.assertEqual(body["created"][0]["colorCode"], "ACME")

        detail = self.client.get(f"/plans/{self.plan.id}", params={"pageSize": 1}).json()
        self.assertEqual(detail["meta"]["total"], 2)
        self.assertEqual(len(detail["data"]["slots"]), 1)

    def test_bulk_assign_inverted_item(self) -> None:
        response = self.client.post(
            f"/plans/{self.plan.id}/slots/bulk-assign",
            json={"slots": [self._slot(self.alice, "2025-03-03"), self._slot(self.bob, "2025-03-05", "2025-03-04")]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {
            "code": "INVALID_RANGE",
            "message": "slots[1].dateEnd must be on or after 2025-03-05, got 2025-03-04",
            "field": "slots[1].dateEnd",
        })
        self.assertEqual(self.db.query(Slot).count(), 0)

    def test_bulk_assign_size_limits(self) -> None:
        empty = self.client.post(f"/plans/{self.plan.id}/slots/bulk-assign", json={"slots": []})
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(empty.json()["field"], "slots")

        too_many = [self._slot(self.alice, "2025-03-03")] * 501
        response = self.client.post(f"/plans/{self.plan.id}/slots/bulk-assign", json={"slots": too_many})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "slots")

    def test_bulk_move_requires_a_change(self) -> None:
        slot = self.make_slot(self.plan, self.alice, date(2025, 3, 3))

        response = self.client.patch(f"/plans/{self.plan.id}/slots/bulk-move", json={"slotIds": [slot.id]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_bulk_move_reports_locked(self) -> None:
        locked = self.make_slot(self.plan, self.alice, date(2025, 3, 3), locked=True)
        free = self.make_slot(self.plan, self.bob, date(2025, 3, 3))

        response = self.client.patch(
            f"/plans/{self.plan.id}/slots/bulk-move",
            json={"slotIds": [locked.id, free.id], "newDateStart": "2025-03-06", "newDateEnd": "2025-03-06"},
        )

        body = response.json()["data"]
        self.assertEqual([item["id"] for item in body["updated"]], [free.id])
        self.assertEqual(body["skipped"], [{"input": {"slotId": locked.id}, "reason": "LOCKED", "slotIds": [locked.id]}])

    def test_locked_slot_patch_is_conflict(self) -> None:
        slot = self.make_slot(self.plan, self.alice, date(2025, 3, 3), locked=True)

        response = self.client.patch(f"/plans/{self.plan.id}/slots/{slot.id}", json={"dateEnd": "2025-03-04"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "SLOT_LOCKED")

    def test_auto_assign_endpoint(self) -> None:
        response = self.client.post(
            f"/plans/{self.plan.id}/slots/auto-assign",
            json={"orgId": self.org.id, "teamSize": 3, "dateStart": "2025-03-03", "dateEnd": "2025-03-07"},
        )

        body = response.json()["data"]
        self.assertEqual(len(body["created"]), 10)
        self.assertEqual(body["uncovered"][0], {"date": "2025-03-03", "missing": 1})

    def test_delete_draft_plan_only(self) -> None:
        self.assertEqual(self.client.patch(f"/plans/{self.plan.id}/publish").json()["data"]["status"], "PUBLISHED")

        response = self.client.delete(f"/plans/{self.plan.id}")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "PLAN_NOT_DRAFT")

        draft = self.make_plan(date(2025, 4, 1), date(2025, 4, 7))
        self.assertEqual(self.client.delete(f"/plans/{draft.id}").json(), {"data": {"id": draft.id}})
        self.assertIsNone(self.db.get(Plan, draft.id))

    def test_worker_cannot_plan(self) -> None:
        self.act_as(self.alice)

        response = self.client.get("/plans")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "FORBIDDEN")


class MatrixApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        plan = self.make_plan(date(2025, 3, 3), date(2025, 3, 9))
        self.alice = self.make_user(self.org, "Alice")
        self.make_slot(plan, self.alice, date(2025, 3, 4))
        workplace = self.make_workplace(self.org, "FRONT")
        self.db.add(Assignment(user_id=self.alice.id, workplace_id=workplace.id, starts_at=datetime(2025, 3, 1)))
        self.db.commit()

    def test_slot_matrix(self) -> None:
        response = self.client.get("/matrix", params={"dateFrom": "2025-03-03", "dateTo": "2025-03-09", "mode": "byUsers"})

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(body["meta"]["pageSize"], 25)
        self.assertEqual(body["data"][0]["user"]["fullName"], "Alice")

    def test_page_size_is_capped(self) -> None:
        response = self.client.get("/matrix", params={"dateFrom": "2025-03-03", "dateTo": "2025-03-09", "pageSize": 201})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(response.json()["field"], "pageSize")

    def test_unknown_mode(self) -> None:
        response = self.client.get("/matrix", params={"dateFrom": "2025-03-03", "dateTo": "2025-03-09", "mode": "byDays"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "mode")

    def test_auditor_reads_planner_matrix(self) -> None:
        auditor = self.make_user(self.org, "Audit", role=AUDITOR)
        self.act_as(auditor)

        response = self.client.get("/planner/matrix", params={"from": "2025-03-03", "to": "2025-03-09"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["meta"]["from"], "2025-03-03")
        self.assertEqual(self.client.get("/matrix", params={"dateFrom": "2025-03-03", "dateTo": "2025-03-09"}).status_code, 403)

    def test_planner_export_is_csv(self) -> None:
        response = self.client.get("/planner/export", params={"from": "2025-03-03", "to": "2025-03-09"})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn("planner_2025-03-03_2025-03-09.csv", response.headers["content-disposition"])
        self.assertTrue(response.text.startswith("Period: 03.03.2025 - 09.03.2025"))

    def test_workplace_with_active_assignment_cannot_be_deleted(self) -> None:
        workplace_id = self.db.query(Assignment).one().workplace_id

        response = self.client.delete(f"/workplaces/{workplace_id}")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "DEPENDENCY_ACTIVE")
        self.assertEqual(response.json()["field"], "id")


class SelfServiceApiTests(ApiTestCase):
    def test_request_swap(self) -> None:
        worker = self.make_user(self.org, "Alice", role=WORKER)
        plan = self.make_plan(date(2025, 3, 3), date(2025, 3, 9))
        slot = self.make_slot(plan, worker, date(2025, 3, 4))
        self.act_as(worker)

        response = self.client.post(f"/me/slots/{slot.id}/request-swap", json={"comment": "Family event"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "REPLACED")
        self.assertIn("Family event", response.json()["data"]["note"])

        self.act_as(self.admin)
        inbox = self.client.get("/me/notifications").json()["data"]
        self.assertEqual(inbox[0]["payload"]["slotId"], slot.id)

    def test_blank_swap_comment(self) -> None:
        response = self.client.post("/me/slots/1/request-swap", json={"comment": ""})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "comment")


class AuthApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.app.dependency_overrides.pop(get_caller)
        self.user = self.make_user(
            self.org,
            "Pat Planner",
            email="pat@example.com",
            password_hash=get_password_hash("s3cret-pass"),
            role="ADMIN",
        )

    def test_requests_without_session_are_rejected(self) -> None:
        response = self.client.get("/plans")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "NOT_AUTHENTICATED")

    def test_login_starts_session(self) -> None:
        response = self.client.post("/auth/login", json={"email": "Pat@example.com", "password": "s3cret-pass"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["role"], "ADMIN")

        self.assertEqual(self.client.get("/auth/me").json()["data"]["email"], "pat@example.com")
        self.assertEqual(self.client.get("/plans").status_code, 200)

        self.client.post("/auth/logout")
        self.assertEqual(self.client.get("/auth/me").status_code, 401)

    def test_wrong_password(self) -> None:
        response = self.client.post("/auth/login", json={"email": "pat@example.com", "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "INVALID_CREDENTIALS")

    def test_disabled_account(self) -> None:
        self.user.is_active = False
        self.db.commit()

        response = self.client.post("/auth/login", json={"email": "pat@example.com", "password": "s3cret-pass"})
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
