from __future__ import annotations

import os
import unittest
from datetime import date
from itertools import count

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from shiftgrid.constants import ADMIN, SLOT_PLANNED, WORKER  # noqa: E402
from shiftgrid.db import get_db  # noqa: E402
from shiftgrid.dependencies import get_caller  # noqa: E402
from shiftgrid.identity import Caller  # noqa: E402
from shiftgrid.models import Base, Organization, Plan, Slot, User, Workplace  # noqa: E402

_sequence = count(1)


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory schema per test with small builders for the domain rows."""

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)
        self.db = self.session_factory()
        self.org = self.make_org("Acme", "acme")
        self.admin = self.make_user(self.org, "Planner Admin", role=ADMIN)
        self.caller = Caller(user_id=self.admin.id, role=ADMIN, org_id=self.org.id)

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def make_org(self, name: str, slug: str | None = None) -> Organization:
        org = Organization(name=name, slug=slug or f"org-{next(_sequence)}")
        self.db.add(org)
        self.db.commit()
        return org

    def make_user(
        self,
        org: Organization,
        full_name: str,
        *,
        role: str = WORKER,
        is_active: bool = True,
        email: str | None = None,
        password_hash: str = "!",
    ) -> User:
        user = User(
            org_id=org.id,
            email=email or f"user{next(_sequence)}@example.com",
            full_name=full_name,
            role=role,
            is_active=is_active,
            password_hash=password_hash,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def make_workplace(self, org: Organization, code: str, name: str | None = None) -> Workplace:
        workplace = Workplace(org_id=org.id, code=code, name=name)
        self.db.add(workplace)
        self.db.commit()
        return workplace

    def make_plan(self, starts_at: date, ends_at: date, *, name: str = "Week plan", status: str | None = None) -> Plan:
        plan = Plan(name=name, starts_at=starts_at, ends_at=ends_at)
        if status:
            plan.status = status
        self.db.add(plan)
        self.db.commit()
        return plan

    def make_slot(
        self,
        plan: Plan,
        user: User,
        date_start: date,
        date_end: date | None = None,
        *,
        org: Organization | None = None,
        status: str = SLOT_PLANNED,
        locked: bool = False,
        workplace: Workplace | None = None,
    ) -> Slot:
        slot = Slot(
            plan_id=plan.id,
            user_id=user.id,
            org_id=(org or self.org).id,
            workplace_id=workplace.id if workplace else None,
            date_start=date_start,
            date_end=date_end or date_start,
            status=status,
            locked=locked,
        )
        self.db.add(slot)
        self.db.commit()
        return slot

    def reload(self, instance):
        self.db.expire_all()
        return self.db.get(type(instance), instance.id)


class ApiTestCase(DatabaseTestCase):
    """Runs requests through the real app with the test session and caller."""

    def setUp(self) -> None:
        super().setUp()
        from shiftgrid.main import app

        def override_get_db():
            yield self.db

        self.app = app
        self.app.dependency_overrides[get_db] = override_get_db
        self.app.dependency_overrides[get_caller] = lambda: self.caller
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()
        super().tearDown()

    def act_as(self, user: User) -> None:
        self.caller = Caller(user_id=user.id, role=user.role, org_id=user.org_id)
