"""Seed a demo organization, staff and an auto-assigned draft plan."""

from datetime import date, timedelta

from shiftgrid.constants import ADMIN, ORG_MANAGER, SUPER_ADMIN, WORKER
from shiftgrid.db import SessionLocal
from shiftgrid.identity import Caller
from shiftgrid.models import Organization, Plan, User, Workplace
from shiftgrid.routers.auth import get_password_hash
from shiftgrid.services.auto_assign import auto_assign

DEFAULT_PASSWORD = "demo1234"
STAFF = [
    ("root@example.com", "Demo Root", SUPER_ADMIN),
    ("planner@example.com", "Demo Planner", ADMIN),
    ("manager@example.com", "Demo Manager", ORG_MANAGER),
    ("alice@example.com", "Alice Demo", WORKER),
    ("bob@example.com", "Bob Demo", WORKER),
    ("carol@example.com", "Carol Demo", WORKER),
]


def ensure_org(session) -> Organization:
    org = session.query(Organization).filter(Organization.slug == "demo").one_or_none()
    if org is None:
        org = Organization(name="Demo Org", slug="demo", timezone="UTC")
        session.add(org)
        session.flush()
    return org


def ensure_workplace(session, org: Organization, code: str, name: str) -> Workplace:
    workplace = (
        session.query(Workplace)
        .filter(Workplace.org_id == org.id, Workplace.code == code)
        .one_or_none()
    )
    if workplace is None:
        workplace = Workplace(org_id=org.id, code=code, name=name)
        session.add(workplace)
        session.flush()
    return workplace


def ensure_user(session, org: Organization, email: str, full_name: str, role: str) -> User:
    user = session.query(User).filter(User.email == email).one_or_none()
    if user:
        return user
    user = User(
        org_id=org.id,
        email=email,
        full_name=full_name,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user


def ensure_plan(session) -> Plan:
    monday = date.today() + timedelta(days=7 - date.today().weekday())
    plan = session.query(Plan).filter(Plan.name == "Demo week", Plan.starts_at == monday).one_or_none()
    if plan is None:
        plan = Plan(name="Demo week", starts_at=monday, ends_at=monday + timedelta(days=6))
        session.add(plan)
        session.flush()
    return plan


def main() -> None:
    session = SessionLocal()
    try:
        org = ensure_org(session)
        ensure_workplace(session, org, "FRONT", "Front desk")
        ensure_workplace(session, org, "BACK", "Back office")
        users = [ensure_user(session, org, email, name, role) for email, name, role in STAFF]
        plan = ensure_plan(session)
        session.commit()

        planner = Caller(user_id=users[1].id, role=ADMIN, org_id=org.id)
        outcome = auto_assign(
            session,
            planner,
            plan.id,
            org_id=org.id,
            team_size=2,
            date_start=plan.starts_at,
            date_end=plan.ends_at,
        )
        print("Demo data ready:")
        print(f"  Plan {plan.id}: {len(outcome.created)} slot(s) created, {len(outcome.skipped)} skipped")
        for email, _, role in STAFF:
            print(f"  {role:<12} {email} / {DEFAULT_PASSWORD}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
