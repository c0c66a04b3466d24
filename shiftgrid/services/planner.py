from __future__ import annotations

import csv
import io
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..constants import ASSIGNMENT_ACTIVE
from ..errors import NotFoundError
from ..identity import Caller
from ..models import Assignment, Workplace
from ..schemas.matrix import PlannerMatrixQuery
from .auto_assign import iter_days
from .matrix import check_page_size

STATUS_LABELS = {"ACTIVE": "Active", "ARCHIVED": "Archived"}


def _effective_scope(caller: Caller, query: PlannerMatrixQuery) -> tuple[int | None, int | None]:
    if caller.is_super_admin:
        return query.user_id, query.org_id
    if not caller.org_id:
        raise NotFoundError("User is not attached to an organization", code="ORG_NOT_FOUND", field="orgId")
    return query.user_id, caller.org_id


def _load_assignments(db: Session, caller: Caller, query: PlannerMatrixQuery) -> list[Assignment]:
    user_id, org_id = _effective_scope(caller, query)
    range_start = datetime.combine(query.date_from, time.min)
    range_end = datetime.combine(query.date_to, time.max)
    base = (
        db.query(Assignment)
        .join(Workplace, Assignment.workplace_id == Workplace.id)
        .options(
            joinedload(Assignment.user),
            joinedload(Assignment.workplace).joinedload(Workplace.org),
            joinedload(Assignment.shifts),
        )
        .filter(
            Assignment.status == (query.status or ASSIGNMENT_ACTIVE),
            Assignment.starts_at <= range_end,
            or_(Assignment.ends_at.is_(None), Assignment.ends_at >= range_start),
        )
    )
    if user_id:
        base = base.filter(Assignment.user_id == user_id)
    if org_id:
        base = base.filter(Workplace.org_id == org_id)
    if query.mode == "byOrgs":
        base = base.order_by(Workplace.code.asc(), Assignment.starts_at.asc(), Assignment.id.asc())
    else:
        base = base.order_by(Assignment.user_id.asc(), Assignment.starts_at.asc(), Assignment.id.asc())
    return base.all()


def _shifts_by_day(assignment: Assignment, days: set[date]) -> dict[str, list[dict[str, Any]]]:
    cells: dict[str, list[dict[str, Any]]] = {}
    for shift in assignment.shifts:
        if shift.date not in days:
            continue
        cells.setdefault(shift.date.isoformat(), []).append(
            {
                "assignmentId": assignment.id,
                "workplaceCode": assignment.workplace.code,
                "kind": shift.kind,
                "from": shift.starts_at.strftime("%H:%M"),
                "to": shift.ends_at.strftime("%H:%M"),
            }
        )
    return cells


def _assignment_entry(assignment: Assignment) -> dict[str, Any]:
    workplace = assignment.workplace
    user = assignment.user
    return {
        "id": assignment.id,
        "from": assignment.starts_at.isoformat(),
        "to": assignment.ends_at.isoformat() if assignment.ends_at else None,
        "status": assignment.status,
        "code": workplace.code,
        "name": workplace.name,
        "user": {
            "id": user.id,
            "email": user.email,
            "fullName": user.full_name,
            "position": user.position,
        },
        "org": {"id": workplace.org.id, "name": workplace.org.name, "slug": workplace.org.slug},
        "workplace": {
            "id": workplace.id,
            "code": workplace.code,
            "name": workplace.name,
            "location": workplace.location,
            "color": workplace.color,
        },
    }


def collect_rows(db: Session, caller: Caller, query: PlannerMatrixQuery) -> list[dict[str, Any]]:
    days = set(iter_days(query.date_from, query.date_to))
    rows: dict[int, dict[str, Any]] = {}
    for assignment in _load_assignments(db, caller, query):
        if query.mode == "byOrgs":
            org = assignment.workplace.org
            key, title, subtitle = org.id, org.name, org.slug
        else:
            user = assignment.user
            key, title, subtitle = user.id, user.display_name, user.position
        row = rows.setdefault(key, {"key": key, "title": title, "subtitle": subtitle, "slots": [], "cells": {}})
        row["slots"].append(_assignment_entry(assignment))
        for day, entries in _shifts_by_day(assignment, days).items():
            row["cells"].setdefault(day, []).extend(entries)

    ordered = sorted(rows.values(), key=lambda row: ((row["title"] or "").casefold(), row["key"]))
    for row in ordered:
        row["slots"].sort(key=lambda entry: (entry["from"], entry["id"]))
        for entries in row["cells"].values():
            entries.sort(key=lambda entry: (entry["from"], entry["assignmentId"]))
    return ordered


def get_planner_matrix(db: Session, caller: Caller, query: PlannerMatrixQuery) -> dict[str, Any]:
    check_page_size(query.page_size)
    rows = collect_rows(db, caller, query)
    start = (query.page - 1) * query.page_size
    return {
        "data": rows[start : start + query.page_size],
        "meta": {
            "total": len(rows),
            "page": query.page,
            "pageSize": query.page_size,
            "mode": query.mode,
            "from": query.date_from.isoformat(),
            "to": query.date_to.isoformat(),
            "days": [day.isoformat() for day in iter_days(query.date_from, query.date_to)],
        },
    }


def export_planner_csv(db: Session, caller: Caller, query: PlannerMatrixQuery) -> str:
    """One line per assignment, one column per day of the window."""
    days = list(iter_days(query.date_from, query.date_to))
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(
        [f"Period: {query.date_from.strftime('%d.%m.%Y')} - {query.date_to.strftime('%d.%m.%Y')}"]
    )
    writer.writerow(["Employee", "Workplace", *[day.strftime("%d.%m.%Y") for day in days]])
    for assignment in _load_assignments(db, caller, query):
        workplace = assignment.workplace
        label = workplace.code if not workplace.name else f"{workplace.code} - {workplace.name}"
        cells = _shifts_by_day(assignment, set(days))
        status_label = STATUS_LABELS.get(assignment.status, assignment.status)
        columns = []
        for day in days:
            lines = [
                f"{entry['from']}-{entry['to']} ({status_label})"
                for entry in cells.get(day.isoformat(), [])
            ]
            columns.append("\n".join(lines))
        writer.writerow([assignment.user.display_name, label, *columns])
    return buffer.getvalue()
