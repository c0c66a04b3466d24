from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..config import get_settings
from ..constants import PLAN_ARCHIVED, SLOT_CANCELLED
from ..errors import ValidationError
from ..models import Organization, Plan, Slot, User
from ..schemas.matrix import MatrixQuery
from ..schemas.slot import SlotRead
from .auto_assign import iter_days


def check_page_size(page_size: int) -> None:
    limit = get_settings().matrix_max_page_size
    if page_size > limit:
        raise ValidationError(f"pageSize must be at most {limit}", field="pageSize")


def _window_filter(query, date_from: date, date_to: date):
    return (
        query.join(Plan, Slot.plan_id == Plan.id)
        .filter(
            Slot.date_start <= date_to,
            Slot.date_end >= date_from,
            Slot.status != SLOT_CANCELLED,
            Plan.status != PLAN_ARCHIVED,
        )
    )


def _cells(slots: list[Slot], days: list[date]) -> dict[str, list[int]]:
    cells: dict[str, list[int]] = {}
    for day in days:
        covering = [slot.id for slot in slots if slot.covers(day)]
        if covering:
            cells[day.isoformat()] = covering
    return cells


def _slot_payload(slot: Slot) -> dict[str, Any]:
    payload = SlotRead.model_validate(slot).to_json()
    payload["plan"] = {"id": slot.plan.id, "name": slot.plan.name}
    return payload


def get_matrix(db: Session, query: MatrixQuery) -> dict[str, Any]:
    """Page through users or orgs that hold a live slot inside the window.

    Rows are ordered by display name, then id.
    """
    check_page_size(query.page_size)
    days = list(iter_days(query.date_from, query.date_to))
    if query.mode == "byOrgs":
        key_column = Slot.org_id
        row_model = Organization
        order = (Organization.name.asc(), Organization.id.asc())
    else:
        key_column = Slot.user_id
        row_model = User
        order = (func.coalesce(User.full_name, User.email).asc(), User.id.asc())

    qualifying = _window_filter(db.query(key_column), query.date_from, query.date_to).distinct().subquery()
    rows_query = db.query(row_model).filter(row_model.id.in_(select(qualifying.c[0])))
    total = rows_query.count()
    offset = (query.page - 1) * query.page_size
    records = rows_query.order_by(*order).offset(offset).limit(query.page_size).all()

    grouped: dict[int, list[Slot]] = {record.id: [] for record in records}
    if records:
        slots = (
            _window_filter(db.query(Slot), query.date_from, query.date_to)
            .options(joinedload(Slot.plan))
            .filter(key_column.in_(list(grouped)))
            .order_by(Slot.date_start.asc(), Slot.id.asc())
            .all()
        )
        for slot in slots:
            grouped[getattr(slot, key_column.key)].append(slot)

    rows = []
    for record in records:
        slots = grouped[record.id]
        if query.mode == "byOrgs":
            header = {"id": record.id, "name": record.name, "slug": record.slug}
        else:
            header = {
                "id": record.id,
                "email": record.email,
                "fullName": record.full_name,
                "position": record.position,
            }
        rows.append(
            {
                "key": record.id,
                "title": record.name if query.mode == "byOrgs" else record.display_name,
                ("org" if query.mode == "byOrgs" else "user"): header,
                "slots": [_slot_payload(slot) for slot in slots],
                "cells": _cells(slots, days),
            }
        )

    return {
        "data": rows,
        "meta": {
            "total": total,
            "page": query.page,
            "pageSize": query.page_size,
            "mode": query.mode,
            "dateFrom": query.date_from.isoformat(),
            "dateTo": query.date_to.isoformat(),
            "days": [day.isoformat() for day in days],
        },
    }
