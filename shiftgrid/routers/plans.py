"""Plan lifecycle and the slot operations scoped to one plan."""

from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..constants import PLANNER_ROLES
from ..db import get_db
from ..dependencies import get_caller, parse_query
from ..identity import Caller
from ..routing import Route, build_router, page_response
from ..schemas.common import PageQuery
from ..schemas.plan import PlanCreate, PlanListQuery, PlanRead
from ..schemas.slot import (
    AutoAssignRequest,
    BulkAssignRequest,
    BulkMoveRequest,
    SlotRead,
    UpdateSlotRequest,
)
from ..services import auto_assign as auto_assign_service
from ..services import bulk as bulk_service
from ..services import plans as plan_service


def _plan_json(plan) -> dict:
    return PlanRead.model_validate(plan).to_json()


async def create_plan(payload: PlanCreate, db: Session = Depends(get_db)):
    plan = plan_service.create_plan(db, payload)
    return JSONResponse({"data": _plan_json(plan)}, status_code=201)


async def list_plans(query: PlanListQuery = Depends(parse_query(PlanListQuery)), db: Session = Depends(get_db)):
    plans, total = plan_service.list_plans(db, query)
    return page_response([_plan_json(plan) for plan in plans], total, query.page, query.page_size)


async def get_plan(
    plan_id: int,
    query: PageQuery = Depends(parse_query(PageQuery)),
    db: Session = Depends(get_db),
):
    plan, slots, total = plan_service.get_plan_with_slots(db, plan_id, query)
    data = _plan_json(plan)
    data["slots"] = [SlotRead.model_validate(slot).to_json() for slot in slots]
    return JSONResponse({"data": data, "meta": {"total": total, "page": query.page, "pageSize": query.page_size}})


async def publish_plan(plan_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": _plan_json(plan_service.publish_plan(db, plan_id))})


async def archive_plan(plan_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": _plan_json(plan_service.archive_plan(db, plan_id))})


async def delete_plan(plan_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": plan_service.delete_plan(db, plan_id)})


async def auto_assign(
    plan_id: int,
    payload: AutoAssignRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    outcome = auto_assign_service.auto_assign(
        db,
        caller,
        plan_id,
        org_id=payload.org_id,
        team_size=payload.team_size,
        date_start=payload.date_start,
        date_end=payload.date_end,
        respect_constraints=payload.respect_constraints,
    )
    return JSONResponse({"data": outcome.to_json()})


async def bulk_assign(
    plan_id: int,
    payload: BulkAssignRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    outcome = bulk_service.bulk_assign(db, caller, plan_id, payload.slots, payload.conflict_policy)
    return JSONResponse({"data": outcome.to_json()})


async def bulk_move(
    plan_id: int,
    payload: BulkMoveRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    outcome = bulk_service.bulk_move(
        db,
        caller,
        plan_id,
        payload.slot_ids,
        new_date_start=payload.new_date_start,
        new_date_end=payload.new_date_end,
        new_org_id=payload.new_org_id,
        new_user_id=payload.new_user_id,
        conflict_policy=payload.conflict_policy,
    )
    return JSONResponse({"data": outcome.to_json()})


async def update_slot(
    plan_id: int,
    slot_id: int,
    payload: UpdateSlotRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    slot = bulk_service.update_slot(db, caller, plan_id, slot_id, payload)
    return JSONResponse({"data": SlotRead.model_validate(slot).to_json()})


async def delete_slot(
    plan_id: int,
    slot_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return JSONResponse({"data": bulk_service.delete_slot(db, caller, plan_id, slot_id)})


routes = [
    Route("POST", "", create_plan, PLANNER_ROLES, status_code=201),
    Route("GET", "", list_plans, PLANNER_ROLES),
    Route("GET", "/{plan_id}", get_plan, PLANNER_ROLES),
    Route("PATCH", "/{plan_id}/publish", publish_plan, PLANNER_ROLES),
    Route("PATCH", "/{plan_id}/archive", archive_plan, PLANNER_ROLES),
    Route("DELETE", "/{plan_id}", delete_plan, PLANNER_ROLES),
    Route("POST", "/{plan_id}/slots/auto-assign", auto_assign, PLANNER_ROLES),
    Route("POST", "/{plan_id}/slots/bulk-assign", bulk_assign, PLANNER_ROLES),
    Route("PATCH", "/{plan_id}/slots/bulk-move", bulk_move, PLANNER_ROLES),
    Route("PATCH", "/{plan_id}/slots/{slot_id}", update_slot, PLANNER_ROLES),
    Route("DELETE", "/{plan_id}/slots/{slot_id}", delete_slot, PLANNER_ROLES),
]

router = build_router("/plans", ["plans"], routes)
