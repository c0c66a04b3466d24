"""Employee self-service: own schedule, confirmations, swap requests."""

from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_caller
from ..identity import Caller
from ..routing import Route, build_router
from ..schemas.slot import RequestSwapRequest, SlotRead
from ..services import notifications as notification_service
from ..services import schedule as schedule_service


def _slot_json(slot) -> dict:
    payload = SlotRead.model_validate(slot).to_json()
    payload["plan"] = {"id": slot.plan.id, "name": slot.plan.name, "status": slot.plan.status}
    payload["org"] = {"id": slot.org.id, "name": slot.org.name}
    return payload


async def my_schedule(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    slots = schedule_service.get_schedule_for_user(db, caller)
    return JSONResponse({"data": [_slot_json(slot) for slot in slots]})


async def confirm_slot(slot_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    slot = schedule_service.confirm_slot(db, caller, slot_id)
    return JSONResponse({"data": SlotRead.model_validate(slot).to_json()})


async def request_swap(
    slot_id: int,
    payload: RequestSwapRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    slot = schedule_service.request_swap(db, caller, slot_id, payload.comment)
    return JSONResponse({"data": SlotRead.model_validate(slot).to_json()})


async def my_notifications(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    items = notification_service.list_for_user(db, caller.user_id)
    return JSONResponse(
        {
            "data": [
                {
                    "id": item.id,
                    "type": item.type,
                    "payload": item.payload,
                    "isRead": item.is_read,
                    "createdAt": item.created_at.isoformat() if item.created_at else None,
                }
                for item in items
            ]
        }
    )


routes = [
    Route("GET", "/schedule", my_schedule),
    Route("POST", "/slots/{slot_id}/confirm", confirm_slot),
    Route("POST", "/slots/{slot_id}/request-swap", request_swap),
    Route("GET", "/notifications", my_notifications),
]

router = build_router("/me", ["me"], routes)
