from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..constants import PLANNER_ROLES
from ..db import get_db
from ..routing import Route, build_router
from ..schemas.plan import ConstraintRead, ConstraintUpsert
from ..services import plans as plan_service


async def list_constraints(db: Session = Depends(get_db)):
    items = plan_service.list_constraints(db)
    return JSONResponse({"data": [ConstraintRead.model_validate(item).to_json() for item in items]})


async def upsert_constraint(payload: ConstraintUpsert, db: Session = Depends(get_db)):
    constraint = plan_service.upsert_constraint(db, payload)
    return JSONResponse({"data": ConstraintRead.model_validate(constraint).to_json()})


routes = [
    Route("GET", "", list_constraints, PLANNER_ROLES),
    Route("POST", "", upsert_constraint, PLANNER_ROLES),
]

router = build_router("/constraints", ["constraints"], routes)
