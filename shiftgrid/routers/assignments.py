from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..constants import PLANNER_ROLES
from ..db import get_db
from ..dependencies import parse_query
from ..routing import Route, build_router, page_response
from ..schemas.assignment import AssignmentCreate, AssignmentListQuery, AssignmentRead, AssignmentUpdate
from ..services import assignments as assignment_service


def _assignment_json(assignment) -> dict:
    return AssignmentRead.model_validate(assignment).to_json()


async def create_assignment(payload: AssignmentCreate, db: Session = Depends(get_db)):
    assignment = assignment_service.create_assignment(db, payload)
    return JSONResponse({"data": _assignment_json(assignment)}, status_code=201)


async def list_assignments(
    query: AssignmentListQuery = Depends(parse_query(AssignmentListQuery)),
    db: Session = Depends(get_db),
):
    items, total = assignment_service.list_assignments(db, query)
    return page_response([_assignment_json(item) for item in items], total, query.page, query.page_size)


async def get_assignment(assignment_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": _assignment_json(assignment_service.get_assignment(db, assignment_id))})


async def update_assignment(assignment_id: int, payload: AssignmentUpdate, db: Session = Depends(get_db)):
    assignment = assignment_service.update_assignment(db, assignment_id, payload)
    return JSONResponse({"data": _assignment_json(assignment)})


routes = [
    Route("POST", "", create_assignment, PLANNER_ROLES, status_code=201),
    Route("GET", "", list_assignments, PLANNER_ROLES),
    Route("GET", "/{assignment_id}", get_assignment, PLANNER_ROLES),
    Route("PATCH", "/{assignment_id}", update_assignment, PLANNER_ROLES),
]

router = build_router("/assignments", ["assignments"], routes)
