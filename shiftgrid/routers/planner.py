import io

from fastapi import Depends
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from ..constants import MATRIX_VIEWER_ROLES
from ..db import get_db
from ..dependencies import get_caller, parse_query
from ..identity import Caller
from ..routing import Route, build_router
from ..schemas.matrix import PlannerMatrixQuery
from ..services.planner import export_planner_csv, get_planner_matrix


async def planner_matrix(
    query: PlannerMatrixQuery = Depends(parse_query(PlannerMatrixQuery)),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return JSONResponse(get_planner_matrix(db, caller, query))


async def planner_export(
    query: PlannerMatrixQuery = Depends(parse_query(PlannerMatrixQuery)),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    content = export_planner_csv(db, caller, query)
    filename = f"planner_{query.date_from.isoformat()}_{query.date_to.isoformat()}.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(io.StringIO(content), media_type="text/csv", headers=headers)


routes = [
    Route("GET", "/matrix", planner_matrix, MATRIX_VIEWER_ROLES),
    Route("GET", "/export", planner_export, MATRIX_VIEWER_ROLES),
]

router = build_router("/planner", ["planner"], routes)
