from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..constants import PLANNER_ROLES
from ..db import get_db
from ..dependencies import parse_query
from ..routing import Route, build_router
from ..schemas.matrix import MatrixQuery
from ..services.matrix import get_matrix


async def slot_matrix(query: MatrixQuery = Depends(parse_query(MatrixQuery)), db: Session = Depends(get_db)):
    return JSONResponse(get_matrix(db, query))


routes = [Route("GET", "", slot_matrix, PLANNER_ROLES)]

router = build_router("/matrix", ["matrix"], routes)
