from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..constants import PLANNER_ROLES, SUPER_ADMIN
from ..db import get_db
from ..routing import Route, build_router
from ..services import directory as directory_service


async def delete_workplace(workplace_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": directory_service.delete_workplace(db, workplace_id)})


async def delete_org(org_id: int, db: Session = Depends(get_db)):
    return JSONResponse({"data": directory_service.delete_org(db, org_id)})


routes = [
    Route("DELETE", "/workplaces/{workplace_id}", delete_workplace, PLANNER_ROLES),
    Route("DELETE", "/orgs/{org_id}", delete_org, frozenset({SUPER_ADMIN})),
]

router = build_router("", ["directory"], routes)
