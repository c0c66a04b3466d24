import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .config import get_settings
from .errors import SchedulingError, describe_validation_errors
from .migration_runner import run_migrations_once
from .routers import assignments, auth, constraints, directory, matrix, me, planner, plans

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie=settings.session_cookie,
    https_only=settings.environment == "production",
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    field, message = describe_validation_errors(exc.errors())
    payload = {"code": "VALIDATION_ERROR", "message": message}
    if field:
        payload["field"] = field
    return JSONResponse(payload, status_code=400)


@app.get("/")
async def root():
    return {"status": "ok", "app": settings.app_name}


@app.on_event("startup")
async def ensure_schema() -> None:
    if not settings.run_migrations_on_startup:
        return
    try:
        run_migrations_once()
    except Exception:  # pragma: no cover - startup failures should surface
        logger.exception("Database migration failed")
        raise


app.include_router(auth.router)
app.include_router(plans.router)
app.include_router(matrix.router)
app.include_router(planner.router)
app.include_router(constraints.router)
app.include_router(assignments.router)
app.include_router(directory.router)
app.include_router(me.router)
