from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import bcrypt

from ..db import get_db
from ..dependencies import get_caller
from ..errors import AuthenticationError, AuthorizationError
from ..identity import Caller
from ..models import User
from ..routing import Route, build_router
from ..schemas.auth import LoginRequest


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name,
        "role": user.role,
        "orgId": user.org_id,
    }


async def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthorizationError("Account is disabled", code="ACCOUNT_DISABLED")

    request.session["user"] = Caller(user_id=user.id, role=user.role, org_id=user.org_id).to_session()
    return JSONResponse({"data": _user_payload(user)})


async def logout(request: Request):
    request.session.clear()
    return JSONResponse({"data": {"loggedOut": True}})


async def whoami(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == caller.user_id).one_or_none()
    if not user:
        raise AuthenticationError("Session user no longer exists")
    return JSONResponse({"data": _user_payload(user)})


routes = [
    Route("POST", "/login", login, roles=None),
    Route("POST", "/logout", logout, roles=None),
    Route("GET", "/me", whoami),
]

router = build_router("/auth", ["auth"], routes)
