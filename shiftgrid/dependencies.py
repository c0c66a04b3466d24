from __future__ import annotations

from typing import Callable, Iterable, Optional, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from .errors import AuthenticationError, AuthorizationError, ValidationError, describe_validation_errors
from .identity import Caller

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_caller(request: Request) -> Caller:
    payload = request.session.get("user")
    if not payload:
        raise AuthenticationError("Not authenticated")
    return Caller.from_session(payload)


def require_roles(roles: Optional[Iterable[str]]) -> Callable[..., Caller]:
    allowed = frozenset(roles or ())

    def checker(caller: Caller = Depends(get_caller)) -> Caller:
        if allowed and caller.role not in allowed:
            raise AuthorizationError(f"Role {caller.role} cannot access this resource")
        return caller

    return checker


def parse_query(model: Type[ModelT]) -> Callable[[Request], ModelT]:
    """Validate the whole query string against ``model``."""

    def dependency(request: Request) -> ModelT:
        try:
            return model.model_validate(dict(request.query_params))
        except SchemaError as exc:
            field, message = describe_validation_errors(exc.errors())
            raise ValidationError(message, field=field) from exc

    return dependency
