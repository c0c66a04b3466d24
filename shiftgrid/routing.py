"""Route tables: each entry binds a method and path to a handler and the roles it needs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .dependencies import require_roles

AUTHENTICATED: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    endpoint: Callable[..., Any]
    roles: Optional[frozenset[str]] = AUTHENTICATED
    status_code: int = 200
    name: Optional[str] = None


def build_router(prefix: str, tags: Sequence[str], routes: Iterable[Route]) -> APIRouter:
    """Register every route of a table; ``roles=None`` marks a public route."""
    router = APIRouter(prefix=prefix, tags=list(tags))
    for route in routes:
        dependencies = [] if route.roles is None else [Depends(require_roles(route.roles))]
        router.add_api_route(
            route.path,
            route.endpoint,
            methods=[route.method],
            dependencies=dependencies,
            status_code=route.status_code,
            name=route.name or route.endpoint.__name__,
        )
    return router


def page_response(items: list[dict], total: int, page: int, page_size: int, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        {"data": items, "meta": {"total": total, "page": page, "pageSize": page_size}},
        status_code=status_code,
    )
