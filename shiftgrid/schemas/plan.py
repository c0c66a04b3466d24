from __future__ import annotations

from datetime import date
from typing import Any, Literal, Optional

from pydantic import Field

from .common import CamelModel, PageQuery

PlanStatus = Literal["DRAFT", "PUBLISHED", "ARCHIVED"]


class PlanCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    starts_at: date
    ends_at: date


class PlanRead(CamelModel):
    id: int
    name: str
    starts_at: date
    ends_at: date
    status: str


class PlanListQuery(PageQuery):
    status: Optional[PlanStatus] = None
    date_from: Optional[date] = Field(default=None, alias="from")
    date_to: Optional[date] = Field(default=None, alias="to")


class ConstraintUpsert(CamelModel):
    id: Optional[int] = None
    type: str = Field(..., min_length=1, max_length=64)
    payload: Any = None
    user_id: Optional[int] = None
    org_id: Optional[int] = None


class ConstraintRead(CamelModel):
    id: int
    type: str
    payload: Any = None
    user_id: Optional[int] = None
    org_id: Optional[int] = None
