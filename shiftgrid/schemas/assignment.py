from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import Field

from .common import CamelModel, PageQuery

ShiftKind = Literal["DEFAULT", "DAY_OFF", "OFFICE", "REMOTE"]
AssignmentStatus = Literal["ACTIVE", "ARCHIVED"]


class ShiftInput(CamelModel):
    kind: ShiftKind = "DEFAULT"
    day: date = Field(..., alias="date")
    starts_at: datetime
    ends_at: datetime


class ShiftRead(CamelModel):
    id: int
    kind: str
    day: date = Field(..., alias="date")
    starts_at: datetime
    ends_at: datetime


class AssignmentCreate(CamelModel):
    user_id: int
    workplace_id: int
    starts_at: datetime
    ends_at: Optional[datetime] = None
    status: Optional[AssignmentStatus] = None
    shifts: List[ShiftInput] = Field(default_factory=list)


class AssignmentUpdate(CamelModel):
    user_id: Optional[int] = None
    workplace_id: Optional[int] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    status: Optional[AssignmentStatus] = None
    shifts: Optional[List[ShiftInput]] = None


class AssignmentRead(CamelModel):
    id: int
    user_id: int
    workplace_id: int
    starts_at: datetime
    ends_at: Optional[datetime] = None
    status: str
    shifts: List[ShiftRead] = Field(default_factory=list)


class AssignmentListQuery(PageQuery):
    user_id: Optional[int] = None
    workplace_id: Optional[int] = None
    status: Optional[AssignmentStatus] = None
    date_from: Optional[datetime] = Field(default=None, alias="from")
    date_to: Optional[datetime] = Field(default=None, alias="to")
