from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import Field, model_validator

from .common import CamelModel

SlotStatus = Literal["PLANNED", "CONFIRMED", "CANCELLED", "REPLACED"]


class ConflictPolicy(str, Enum):
    OVERWRITE = "OVERWRITE"
    REJECT = "REJECT"


class SlotRead(CamelModel):
    id: int
    plan_id: int
    user_id: int
    org_id: int
    workplace_id: Optional[int] = None
    date_start: date
    date_end: date
    status: str
    color_code: Optional[str] = None
    note: Optional[str] = None
    locked: bool = False


class SlotInput(CamelModel):
    user_id: int
    org_id: int
    workplace_id: Optional[int] = None
    date_start: date
    date_end: date
    status: Optional[SlotStatus] = None
    color_code: Optional[str] = Field(default=None, max_length=16)
    note: Optional[str] = Field(default=None, max_length=500)
    locked: Optional[bool] = None


class BulkAssignRequest(CamelModel):
    slots: List[SlotInput] = Field(..., min_length=1, max_length=500)
    conflict_policy: Optional[ConflictPolicy] = None


class BulkMoveRequest(CamelModel):
    slot_ids: List[int] = Field(..., min_length=1, max_length=500)
    new_date_start: Optional[date] = None
    new_date_end: Optional[date] = None
    new_org_id: Optional[int] = None
    new_user_id: Optional[int] = None
    conflict_policy: Optional[ConflictPolicy] = None

    @model_validator(mode="after")
    def require_change(self) -> "BulkMoveRequest":
        if (
            self.new_date_start is None
            and self.new_date_end is None
            and self.new_org_id is None
            and self.new_user_id is None
        ):
            raise ValueError("At least one of newDateStart, newDateEnd, newOrgId or newUserId is required")
        return self


class AutoAssignRequest(CamelModel):
    org_id: int
    team_size: int = Field(..., ge=1, le=100)
    date_start: date
    date_end: date
    respect_constraints: bool = True


class UpdateSlotRequest(CamelModel):
    user_id: Optional[int] = None
    org_id: Optional[int] = None
    workplace_id: Optional[int] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    status: Optional[SlotStatus] = None
    color_code: Optional[str] = Field(default=None, max_length=16)
    note: Optional[str] = Field(default=None, max_length=500)
    locked: Optional[bool] = None


class RequestSwapRequest(CamelModel):
    comment: str = Field(..., min_length=1, max_length=500)


class SkippedItem(CamelModel):
    input: Any
    reason: str
    slot_ids: List[int] = Field(default_factory=list)


class UncoveredDay(CamelModel):
    day: date = Field(..., alias="date")
    missing: int


class BulkOutcome(CamelModel):
    created: List[SlotRead] = Field(default_factory=list)
    updated: List[SlotRead] = Field(default_factory=list)
    skipped: List[SkippedItem] = Field(default_factory=list)
    replaced: List[SlotRead] = Field(default_factory=list)
    uncovered: List[UncoveredDay] = Field(default_factory=list)
