from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import Field, model_validator

from .common import CamelModel

MatrixMode = Literal["byUsers", "byOrgs"]
AssignmentStatus = Literal["ACTIVE", "ARCHIVED"]


class MatrixQuery(CamelModel):
    mode: MatrixMode = "byUsers"
    date_from: date
    date_to: date
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=200)

    @model_validator(mode="after")
    def check_window(self) -> "MatrixQuery":
        if self.date_to < self.date_from:
            raise ValueError("dateTo must not be before dateFrom")
        return self


class PlannerMatrixQuery(CamelModel):
    mode: MatrixMode = "byUsers"
    date_from: date = Field(..., alias="from")
    date_to: date = Field(..., alias="to")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)
    user_id: Optional[int] = None
    org_id: Optional[int] = None
    status: Optional[AssignmentStatus] = None

    @model_validator(mode="after")
    def check_window(self) -> "PlannerMatrixQuery":
        if self.date_to < self.date_from:
            raise ValueError("to must not be before from")
        return self
