from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .constants import SUPER_ADMIN


@dataclass(frozen=True)
class Caller:
    """Who is making a request; passed explicitly into every engine call."""

    user_id: int
    role: str
    org_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN

    @classmethod
    def from_session(cls, payload: dict) -> "Caller":
        return cls(user_id=int(payload["id"]), role=str(payload["role"]), org_id=payload.get("org_id"))

    def to_session(self) -> dict:
        return {"id": self.user_id, "role": self.role, "org_id": self.org_id}
