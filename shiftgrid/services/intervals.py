from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from ..errors import ValidationError

Bound = Union[date, datetime]


def validate_interval(
    start: Optional[Bound],
    end: Optional[Bound],
    *,
    field: str = "dateEnd",
    strict: bool = False,
) -> None:
    """Raise ``INVALID_RANGE`` when ``end`` precedes ``start``.

    Slot, plan and assignment ranges may start and end on the same instant.
    Shifts pass ``strict=True`` and must end after they start. An open bound
    is always accepted.
    """
    if start is None or end is None:
        return
    if end < start or (strict and end == start):
        relation = "after" if strict else "on or after"
        raise ValidationError(
            f"{field} must be {relation} {start.isoformat()}, got {end.isoformat()}",
            code="INVALID_RANGE",
            field=field,
        )


def is_valid_interval(start: Optional[Bound], end: Optional[Bound], *, strict: bool = False) -> bool:
    try:
        validate_interval(start, end, strict=strict)
    except ValidationError:
        return False
    return True


def overlaps(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b
