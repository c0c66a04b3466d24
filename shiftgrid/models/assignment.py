from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, func
from sqlalchemy.orm import relationship

from . import Base
from ..constants import ASSIGNMENT_ACTIVE, ASSIGNMENT_STATUSES, SHIFT_KINDS

assignment_status_enum = Enum(*ASSIGNMENT_STATUSES, name="assignment_status")
shift_kind_enum = Enum(*SHIFT_KINDS, name="shift_kind")


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    workplace_id = Column(Integer, ForeignKey("workplaces.id"), nullable=False, index=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=True)
    status = Column(assignment_status_enum, nullable=False, default=ASSIGNMENT_ACTIVE)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    user = relationship("User")
    workplace = relationship("Workplace")
    shifts = relationship(
        "Shift",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="Shift.starts_at",
    )


class Shift(Base):
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(shift_kind_enum, nullable=False, default="DEFAULT")
    date = Column(Date, nullable=False)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    assignment = relationship("Assignment", back_populates="shifts")
