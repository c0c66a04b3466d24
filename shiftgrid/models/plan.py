from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from . import Base
from ..constants import PLAN_DRAFT, PLAN_STATUSES, SLOT_PLANNED, SLOT_STATUSES

plan_status_enum = Enum(*PLAN_STATUSES, name="plan_status")
slot_status_enum = Enum(*SLOT_STATUSES, name="slot_status")


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    starts_at = Column(Date, nullable=False)
    ends_at = Column(Date, nullable=False)
    status = Column(plan_status_enum, nullable=False, default=PLAN_DRAFT)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    slots = relationship("Slot", back_populates="plan", cascade="all, delete-orphan")


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (Index("ix_slots_user_window", "user_id", "date_start", "date_end"),)

    id = Column(Integer, primary_key=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    workplace_id = Column(Integer, ForeignKey("workplaces.id"), nullable=True, index=True)
    date_start = Column(Date, nullable=False)
    date_end = Column(Date, nullable=False)
    status = Column(slot_status_enum, nullable=False, default=SLOT_PLANNED)
    color_code = Column(String(16), nullable=True)
    note = Column(Text, nullable=True)
    locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    plan = relationship("Plan", back_populates="slots")
    user = relationship("User")
    org = relationship("Organization")
    workplace = relationship("Workplace")

    def covers(self, day) -> bool:
        return self.date_start <= day <= self.date_end
