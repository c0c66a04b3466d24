from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from . import Base


class Workplace(Base):
    __tablename__ = "workplaces"
    __table_args__ = (UniqueConstraint("org_id", "code", name="uq_workplace_org_code"),)

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    code = Column(String(32), nullable=False)
    name = Column(String, nullable=True)
    location = Column(String, nullable=True)
    color = Column(String(16), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    org = relationship("Organization")

    @property
    def title(self) -> str:
        parts = [part.strip() for part in (self.code, self.name) if part and part.strip()]
        return " - ".join(parts) or "Workplace"
