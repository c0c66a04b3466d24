from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, func

from . import Base


class Constraint(Base):
    __tablename__ = "constraints"

    id = Column(Integer, primary_key=True)
    type = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
