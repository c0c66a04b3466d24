from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, func

from . import Base
from ..constants import NOTIFICATION_TYPES

notification_type_enum = Enum(*NOTIFICATION_TYPES, name="notification_type")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(notification_type_enum, nullable=False)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
