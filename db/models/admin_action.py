from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from db.base import Base
from datetime import datetime, timezone


class AdminAction(Base):
    __tablename__ = "admin_actions"
    id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action_type = Column(String, nullable=False)
    target_user_id = Column(Integer, nullable=True)
    target_tip_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)  # JSON encoded
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
