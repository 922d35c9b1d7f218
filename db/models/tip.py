from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from db.base import Base
from datetime import datetime, timezone

CATEGORY_FREE = "free"
CATEGORY_VIP = "vip"
CATEGORIES = (CATEGORY_FREE, CATEGORY_VIP)

CONFIDENCE_LEVELS = ("low", "medium", "high")


class Tip(Base):
    __tablename__ = "tips"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False, default=CATEGORY_VIP, index=True)
    sport = Column(String, nullable=True)
    confidence_level = Column(String, nullable=False, default="medium")
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
