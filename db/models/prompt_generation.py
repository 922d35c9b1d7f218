from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from db.base import Base
from datetime import datetime, timezone


class PromptGeneration(Base):
    __tablename__ = "prompt_generations"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    original_text = Column(Text, nullable=True)
    image_name = Column(String, nullable=True)
    generated_prompt = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
