from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from db.base import Base
from datetime import datetime, timezone

CANCELLATION_REASONS = [
    "Too expensive",
    "Not using it enough",
    "Found a better alternative",
    "Technical issues",
    "Missing features",
    "Other",
]

# Cancellation request lifecycle
REQUEST_PENDING = "pending"
REQUEST_RETAINED = "retained"
REQUEST_CANCELLED = "cancelled"

# Retention offer lifecycle
OFFER_ACTIVE = "active"
OFFER_ACCEPTED = "accepted"
OFFER_REJECTED = "rejected"


class CancellationRequest(Base):
    __tablename__ = "cancellation_requests"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(String, nullable=False)
    feedback = Column(Text, nullable=True)
    status = Column(String, default=REQUEST_PENDING, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class RetentionOffer(Base):
    __tablename__ = "retention_offers"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("cancellation_requests.id"), nullable=False)
    # Prices in cents
    original_price = Column(Integer, nullable=False)
    discounted_price = Column(Integer, nullable=False)
    discount_percentage = Column(Integer, nullable=False)
    duration_months = Column(Integer, nullable=False)
    status = Column(String, default=OFFER_ACTIVE, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
