"""
Cancellation flow with a one-time retention offer.

A member who starts cancelling records a reason and gets a discounted
offer valid for a week. Accepting it keeps the subscription; rejecting it
marks the request cancelled and hands the member to the Stripe portal.
"""
from db.models.cancellation import (
    CANCELLATION_REASONS,
    CancellationRequest,
    RetentionOffer,
    REQUEST_PENDING,
    REQUEST_RETAINED,
    REQUEST_CANCELLED,
    OFFER_ACTIVE,
    OFFER_ACCEPTED,
    OFFER_REJECTED,
)
from db.models.user import User
from db.repositories.cancellation_repository import CancellationRepository
from api.services.countdown import utcnow, ensure_utc
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timedelta
from typing import Optional
import logging

logger = logging.getLogger(__name__)

MONTHLY_PRICE_CENTS = 9900
DISCOUNT_PERCENTAGE = 33
DISCOUNTED_PRICE_CENTS = 6633
OFFER_DURATION_MONTHS = 2
OFFER_VALIDITY = timedelta(days=7)
MAX_FEEDBACK_LENGTH = 2000


class RetentionServiceException(Exception):
    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail

    def __str__(self):
        return str(self.detail)


def format_price(cents: int) -> str:
    return f"${cents / 100:.2f}"


class RetentionService:
    def __init__(self, cancellation_repo: CancellationRepository):
        self.cancellation_repo = cancellation_repo

    def open_offer(self, user: User, now: Optional[datetime] = None) -> Optional[RetentionOffer]:
        return self.cancellation_repo.get_open_offer(user.id, now or utcnow())

    def start_cancellation(
        self,
        user: User,
        reason: str,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RetentionOffer:
        """Record why the member is leaving and issue the retention offer"""
        if not user.subscription_active:
            raise RetentionServiceException("You have no active subscription to cancel")
        if reason not in CANCELLATION_REASONS:
            raise RetentionServiceException("Please select a reason for cancelling")
        feedback = (feedback or "").strip()[:MAX_FEEDBACK_LENGTH] or None
        now = now or utcnow()

        existing = self.cancellation_repo.get_open_offer(user.id, now)
        if existing is not None:
            return existing

        request = CancellationRequest(
            user_id=user.id,
            reason=reason,
            feedback=feedback,
            status=REQUEST_PENDING,
            created_at=now,
        )
        offer = RetentionOffer(
            user_id=user.id,
            original_price=MONTHLY_PRICE_CENTS,
            discounted_price=DISCOUNTED_PRICE_CENTS,
            discount_percentage=DISCOUNT_PERCENTAGE,
            duration_months=OFFER_DURATION_MONTHS,
            status=OFFER_ACTIVE,
            expires_at=now + OFFER_VALIDITY,
            created_at=now,
        )
        try:
            offer = self.cancellation_repo.create_with_offer(request, offer)
        except SQLAlchemyError as e:
            logger.error(f"Failed to record cancellation for user {user.id}: {e}")
            self.cancellation_repo.db.rollback()
            raise RetentionServiceException("Could not record your request. Please try again.")
        logger.info(f"User {user.id} started cancelling ({reason}); offer {offer.id} issued")
        return offer

    def _require_open_offer(self, user: User, offer_id: int, now: datetime) -> RetentionOffer:
        offer = self.cancellation_repo.get_offer(offer_id, user.id)
        if offer is None:
            raise RetentionServiceException("Offer not found")
        if offer.status != OFFER_ACTIVE:
            raise RetentionServiceException("This offer has already been answered")
        if ensure_utc(offer.expires_at) <= now:
            raise RetentionServiceException("This offer has expired")
        return offer

    def _resolve(self, user: User, offer_id: int, offer_status: str, request_status: str, now):
        now = now or utcnow()
        offer = self._require_open_offer(user, offer_id, now)
        try:
            offer = self.cancellation_repo.resolve(offer, offer_status, request_status, now)
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve offer {offer_id} for user {user.id}: {e}")
            self.cancellation_repo.db.rollback()
            raise RetentionServiceException("Could not save your answer. Please try again.")
        logger.info(f"User {user.id} {offer_status} retention offer {offer.id}")
        return offer

    def accept_offer(self, user: User, offer_id: int, now: Optional[datetime] = None) -> RetentionOffer:
        return self._resolve(user, offer_id, OFFER_ACCEPTED, REQUEST_RETAINED, now)

    def reject_offer(self, user: User, offer_id: int, now: Optional[datetime] = None) -> RetentionOffer:
        return self._resolve(user, offer_id, OFFER_REJECTED, REQUEST_CANCELLED, now)
