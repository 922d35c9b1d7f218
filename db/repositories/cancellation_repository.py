from sqlalchemy.orm import Session
from db.models.cancellation import CancellationRequest, RetentionOffer, OFFER_ACTIVE, OFFER_ACCEPTED
from datetime import datetime


class CancellationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_with_offer(self, request: CancellationRequest, offer: RetentionOffer) -> RetentionOffer:
        """Persist a cancellation request and its retention offer together"""
        self.db.add(request)
        self.db.flush()
        offer.request_id = request.id
        self.db.add(offer)
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def get_request(self, request_id: int) -> CancellationRequest | None:
        return self.db.query(CancellationRequest).filter(CancellationRequest.id == request_id).first()

    def get_offer(self, offer_id: int, user_id: int) -> RetentionOffer | None:
        return (
            self.db.query(RetentionOffer)
            .filter(RetentionOffer.id == offer_id, RetentionOffer.user_id == user_id)
            .first()
        )

    def get_open_offer(self, user_id: int, now: datetime) -> RetentionOffer | None:
        return (
            self.db.query(RetentionOffer)
            .filter(
                RetentionOffer.user_id == user_id,
                RetentionOffer.status == OFFER_ACTIVE,
                RetentionOffer.expires_at > now,
            )
            .order_by(RetentionOffer.created_at.desc(), RetentionOffer.id.desc())
            .first()
        )

    def list_requests(self, user_id: int) -> list[CancellationRequest]:
        return (
            self.db.query(CancellationRequest)
            .filter(CancellationRequest.user_id == user_id)
            .order_by(CancellationRequest.created_at.desc(), CancellationRequest.id.desc())
            .all()
        )

    def resolve(self, offer: RetentionOffer, offer_status: str, request_status: str, now: datetime) -> RetentionOffer:
        """Close an offer and its request in one commit"""
        offer.status = offer_status
        if offer_status == OFFER_ACCEPTED:
            offer.accepted_at = now
        else:
            offer.rejected_at = now
        request = self.get_request(offer.request_id)
        if request is not None:
            request.status = request_status
        self.db.commit()
        self.db.refresh(offer)
        return offer
