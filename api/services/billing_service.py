"""
Stripe billing for the VIP subscription.

Checkout and the customer portal are hosted by Stripe; subscription state
flows back through webhooks and is copied onto the user row
(subscription_active, subscription_expires_at, stripe_subscription_id).
"""
from db.models.user import User
from db.repositories.user_repository import UserRepository
from api.services.countdown import utcnow
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import logging
import os

import stripe

logger = logging.getLogger(__name__)


class BillingServiceException(Exception):
    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail

    def __str__(self):
        return str(self.detail)


class PaymentStatus(str, Enum):
    NONE = "none"
    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"

    @classmethod
    def from_stripe(cls, status: Optional[str]) -> "PaymentStatus":
        if status == "incomplete_expired":
            return cls.CANCELED
        try:
            return cls(status)
        except ValueError:
            return cls.NONE

    @property
    def grants_access(self) -> bool:
        return self in (PaymentStatus.ACTIVE, PaymentStatus.TRIALING)


@dataclass
class SubscriptionInfo:
    status: PaymentStatus
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None

    @property
    def grants_access(self) -> bool:
        return self.status.grants_access


def _field(obj, key: str, default=None):
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _period_end(subscription) -> Optional[datetime]:
    """current_period_end moved onto subscription items in newer API versions"""
    end = _field(subscription, "current_period_end")
    if end is None:
        items = _field(_field(subscription, "items", {}), "data", [])
        if items:
            end = _field(items[0], "current_period_end")
    if end is None:
        return None
    return datetime.fromtimestamp(int(end), tz=timezone.utc)


class BillingService:
    def __init__(
        self,
        user_repo: UserRepository,
        secret_key: Optional[str] = None,
        price_id: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        public_url: Optional[str] = None,
    ):
        self.user_repo = user_repo
        self.secret_key = secret_key or os.getenv("STRIPE_SECRET_KEY")
        self.price_id = price_id or os.getenv("STRIPE_PRICE_ID")
        self.webhook_secret = webhook_secret or os.getenv("STRIPE_WEBHOOK_SECRET")
        self.public_url = (public_url or os.getenv("PUBLIC_URL", "http://localhost:8000")).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key and self.price_id)

    def _require_configured(self):
        if not self.is_configured:
            logger.error("Stripe is not configured (STRIPE_SECRET_KEY / STRIPE_PRICE_ID)")
            raise BillingServiceException("Payments are not configured")

    def _ensure_customer(self, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer = stripe.Customer.create(
            api_key=self.secret_key,
            email=user.email,
            name=user.full_name or None,
            metadata={"user_id": str(user.id)},
        )
        self.user_repo.update_user(user.id, {"stripe_customer_id": customer["id"]})
        logger.info(f"Created Stripe customer {customer['id']} for user {user.id}")
        return customer["id"]

    def create_checkout_session(self, user: User) -> str:
        """Start a subscription checkout; returns the Stripe-hosted URL"""
        self._require_configured()
        try:
            customer_id = self._ensure_customer(user)
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                customer=customer_id,
                client_reference_id=str(user.id),
                mode="subscription",
                line_items=[{"price": self.price_id, "quantity": 1}],
                success_url=f"{self.public_url}/success/ui?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.public_url}/dashboard/ui",
                metadata={"user_id": str(user.id)},
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session for user {user.id}: {e}")
            raise BillingServiceException("Could not start checkout. Please try again later.")
        logger.info(f"Created checkout session {session['id']} for user {user.id}")
        return session["url"]

    def create_portal_session(self, user: User) -> str:
        self._require_configured()
        if not user.stripe_customer_id:
            raise BillingServiceException("No billing account found for this user")
        try:
            portal = stripe.billing_portal.Session.create(
                api_key=self.secret_key,
                customer=user.stripe_customer_id,
                return_url=f"{self.public_url}/profile/ui",
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create portal session for user {user.id}: {e}")
            raise BillingServiceException("Could not open the billing portal. Please try again later.")
        return portal["url"]

    def get_current_subscription(self, user: User) -> SubscriptionInfo:
        self._require_configured()
        if not user.stripe_subscription_id:
            return SubscriptionInfo(PaymentStatus.NONE)
        try:
            subscription = stripe.Subscription.retrieve(
                user.stripe_subscription_id, api_key=self.secret_key
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to fetch subscription for user {user.id}: {e}")
            raise BillingServiceException("Could not load subscription status")
        return SubscriptionInfo(
            status=PaymentStatus.from_stripe(_field(subscription, "status")),
            cancel_at_period_end=bool(_field(subscription, "cancel_at_period_end", False)),
            current_period_end=_period_end(subscription),
        )

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify a webhook payload against STRIPE_WEBHOOK_SECRET"""
        if not self.webhook_secret:
            raise BillingServiceException("Webhook secret is not configured")
        if not signature:
            raise BillingServiceException("Missing Stripe signature")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected webhook: {e}")
            raise BillingServiceException("Invalid webhook signature")

    def handle_event(self, event) -> Optional[User]:
        """Apply a webhook event; returns the updated user, if any"""
        event_type = _field(event, "type")
        obj = _field(_field(event, "data", {}), "object", {})
        logger.info(f"Processing Stripe event {event_type}")

        if event_type == "checkout.session.completed":
            user = self._user_for_checkout(obj)
            if user is None:
                return None
            subscription_id = _field(obj, "subscription")
            if _field(obj, "mode") != "subscription" or not subscription_id:
                return user
            try:
                subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.secret_key)
            except stripe.StripeError as e:
                logger.error(f"Failed to fetch subscription {subscription_id}: {e}")
                raise BillingServiceException("Could not load subscription")
            return self.sync_subscription(subscription)

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            return self.sync_subscription(obj)

        if event_type == "customer.subscription.deleted":
            return self.sync_subscription(obj, deleted=True)

        if event_type == "invoice.payment_failed":
            user = self.user_repo.get_user_by_stripe_customer(_field(obj, "customer"))
            if user:
                logger.warning(f"Payment failed for user {user.id}")
            return user

        logger.info(f"Unhandled Stripe event type: {event_type}")
        return None

    def _user_for_checkout(self, session) -> Optional[User]:
        customer_id = _field(session, "customer")
        user = None
        reference = _field(session, "client_reference_id")
        if reference and str(reference).isdigit():
            user = self.user_repo.get_user_by_id(int(reference))
        if user is None and customer_id:
            user = self.user_repo.get_user_by_stripe_customer(customer_id)
        if user is None:
            logger.error(f"No user found for checkout session {_field(session, 'id')}")
            return None
        if customer_id and user.stripe_customer_id != customer_id:
            user = self.user_repo.update_user(user.id, {"stripe_customer_id": customer_id})
        return user

    def sync_subscription(self, subscription, deleted: bool = False) -> Optional[User]:
        customer_id = _field(subscription, "customer")
        user = self.user_repo.get_user_by_stripe_customer(customer_id)
        if user is None:
            logger.error(f"User not found for Stripe customer {customer_id}")
            return None

        status = PaymentStatus.CANCELED if deleted else PaymentStatus.from_stripe(_field(subscription, "status"))
        period_end = _period_end(subscription)
        update = {
            "stripe_subscription_id": _field(subscription, "id"),
            "subscription_active": status.grants_access,
            "cancel_at_period_end": not deleted and bool(_field(subscription, "cancel_at_period_end", False)),
        }
        if status.grants_access:
            update["subscription_expires_at"] = period_end
            update["is_trial_used"] = True
            if period_end and period_end > utcnow():
                update["reminder_stage"] = None
        elif period_end is not None:
            update["subscription_expires_at"] = period_end
        user = self.user_repo.update_user(user.id, update)
        logger.info(f"Synced subscription for user {user.id}: {status.value}")
        return user
