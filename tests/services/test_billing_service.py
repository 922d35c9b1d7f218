"""
Tests for Stripe billing, with the Stripe API patched out
"""
import pytest
import stripe
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from api.services.billing_service import (
    BillingService,
    BillingServiceException,
    PaymentStatus,
)
from api.services.access import has_access
from api.services.countdown import ensure_utc
from db.repositories.user_repository import UserRepository


@pytest.fixture
def service(db_session):
    return BillingService(
        UserRepository(db_session),
        secret_key="sk_test_123",
        price_id="price_vip",
        webhook_secret="whsec_test",
        public_url="https://hub.example.com/",
    )


def subscription(customer="cus_1", status="active", period_end=None, **extra):
    data = {"id": "sub_1", "customer": customer, "status": status}
    if period_end is not None:
        data["current_period_end"] = int(period_end.timestamp())
    data.update(extra)
    return data


class TestPaymentStatus:
    @pytest.mark.parametrize(
        "raw,expected,grants",
        [
            ("active", PaymentStatus.ACTIVE, True),
            ("trialing", PaymentStatus.TRIALING, True),
            ("past_due", PaymentStatus.PAST_DUE, False),
            ("incomplete_expired", PaymentStatus.CANCELED, False),
            ("paused", PaymentStatus.NONE, False),
            (None, PaymentStatus.NONE, False),
        ],
    )
    def test_from_stripe(self, raw, expected, grants):
        status = PaymentStatus.from_stripe(raw)
        assert status is expected
        assert status.grants_access is grants


class TestCheckout:
    def test_not_configured(self, db_session, make_user):
        service = BillingService(UserRepository(db_session))
        assert service.is_configured is False
        with pytest.raises(BillingServiceException) as exc_info:
            service.create_checkout_session(make_user())
        assert "not configured" in str(exc_info.value)

    @patch("stripe.checkout.Session.create")
    @patch("stripe.Customer.create")
    def test_creates_customer_and_session(self, mock_customer, mock_session, service, make_user, db_session):
        mock_customer.return_value = {"id": "cus_new"}
        mock_session.return_value = {"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"}
        user = make_user()

        url = service.create_checkout_session(user)

        assert url == "https://checkout.stripe.com/cs_1"
        kwargs = mock_session.call_args.kwargs
        assert kwargs["customer"] == "cus_new"
        assert kwargs["client_reference_id"] == str(user.id)
        assert kwargs["line_items"] == [{"price": "price_vip", "quantity": 1}]
        assert kwargs["success_url"] == "https://hub.example.com/success/ui?session_id={CHECKOUT_SESSION_ID}"
        assert kwargs["api_key"] == "sk_test_123"
        db_session.refresh(user)
        assert user.stripe_customer_id == "cus_new"

    @patch("stripe.checkout.Session.create")
    @patch("stripe.Customer.create")
    def test_existing_customer_reused(self, mock_customer, mock_session, service, make_user):
        mock_session.return_value = {"id": "cs_2", "url": "https://checkout.stripe.com/cs_2"}
        service.create_checkout_session(make_user(stripe_customer_id="cus_old"))
        mock_customer.assert_not_called()
        assert mock_session.call_args.kwargs["customer"] == "cus_old"

    @patch("stripe.checkout.Session.create", side_effect=stripe.StripeError("card network down"))
    def test_stripe_error(self, mock_session, service, make_user):
        with pytest.raises(BillingServiceException) as exc_info:
            service.create_checkout_session(make_user(stripe_customer_id="cus_old"))
        assert "Could not start checkout" in str(exc_info.value)


class TestPortalAndStatus:
    def test_portal_requires_customer(self, service, make_user):
        with pytest.raises(BillingServiceException) as exc_info:
            service.create_portal_session(make_user())
        assert "No billing account" in str(exc_info.value)

    @patch("stripe.billing_portal.Session.create")
    def test_portal(self, mock_portal, service, make_user):
        mock_portal.return_value = {"url": "https://billing.stripe.com/p/1"}
        assert service.create_portal_session(make_user(stripe_customer_id="cus_1")) == "https://billing.stripe.com/p/1"
        assert mock_portal.call_args.kwargs["return_url"] == "https://hub.example.com/profile/ui"

    def test_status_without_subscription(self, service, make_user):
        info = service.get_current_subscription(make_user())
        assert info.status is PaymentStatus.NONE
        assert info.cancel_at_period_end is False

    @patch("stripe.Subscription.retrieve")
    def test_status_from_stripe(self, mock_retrieve, service, make_user):
        mock_retrieve.return_value = subscription(status="past_due")
        user = make_user(stripe_subscription_id="sub_1")
        info = service.get_current_subscription(user)
        assert info.status is PaymentStatus.PAST_DUE
        assert info.grants_access is False

    @patch("stripe.Subscription.retrieve")
    def test_status_canceling_at_period_end(self, mock_retrieve, service, make_user, now):
        period_end = (now + timedelta(days=10)).replace(microsecond=0)
        mock_retrieve.return_value = subscription(period_end=period_end, cancel_at_period_end=True)
        info = service.get_current_subscription(make_user(stripe_subscription_id="sub_1"))
        assert info.status is PaymentStatus.ACTIVE
        assert info.cancel_at_period_end is True
        assert info.current_period_end == period_end


class TestWebhooks:
    def test_construct_event_requires_signature(self, service):
        with pytest.raises(BillingServiceException):
            service.construct_event(b"{}", None)

    @patch("stripe.Webhook.construct_event")
    def test_construct_event_rejects_bad_signature(self, mock_construct, service):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "sig")
        with pytest.raises(BillingServiceException) as exc_info:
            service.construct_event(b"{}", "t=1,v1=abc")
        assert "Invalid webhook signature" in str(exc_info.value)

    def test_subscription_updated_grants_access(self, service, make_user, db_session, now):
        period_end = (now + timedelta(days=30)).replace(microsecond=0)
        user = make_user(stripe_customer_id="cus_1", trial_expires_at=now - timedelta(days=1), reminder_stage="expired")

        updated = service.handle_event(
            {"type": "customer.subscription.updated", "data": {"object": subscription(period_end=period_end)}}
        )

        assert updated.id == user.id
        assert updated.subscription_active is True
        assert ensure_utc(updated.subscription_expires_at) == period_end
        assert updated.is_trial_used is True
        assert updated.reminder_stage is None
        assert updated.stripe_subscription_id == "sub_1"
        assert has_access(updated, now=now) is True

    def test_subscription_set_to_cancel_at_period_end(self, service, make_user, now):
        period_end = (now + timedelta(days=12)).replace(microsecond=0)
        make_user(stripe_customer_id="cus_1")

        updated = service.sync_subscription(subscription(period_end=period_end, cancel_at_period_end=True))
        assert updated.subscription_active is True
        assert updated.cancel_at_period_end is True

        deleted = service.sync_subscription(subscription(status="canceled", cancel_at_period_end=True), deleted=True)
        assert deleted.subscription_active is False
        assert deleted.cancel_at_period_end is False

    def test_period_end_from_subscription_items(self, service, make_user, now):
        period_end = (now + timedelta(days=30)).replace(microsecond=0)
        make_user(stripe_customer_id="cus_1")
        obj = subscription(items={"data": [{"current_period_end": int(period_end.timestamp())}]})
        updated = service.sync_subscription(obj)
        assert ensure_utc(updated.subscription_expires_at) == period_end

    def test_subscription_deleted_revokes(self, service, make_user, now):
        make_user(
            stripe_customer_id="cus_1",
            trial_expires_at=None,
            subscription_active=True,
            subscription_expires_at=now + timedelta(days=10),
        )
        updated = service.handle_event(
            {"type": "customer.subscription.deleted", "data": {"object": subscription(status="active")}}
        )
        assert updated.subscription_active is False
        assert has_access(updated, now=now) is False

    def test_unknown_customer_is_ignored(self, service):
        assert service.handle_event(
            {"type": "customer.subscription.updated", "data": {"object": subscription(customer="cus_x")}}
        ) is None

    @patch("stripe.Subscription.retrieve")
    def test_checkout_completed_links_customer(self, mock_retrieve, service, make_user, now):
        period_end = datetime(2030, 1, 1, tzinfo=timezone.utc)
        user = make_user()
        mock_retrieve.return_value = subscription(customer="cus_9", period_end=period_end)

        updated = service.handle_event(
            {
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "id": "cs_1",
                        "mode": "subscription",
                        "customer": "cus_9",
                        "subscription": "sub_1",
                        "client_reference_id": str(user.id),
                    }
                },
            }
        )

        assert updated.stripe_customer_id == "cus_9"
        assert updated.subscription_active is True
        assert ensure_utc(updated.subscription_expires_at) == period_end
        mock_retrieve.assert_called_once_with("sub_1", api_key="sk_test_123")

    def test_unhandled_event(self, service):
        assert service.handle_event({"type": "charge.refunded", "data": {"object": {}}}) is None
