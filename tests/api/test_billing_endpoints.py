"""
Tests for billing endpoints
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import Depends

from api.dependencies import get_billing_service, get_db
from api.services.billing_service import BillingService
from db.repositories.user_repository import UserRepository
from main import app


@pytest.fixture
def configured(db_session):
    """Billing configured with test keys against the test database"""
    def override(db=Depends(get_db)):
        return BillingService(
            UserRepository(db),
            secret_key="sk_test_123",
            price_id="price_vip",
            webhook_secret="whsec_test",
        )

    app.dependency_overrides[get_billing_service] = override
    yield
    app.dependency_overrides.pop(get_billing_service, None)


class TestCheckoutEndpoints:
    def test_requires_authentication(self, client):
        assert client.post("/api/billing/checkout").status_code == 401

    def test_not_configured(self, client, make_user, login_as):
        login_as(make_user())
        response = client.post("/api/billing/checkout")
        assert response.status_code == 400
        assert response.json()["detail"] == "Payments are not configured"

    @patch("stripe.checkout.Session.create")
    def test_checkout_url(self, mock_session, client, configured, make_user, login_as):
        mock_session.return_value = {"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"}
        login_as(make_user(stripe_customer_id="cus_1"))
        response = client.post("/api/billing/checkout")
        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.com/cs_1"}

    def test_status_without_subscription(self, client, configured, make_user, login_as):
        login_as(make_user())
        assert client.get("/api/billing/status").json() == {
            "status": "none",
            "grants_access": False,
            "cancel_at_period_end": False,
        }

    @patch("stripe.Subscription.retrieve")
    def test_status_canceling(self, mock_retrieve, client, configured, make_user, login_as):
        mock_retrieve.return_value = {"id": "sub_1", "status": "active", "cancel_at_period_end": True}
        login_as(make_user(stripe_subscription_id="sub_1"))
        assert client.get("/api/billing/status").json() == {
            "status": "active",
            "grants_access": True,
            "cancel_at_period_end": True,
        }


class TestWebhookEndpoint:
    def test_missing_signature(self, client, configured):
        response = client.post("/api/billing/webhook", content=b"{}")
        assert response.status_code == 400

    @patch("stripe.Webhook.construct_event")
    def test_subscription_event_updates_user(self, mock_construct, client, configured, make_user, db_session, now):
        user = make_user(stripe_customer_id="cus_1", trial_expires_at=now - timedelta(days=1))
        period_end = int((now + timedelta(days=30)).timestamp())
        mock_construct.return_value = {
            "type": "customer.subscription.created",
            "data": {"object": {"id": "sub_1", "customer": "cus_1", "status": "active", "current_period_end": period_end}},
        }

        response = client.post(
            "/api/billing/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db_session.expire_all()
        db_session.refresh(user)
        assert user.subscription_active is True
        assert user.stripe_subscription_id == "sub_1"
