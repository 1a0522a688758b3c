"""
Tests for billing endpoints (checkout, portal, cancel, reactivate, status).
"""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient

from mocks import make_subscription


PERIOD_END = 1767225600  # 2026-01-01T00:00:00Z


@pytest.fixture
def subscribed_account(db, pro_account, fake_gateway, login_as):
    pro_account.stripe_customer_id = "cus_pro"
    pro_account.stripe_subscription_id = "sub_pro"
    pro_account.subscription_status = "active"
    db.commit()
    fake_gateway.subscriptions["sub_pro"] = make_subscription(
        subscription_id="sub_pro", customer_id="cus_pro", current_period_end=PERIOD_END
    )
    login_as(pro_account)
    return pro_account


class TestCheckout:

    @pytest.mark.api
    def test_checkout_creates_customer_and_session(self, client: TestClient, db, test_account, fake_gateway):
        response = client.post("/api/billing/checkout", json={"billing_cycle": "yearly"})

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "cs_test_123"
        assert data["checkout_url"].startswith("https://checkout.stripe.test/")

        call = fake_gateway.calls_to("create_checkout_session")[0]
        assert call["price_id"] == "price_pro_yearly"
        assert call["customer_id"] == "cus_test-account-123"
        db.refresh(test_account)
        assert test_account.stripe_customer_id == "cus_test-account-123"

    @pytest.mark.api
    def test_checkout_reuses_existing_customer(self, client: TestClient, db, test_account, fake_gateway):
        test_account.stripe_customer_id = "cus_existing"
        db.commit()

        client.post("/api/billing/checkout", json={})

        assert fake_gateway.calls_to("create_customer") == []
        assert fake_gateway.calls_to("create_checkout_session")[0]["price_id"] == "price_pro_monthly"

    @pytest.mark.api
    def test_invalid_billing_cycle(self, client: TestClient):
        response = client.post("/api/billing/checkout", json={"billing_cycle": "weekly"})
        assert response.status_code == 422

    @pytest.mark.api
    def test_already_subscribed(self, client: TestClient, subscribed_account):
        response = client.post("/api/billing/checkout", json={"billing_cycle": "monthly"})
        assert response.status_code == 400

    @pytest.mark.api
    def test_missing_secret_key_returns_500_with_message(self, client: TestClient, monkeypatch):
        from neuroleaf.main import app
        from neuroleaf.services.stripe_service import get_stripe_gateway

        app.dependency_overrides.pop(get_stripe_gateway)
        monkeypatch.delenv("STRIPE_SECRET_KEY")

        response = client.post("/api/billing/checkout", json={})
        assert response.status_code == 500
        assert response.json() == {"detail": "STRIPE_SECRET_KEY environment variable is not set"}


class TestPortal:

    @pytest.mark.api
    def test_free_account_without_customer(self, client: TestClient):
        response = client.post("/api/billing/portal")
        assert response.status_code == 400

    @pytest.mark.api
    def test_portal_for_subscriber(self, client: TestClient, subscribed_account):
        response = client.post("/api/billing/portal")
        assert response.status_code == 200
        assert response.json()["portal_url"] == "https://billing.stripe.test/portal"


class TestCancelAndReactivate:

    @pytest.mark.api
    def test_cancel_free_account(self, client: TestClient):
        response = client.post("/api/billing/cancel")
        assert response.status_code == 400

    @pytest.mark.api
    def test_cancel_keeps_tier_until_period_end(self, client: TestClient, db, subscribed_account, fake_gateway):
        response = client.post("/api/billing/cancel")

        assert response.status_code == 200
        assert response.json() == {"success": True, "expires_at": "2026-01-01T00:00:00"}
        assert fake_gateway.calls_to("set_cancel_at_period_end") == [("sub_pro", True)]

        db.refresh(subscribed_account)
        assert subscribed_account.subscription_tier == "pro"
        assert subscribed_account.subscription_status == "canceled"
        assert subscribed_account.subscription_expires_at == datetime(2026, 1, 1)

    @pytest.mark.api
    def test_reactivate_after_cancel(self, client: TestClient, db, subscribed_account):
        client.post("/api/billing/cancel")

        response = client.post("/api/billing/reactivate")

        assert response.status_code == 200
        assert response.json()["success"] is True
        db.refresh(subscribed_account)
        assert subscribed_account.subscription_status == "active"

    @pytest.mark.api
    def test_reactivate_active_subscription(self, client: TestClient, subscribed_account):
        response = client.post("/api/billing/reactivate")
        assert response.status_code == 200
        assert response.json()["type"] == "already_active"


class TestBillingStatus:

    @pytest.mark.api
    def test_status_for_free_account(self, client: TestClient):
        response = client.get("/api/billing/status")
        assert response.status_code == 200
        assert response.json() == {"tier": "free", "status": None, "expires_at": None, "subscription_id": None}

    @pytest.mark.api
    def test_status_for_subscriber(self, client: TestClient, subscribed_account):
        data = client.get("/api/billing/status").json()
        assert data["tier"] == "pro"
        assert data["subscription_id"] == "sub_pro"
