"""
Integration tests for billing API.

Tests:
- Plan listing and subscription status
- Checkout and portal sessions with a stubbed Stripe adapter
- Webhook signature checks, idempotent redelivery and state changes
"""

import json
import time
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.stripe_adapter import (
    StripeAdapter,
    StripeAPIError,
    StripeCheckoutSession,
    StripeCustomer,
    sign_webhook_payload,
)
from api.routes.billing import get_stripe_adapter
from infrastructure.config.settings import settings
from infrastructure.database.models import PaymentRecord, ProcessedWebhookEvent, User
from main import app

pytestmark = pytest.mark.asyncio


def invoice_event(event_id: str, customer: str, price_id: str, invoice_id: str = "in_1") -> dict:
    return {
        "id": event_id,
        "type": "invoice.payment_succeeded",
        "data": {
            "object": {
                "id": invoice_id,
                "customer": customer,
                "subscription": "sub_1",
                "amount_paid": 1999,
                "currency": "usd",
                "created": 1717243200,
                "lines": {"data": [{"price": {"id": price_id}}]},
            }
        },
    }


async def deliver(client: AsyncClient, event: dict, secret: str | None = None, signature: str | None = None):
    body = json.dumps(event).encode()
    if signature is None:
        signature = sign_webhook_payload(body, secret or settings.stripe_webhook_secret)
    return await client.post(
        "/api/v1/billing/webhook",
        content=body,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


async def count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


@pytest.fixture
async def customer(db_session: AsyncSession, test_user: User) -> User:
    """Reader who already has a Stripe customer."""
    test_user.billing_customer_ref = "cus_1"
    await db_session.commit()
    return test_user


@pytest.fixture
def stub_adapter():
    adapter = StripeAdapter(api_key="sk_test_stub", webhook_secret=settings.stripe_webhook_secret)
    app.dependency_overrides[get_stripe_adapter] = lambda: adapter
    yield adapter
    app.dependency_overrides.pop(get_stripe_adapter, None)


class TestPlans:
    async def test_plans_are_public(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/billing/plans")

        assert response.status_code == 200
        plans = {p["id"]: p for p in response.json()["plans"]}
        assert set(plans) == {"free", "standard", "premium", "pro"}
        assert plans["pro"]["price_monthly"] == 19.99
        assert all(p["available"] for p in plans.values())

    async def test_subscription_status(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/billing/subscription", headers=auth_headers)

        assert response.json() == {
            "tier": "free",
            "billing_status": None,
            "customer_id": None,
            "subscription_id": None,
            "can_manage": False,
        }


class TestCheckout:
    async def test_creates_customer_once(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        auth_headers: dict,
        stub_adapter: StripeAdapter,
    ):
        session = StripeCheckoutSession(id="cs_1", url="https://checkout.stripe.com/cs_1", customer="cus_new")
        with patch.object(
            stub_adapter, "create_customer", AsyncMock(return_value=StripeCustomer(id="cus_new", email=None))
        ) as create_customer, patch.object(
            stub_adapter, "create_checkout_session", AsyncMock(return_value=session)
        ) as create_session:
            response = await async_client.post(
                "/api/v1/billing/checkout", headers=auth_headers, json={"plan": "premium"}
            )

        assert response.status_code == 200
        assert response.json() == {"session_id": "cs_1", "url": "https://checkout.stripe.com/cs_1"}
        create_customer.assert_awaited_once_with(test_user.email, test_user.id)
        kwargs = create_session.call_args.kwargs
        assert kwargs["price_id"] == settings.stripe_price_ids["premium"]
        assert kwargs["customer_id"] == "cus_new"

        await db_session.refresh(test_user)
        assert test_user.billing_customer_ref == "cus_new"
        assert test_user.tier == "free"

    async def test_unknown_plan(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/billing/checkout", headers=auth_headers, json={"plan": "platinum"}
        )
        assert response.status_code == 422

    async def test_provider_error_is_502(
        self, async_client: AsyncClient, customer: User, auth_headers: dict, stub_adapter: StripeAdapter
    ):
        with patch.object(
            stub_adapter, "create_checkout_session", AsyncMock(side_effect=StripeAPIError("down", 500))
        ):
            response = await async_client.post(
                "/api/v1/billing/checkout", headers=auth_headers, json={"plan": "standard"}
            )

        assert response.status_code == 502


class TestPortal:
    async def test_requires_customer(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post("/api/v1/billing/portal", headers=auth_headers)
        assert response.status_code == 400

    async def test_portal_url(
        self, async_client: AsyncClient, customer: User, auth_headers: dict, stub_adapter: StripeAdapter
    ):
        with patch.object(
            stub_adapter, "create_portal_session", AsyncMock(return_value="https://billing.stripe.com/p/1")
        ) as portal:
            response = await async_client.post("/api/v1/billing/portal", headers=auth_headers)

        assert response.json() == {"url": "https://billing.stripe.com/p/1"}
        assert portal.call_args.args[0] == "cus_1"


class TestWebhook:
    async def test_invoice_upgrades_and_records_payment(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        customer: User,
        auth_headers: dict,
    ):
        event = invoice_event("evt_1", "cus_1", settings.stripe_price_ids["pro"])

        response = await deliver(async_client, event)

        assert response.status_code == 200
        assert response.json() == {"received": True, "duplicate": False}

        await db_session.refresh(customer)
        assert customer.tier == "pro"
        assert customer.billing_status == "active"

        payments = await async_client.get("/api/v1/billing/payments", headers=auth_headers)
        assert [(p["plan"], p["amount"]) for p in payments.json()] == [("pro", "19.99")]

    async def test_redelivery_is_a_duplicate(
        self, async_client: AsyncClient, db_session: AsyncSession, customer: User
    ):
        event = invoice_event("evt_1", "cus_1", settings.stripe_price_ids["standard"])

        first = await deliver(async_client, event)
        second = await deliver(async_client, event)

        assert first.json()["duplicate"] is False
        assert second.json() == {"received": True, "duplicate": True}
        assert await count(db_session, PaymentRecord) == 1
        assert await count(db_session, ProcessedWebhookEvent) == 1

    async def test_invalid_signature_writes_nothing(
        self, async_client: AsyncClient, db_session: AsyncSession, customer: User
    ):
        event = invoice_event("evt_1", "cus_1", settings.stripe_price_ids["pro"])

        response = await deliver(async_client, event, secret="whsec_wrong")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid webhook signature"
        assert await count(db_session, ProcessedWebhookEvent) == 0
        assert await count(db_session, PaymentRecord) == 0
        await db_session.refresh(customer)
        assert customer.tier == "free"

    async def test_non_ascii_signature_is_400(
        self, async_client: AsyncClient, db_session: AsyncSession, customer: User
    ):
        body = json.dumps(invoice_event("evt_1", "cus_1", settings.stripe_price_ids["pro"])).encode()
        header = f"t={int(time.time())},v1=éé".encode("utf-8")

        response = await async_client.post(
            "/api/v1/billing/webhook",
            content=body,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid webhook signature"
        assert await count(db_session, ProcessedWebhookEvent) == 0

    async def test_missing_signature(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/billing/webhook", content=b"{}")
        assert response.status_code == 400

    async def test_invalid_payload(self, async_client: AsyncClient):
        body = b'{"id": "evt_1"}'
        response = await async_client.post(
            "/api/v1/billing/webhook",
            content=body,
            headers={"Stripe-Signature": sign_webhook_payload(body, settings.stripe_webhook_secret)},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid webhook payload"

    async def test_unconfigured_secret_is_403(self, async_client: AsyncClient, stub_adapter: StripeAdapter):
        stub_adapter.webhook_secret = ""

        response = await deliver(async_client, invoice_event("evt_1", "cus_1", "price_x"))

        assert response.status_code == 403

    async def test_unhandled_type_is_acknowledged(self, async_client: AsyncClient, db_session: AsyncSession):
        event = {"id": "evt_9", "type": "customer.created", "data": {"object": {"id": "cus_9"}}}

        response = await deliver(async_client, event)

        assert response.json() == {"received": True, "duplicate": False}
        assert await count(db_session, ProcessedWebhookEvent) == 0

    async def test_checkout_then_cancellation(
        self, async_client: AsyncClient, db_session: AsyncSession, customer: User
    ):
        checkout = {
            "id": "evt_c",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_1",
                    "customer": "cus_1",
                    "subscription": "sub_1",
                    "metadata": {"userId": customer.id, "plan": "premium"},
                }
            },
        }
        deleted = {
            "id": "evt_d",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_1", "status": "canceled"}},
        }

        invoice = invoice_event("evt_i", "cus_1", settings.stripe_price_ids["premium"])

        assert (await deliver(async_client, checkout)).status_code == 200
        await db_session.refresh(customer)
        assert customer.billing_subscription_ref == "sub_1"

        assert (await deliver(async_client, invoice)).status_code == 200
        await db_session.refresh(customer)
        assert customer.tier == "premium"

        assert (await deliver(async_client, deleted)).status_code == 200
        await db_session.refresh(customer)
        assert customer.tier == "free"
        assert customer.billing_status == "canceled"

    async def test_processing_failure_is_500_and_retriable(
        self, async_client: AsyncClient, db_session: AsyncSession, customer: User
    ):
        event = invoice_event("evt_1", "cus_1", settings.stripe_price_ids["pro"])

        with patch(
            "services.subscription_reconciler.SubscriptionReconciler._record_payment",
            AsyncMock(side_effect=RuntimeError("db went away")),
        ):
            failed = await deliver(async_client, event)

        assert failed.status_code == 500
        assert failed.json()["detail"] == "Webhook processing failed"
        assert await count(db_session, ProcessedWebhookEvent) == 0

        retried = await deliver(async_client, event)
        assert retried.json() == {"received": True, "duplicate": False}
        await db_session.refresh(customer)
        assert customer.tier == "pro"
