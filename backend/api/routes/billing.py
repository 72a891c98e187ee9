"""
Billing and subscription API routes.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.stripe_adapter import (
    StripeAdapter,
    StripeError,
    StripeSignatureError,
    StripeWebhookError,
    create_stripe_adapter,
)
from api.middleware.rate_limit import limiter
from api.routes.auth import get_current_user
from api.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    CustomerPortalResponse,
    PaymentResponse,
    PlanInfo,
    PricingResponse,
    SubscriptionStatus,
    WebhookAck,
)
from core.plans import PLANS
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.billing import PaymentRecord
from infrastructure.database.models.user import User
from services.subscription_reconciler import ReconcileOutcome, SubscriptionReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])

_stripe_adapter = create_stripe_adapter()


def get_stripe_adapter() -> StripeAdapter:
    """Dependency returning the shared Stripe adapter (overridden in tests)."""
    return _stripe_adapter


def get_reconciler(
    adapter: Annotated[StripeAdapter, Depends(get_stripe_adapter)],
) -> SubscriptionReconciler:
    lookup = adapter.get_subscription if adapter.api_key else None
    return SubscriptionReconciler(settings.stripe_price_ids, subscription_lookup=lookup)


def _frontend(path: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}{path}"


@router.get("/plans", response_model=PricingResponse)
async def get_plans():
    """
    Get available subscription plans and pricing.

    Public endpoint - no authentication required.
    """
    price_ids = settings.stripe_price_ids
    plans = [
        PlanInfo(
            id=plan_id,
            name=plan_data["name"],
            price_monthly=plan_data["price_monthly"],
            features=plan_data["features"],
            available=plan_id == "free" or plan_id in price_ids,
        )
        for plan_id, plan_data in PLANS.items()
    ]
    return PricingResponse(plans=plans)


@router.get("/subscription", response_model=SubscriptionStatus)
async def get_subscription_status(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user's subscription state."""
    return SubscriptionStatus(
        tier=current_user.tier,
        billing_status=current_user.billing_status,
        customer_id=current_user.billing_customer_ref,
        subscription_id=current_user.billing_subscription_ref,
        can_manage=current_user.billing_customer_ref is not None,
    )


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Payment history of the caller, newest first."""
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.user_id == current_user.id)
        .order_by(PaymentRecord.timestamp.desc())
    )
    return result.scalars().all()


@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit("10/minute")
async def create_checkout(
    request: Request,
    body: CheckoutRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    adapter: Annotated[StripeAdapter, Depends(get_stripe_adapter)],
    db: AsyncSession = Depends(get_db),
):
    """
    Create a Stripe Checkout Session for a paid plan.

    The Stripe customer is created on first use and remembered on the
    user. The subscription itself only changes when the webhook arrives.
    """
    price_id = settings.stripe_price_ids.get(body.plan)
    if not price_id:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Plan '{body.plan}' is not available for purchase",
        )

    try:
        if not current_user.billing_customer_ref:
            customer = await adapter.create_customer(current_user.email, current_user.id)
            current_user.billing_customer_ref = customer.id
            await db.commit()

        session = await adapter.create_checkout_session(
            customer_id=current_user.billing_customer_ref,
            price_id=price_id,
            user_id=current_user.id,
            plan=body.plan,
            success_url=settings.stripe_success_url
            or _frontend("/subscription?checkout=success&session_id={CHECKOUT_SESSION_ID}"),
            cancel_url=settings.stripe_cancel_url or _frontend("/subscription?checkout=canceled"),
        )
    except StripeError as e:
        logger.error("Checkout creation failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment provider error. Please try again later.",
        )

    logger.info("Created checkout session for user %s, plan=%s", current_user.id, body.plan)
    return CheckoutResponse(session_id=session.id, url=session.url)


@router.post("/portal", response_model=CustomerPortalResponse)
@limiter.limit("10/minute")
async def create_customer_portal(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    adapter: Annotated[StripeAdapter, Depends(get_stripe_adapter)],
):
    """Open a Stripe billing-portal session for managing the subscription."""
    if not current_user.billing_customer_ref:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No billing account found. Subscribe to a plan first.",
        )

    try:
        url = await adapter.create_portal_session(
            current_user.billing_customer_ref,
            return_url=settings.stripe_portal_return_url or _frontend("/subscription"),
        )
    except StripeError as e:
        logger.error("Portal session failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment provider error. Please try again later.",
        )

    return CustomerPortalResponse(url=url)


@router.post("/webhook", response_model=WebhookAck)
@limiter.exempt
async def handle_webhook(
    request: Request,
    adapter: Annotated[StripeAdapter, Depends(get_stripe_adapter)],
    reconciler: Annotated[SubscriptionReconciler, Depends(get_reconciler)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle Stripe webhook events.

    The signature is checked against the raw body before anything is
    parsed or read from the database. Redelivered events are acknowledged
    as duplicates without side effects.
    """
    if not adapter.webhook_secret:
        # 403 rather than 5xx so Stripe does not hammer an unconfigured endpoint
        logger.error("Webhook rejected: STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook verification not configured",
        )

    body = await request.body()

    try:
        event = adapter.construct_event(body, stripe_signature)
    except StripeSignatureError as e:
        logger.warning("Invalid webhook signature: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature",
        )
    except StripeWebhookError as e:
        logger.error("Invalid webhook payload: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    try:
        result = await reconciler.reconcile(db, event)
    except Exception as e:
        logger.exception(
            "Webhook processing failed: %s",
            e,
            extra={"event_id": event.id, "event_type": event.type},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return WebhookAck(received=True, duplicate=result.outcome is ReconcileOutcome.DUPLICATE)
