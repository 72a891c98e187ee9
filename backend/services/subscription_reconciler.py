"""
Applies verified billing-provider webhook events to user subscriptions.

Each event runs in one transaction: the target user row is locked with
SELECT ... FOR UPDATE, the new subscription state is written together
with any payment record and the processed-event marker, and everything
commits or rolls back as a unit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments.stripe_adapter import StripeSubscription, WebhookEvent
from core.domain.subscription import (
    PAID_TIERS,
    BillingEventType,
    apply_checkout_completed,
    apply_invoice_paid,
    apply_subscription_deleted,
    apply_subscription_updated,
    plan_for_price,
    price_id_from_invoice,
    price_id_from_subscription,
)
from infrastructure.database.models.billing import PaymentRecord, ProcessedWebhookEvent
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

SubscriptionLookup = Callable[[str], Awaitable[StripeSubscription]]


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    event_type: str
    user_id: Optional[str] = None
    reason: Optional[str] = None


def _invoice_subscription_id(invoice: Mapping[str, Any]) -> Optional[str]:
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def _amount_from_cents(cents: Any) -> Decimal:
    return (Decimal(int(cents or 0)) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class SubscriptionReconciler:
    """Webhook event -> subscription state transition, one transaction per event."""

    provider = "stripe"

    def __init__(
        self,
        price_ids: Mapping[str, str],
        subscription_lookup: Optional[SubscriptionLookup] = None,
    ):
        self.price_ids = dict(price_ids)
        self.subscription_lookup = subscription_lookup
        self._handlers = {
            BillingEventType.CHECKOUT_COMPLETED.value: self._checkout_completed,
            BillingEventType.INVOICE_PAYMENT_SUCCEEDED.value: self._invoice_paid,
            BillingEventType.SUBSCRIPTION_UPDATED.value: self._subscription_updated,
            BillingEventType.SUBSCRIPTION_DELETED.value: self._subscription_deleted,
        }

    def handles(self, event_type: str) -> bool:
        return event_type in self._handlers

    async def reconcile(self, db: AsyncSession, event: WebhookEvent) -> ReconcileResult:
        """
        Apply one event.

        Unknown event types and events whose target user cannot be found
        are acknowledged without changes. Any other failure rolls the
        transaction back and propagates so the provider retries later.
        """
        log_extra = {"event_id": event.id, "event_type": event.type}
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Ignoring unhandled webhook event type %s", event.type, extra=log_extra)
            return ReconcileResult(ReconcileOutcome.IGNORED, event.type, reason="unhandled event type")

        if await self._already_processed(db, event.id):
            logger.info("Duplicate webhook event %s, skipping", event.id, extra=log_extra)
            return ReconcileResult(ReconcileOutcome.DUPLICATE, event.type)

        # Provider lookups happen before any row is locked
        context = await self._prefetch(event)

        try:
            result = await handler(db, event, context)
            db.add(
                ProcessedWebhookEvent(
                    id=event.id,
                    event_type=event.type,
                    outcome=result.outcome.value,
                )
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if await self._already_processed(db, event.id):
                logger.info("Webhook event %s committed by a concurrent delivery", event.id, extra=log_extra)
                return ReconcileResult(ReconcileOutcome.DUPLICATE, event.type)
            raise
        except Exception:
            await db.rollback()
            raise

        if result.outcome is ReconcileOutcome.IGNORED:
            logger.warning(
                "Webhook event %s ignored: %s", event.id, result.reason, extra=log_extra
            )
        else:
            logger.info(
                "Webhook event %s applied to user %s", event.id, result.user_id, extra=log_extra
            )
        return result

    async def _already_processed(self, db: AsyncSession, event_id: str) -> bool:
        found = await db.execute(
            select(ProcessedWebhookEvent.id).where(ProcessedWebhookEvent.id == event_id)
        )
        return found.scalar_one_or_none() is not None

    async def _prefetch(self, event: WebhookEvent) -> dict[str, Any]:
        if event.type != BillingEventType.INVOICE_PAYMENT_SUCCEEDED.value:
            return {}
        price_id = price_id_from_invoice(event.object)
        subscription_id = _invoice_subscription_id(event.object)
        if price_id is None and subscription_id and self.subscription_lookup:
            subscription = await self.subscription_lookup(subscription_id)
            price_id = subscription.price_id
        return {"price_id": price_id}

    async def _lock_user(self, db: AsyncSession, *criteria) -> Optional[User]:
        result = await db.execute(select(User).where(*criteria).with_for_update())
        return result.scalar_one_or_none()

    def _ignored(self, event: WebhookEvent, reason: str) -> ReconcileResult:
        return ReconcileResult(ReconcileOutcome.IGNORED, event.type, reason=reason)

    async def _checkout_completed(
        self, db: AsyncSession, event: WebhookEvent, context: dict[str, Any]
    ) -> ReconcileResult:
        session = event.object
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        plan = metadata.get("plan")
        if not user_id or plan not in PAID_TIERS:
            return self._ignored(event, "checkout session metadata lacks userId or a paid plan")

        user = await self._lock_user(db, User.id == str(user_id))
        if user is None:
            return self._ignored(event, f"unknown user {user_id}")

        user.apply_subscription_state(
            apply_checkout_completed(user.subscription_state, session.get("subscription"))
        )
        return ReconcileResult(ReconcileOutcome.APPLIED, event.type, user_id=user.id)

    async def _invoice_paid(
        self, db: AsyncSession, event: WebhookEvent, context: dict[str, Any]
    ) -> ReconcileResult:
        invoice = event.object
        customer = invoice.get("customer")
        invoice_id = invoice.get("id")
        if not customer or not invoice_id:
            return self._ignored(event, "invoice lacks customer or id")

        user = await self._lock_user(db, User.billing_customer_ref == customer)
        if user is None:
            return self._ignored(event, f"no user for customer {customer}")

        plan = plan_for_price(context.get("price_id"), self.price_ids)
        if plan is None:
            logger.warning(
                "Invoice %s price %s does not map to a plan; keeping tier %s",
                invoice_id, context.get("price_id"), user.tier,
            )
        user.apply_subscription_state(apply_invoice_paid(user.subscription_state, plan))

        await self._record_payment(db, user, invoice, plan or user.tier)
        return ReconcileResult(ReconcileOutcome.APPLIED, event.type, user_id=user.id)

    async def _record_payment(
        self, db: AsyncSession, user: User, invoice: Mapping[str, Any], plan: str
    ) -> None:
        """Insert the payment for an invoice unless it is already recorded."""
        invoice_id = invoice["id"]
        existing = await db.execute(
            select(PaymentRecord.id).where(PaymentRecord.provider_reference == invoice_id)
        )
        if existing.scalar_one_or_none() is not None:
            logger.info("Payment for invoice %s already recorded", invoice_id)
            return

        created = invoice.get("created")
        timestamp = (
            datetime.fromtimestamp(int(created), tz=timezone.utc)
            if created
            else datetime.now(timezone.utc)
        )
        db.add(
            PaymentRecord(
                id=PaymentRecord.id_for_invoice(self.provider, invoice_id),
                user_id=user.id,
                provider_reference=invoice_id,
                timestamp=timestamp,
                plan=plan,
                amount=_amount_from_cents(invoice.get("amount_paid")),
                currency=(invoice.get("currency") or "usd")[:3],
                method="Stripe",
                status="succeeded",
            )
        )

    async def _subscription_updated(
        self, db: AsyncSession, event: WebhookEvent, context: dict[str, Any]
    ) -> ReconcileResult:
        subscription = event.object
        user = await self._lock_user(db, User.billing_subscription_ref == subscription.get("id"))
        if user is None:
            return self._ignored(event, f"no user for subscription {subscription.get('id')}")

        user.apply_subscription_state(
            apply_subscription_updated(
                user.subscription_state,
                subscription.get("status") or "active",
                price_id_from_subscription(subscription),
                self.price_ids,
            )
        )
        return ReconcileResult(ReconcileOutcome.APPLIED, event.type, user_id=user.id)

    async def _subscription_deleted(
        self, db: AsyncSession, event: WebhookEvent, context: dict[str, Any]
    ) -> ReconcileResult:
        subscription = event.object
        user = await self._lock_user(db, User.billing_subscription_ref == subscription.get("id"))
        if user is None:
            return self._ignored(event, f"no user for subscription {subscription.get('id')}")

        user.apply_subscription_state(
            apply_subscription_deleted(user.subscription_state, subscription.get("status"))
        )
        return ReconcileResult(ReconcileOutcome.APPLIED, event.type, user_id=user.id)
