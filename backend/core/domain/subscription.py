"""Subscription domain rules.

Pure transition functions for billing-provider events. The service layer
loads and locks the user, calls one of the ``apply_*`` functions and
writes the resulting state back in the same transaction.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional


class SubscriptionTier(str, Enum):
    """Available subscription tiers."""
    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"
    PRO = "pro"


PAID_TIERS = (SubscriptionTier.STANDARD.value, SubscriptionTier.PREMIUM.value, SubscriptionTier.PRO.value)


class BillingEventType(str, Enum):
    """Billing-provider webhook events that change subscription state."""
    CHECKOUT_COMPLETED = "checkout.session.completed"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


@dataclass(frozen=True)
class SubscriptionState:
    """The subscription attributes stored on a user."""

    tier: str = SubscriptionTier.FREE.value
    billing_status: Optional[str] = None
    subscription_ref: Optional[str] = None


def plan_for_price(price_id: Optional[str], price_ids: Mapping[str, str]) -> Optional[str]:
    """Reverse-map a provider price id to a plan name."""
    if not price_id:
        return None
    for plan, configured in price_ids.items():
        if configured == price_id:
            return plan
    return None


def price_id_from_subscription(subscription: Mapping[str, Any]) -> Optional[str]:
    """First item's price id of a subscription object."""
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    price = items[0].get("price") or {}
    return price.get("id") if isinstance(price, dict) else price


def price_id_from_invoice(invoice: Mapping[str, Any]) -> Optional[str]:
    """Price id of the first invoice line that carries one."""
    for line in (invoice.get("lines") or {}).get("data") or []:
        price = line.get("price")
        if isinstance(price, dict) and price.get("id"):
            return price["id"]
        if isinstance(price, str) and price:
            return price
        details = (line.get("pricing") or {}).get("price_details") or {}
        if details.get("price"):
            return details["price"]
    return None


def apply_checkout_completed(state: SubscriptionState, subscription_ref: Optional[str]) -> SubscriptionState:
    return replace(state, subscription_ref=subscription_ref, billing_status="active")


def apply_invoice_paid(state: SubscriptionState, plan: Optional[str]) -> SubscriptionState:
    """Activate the paid plan. An unresolved plan keeps the current tier."""
    return replace(state, tier=plan or state.tier, billing_status="active")


def apply_subscription_updated(
    state: SubscriptionState,
    status: str,
    price_id: Optional[str],
    price_ids: Mapping[str, str],
) -> SubscriptionState:
    if status == "canceled":
        tier = SubscriptionTier.FREE.value
    else:
        tier = plan_for_price(price_id, price_ids) or SubscriptionTier.FREE.value
    return replace(state, tier=tier, billing_status=status)


def apply_subscription_deleted(state: SubscriptionState, status: Optional[str]) -> SubscriptionState:
    return replace(state, tier=SubscriptionTier.FREE.value, billing_status=status or "canceled")
