"""
Billing and subscription request/response schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PlanInfo(BaseModel):
    """Information about a subscription plan."""

    id: str = Field(..., description="Plan ID (free, standard, premium, pro)")
    name: str = Field(..., description="Display name of the plan")
    price_monthly: float = Field(..., description="Monthly price in USD")
    features: list[str] = Field(..., description="List of features included in the plan")
    available: bool = Field(..., description="Whether the plan can be purchased right now")


class PricingResponse(BaseModel):
    """Response containing all available pricing plans."""

    plans: list[PlanInfo]


class SubscriptionStatus(BaseModel):
    """Current subscription status for a user."""

    tier: str = Field(..., description="Current subscription tier")
    billing_status: str | None = Field(
        None, description="Provider status (active, past_due, canceled, ...)"
    )
    customer_id: str | None = Field(None, description="Stripe customer ID")
    subscription_id: str | None = Field(None, description="Stripe subscription ID")
    can_manage: bool = Field(..., description="Whether user can access customer portal")


class CheckoutRequest(BaseModel):
    """Request to create a checkout session."""

    plan: Literal["standard", "premium", "pro"] = Field(..., description="Paid plan to subscribe to")

    model_config = {"json_schema_extra": {"example": {"plan": "premium"}}}


class CheckoutResponse(BaseModel):
    """Response containing the hosted checkout session."""

    session_id: str = Field(..., description="Stripe Checkout Session ID")
    url: str = Field(..., description="URL to the Stripe checkout page")


class CustomerPortalResponse(BaseModel):
    """Response containing customer portal URL."""

    url: str = Field(..., description="URL to the Stripe customer portal")


class PaymentResponse(BaseModel):
    """One entry of the caller's payment history."""

    id: str
    timestamp: datetime
    plan: str
    amount: Decimal
    currency: str
    method: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False
