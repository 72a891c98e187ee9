"""Payment adapters for billing and subscription management."""

from .stripe_adapter import (
    StripeAdapter,
    StripeAPIError,
    StripeAuthError,
    StripeCheckoutSession,
    StripeCustomer,
    StripeError,
    StripeSignatureError,
    StripeSubscription,
    StripeWebhookError,
    WebhookEvent,
    create_stripe_adapter,
    sign_webhook_payload,
)

__all__ = [
    "StripeAdapter",
    "StripeCustomer",
    "StripeCheckoutSession",
    "StripeSubscription",
    "WebhookEvent",
    "StripeError",
    "StripeAPIError",
    "StripeAuthError",
    "StripeWebhookError",
    "StripeSignatureError",
    "create_stripe_adapter",
    "sign_webhook_payload",
]
