"""
Stripe billing adapter for subscription management.

Talks to the Stripe REST API over httpx (form-encoded requests, bearer
auth) and verifies webhook signatures locally.
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


# Custom Exceptions
class StripeError(Exception):
    """Base exception for Stripe adapter errors."""


class StripeAPIError(StripeError):
    """Raised when the Stripe API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StripeAuthError(StripeError):
    """Raised when the API key is missing or rejected."""


class StripeWebhookError(StripeError):
    """Raised when a webhook payload cannot be parsed."""


class StripeSignatureError(StripeWebhookError):
    """Raised when a webhook signature is missing, stale or does not match."""


# Dataclasses
@dataclass
class StripeCustomer:
    id: str
    email: str | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeCustomer":
        return cls(id=data.get("id", ""), email=data.get("email"))


@dataclass
class StripeCheckoutSession:
    id: str
    url: str | None
    customer: str | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeCheckoutSession":
        return cls(id=data.get("id", ""), url=data.get("url"), customer=data.get("customer"))


@dataclass
class StripeSubscription:
    id: str
    customer: str | None
    status: str
    price_id: str | None
    current_period_end: int | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StripeSubscription":
        items = (data.get("items") or {}).get("data") or []
        price = (items[0].get("price") or {}) if items else {}
        return cls(
            id=data.get("id", ""),
            customer=data.get("customer"),
            status=data.get("status", ""),
            price_id=price.get("id"),
            current_period_end=data.get("current_period_end"),
        )


@dataclass
class WebhookEvent:
    """Stripe webhook event envelope."""

    id: str
    type: str
    object: dict[str, Any]
    created: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_webhook_payload(cls, payload: dict[str, Any]) -> "WebhookEvent":
        if not isinstance(payload, dict):
            raise StripeWebhookError("Webhook payload must be a JSON object")
        event_id = payload.get("id")
        event_type = payload.get("type")
        obj = (payload.get("data") or {}).get("object")
        if not event_id or not event_type or not isinstance(obj, dict):
            raise StripeWebhookError("Webhook payload is missing id, type or data.object")
        return cls(
            id=str(event_id),
            type=str(event_type),
            object=obj,
            created=payload.get("created"),
            raw=payload,
        )


def _encode_form(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's bracketed form fields."""
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(_encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(_encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeAdapter:
    """
    Stripe API adapter for subscription billing.

    Covers the calls the billing routes need: customers, checkout and
    portal sessions, subscription lookup and webhook verification.
    """

    API_BASE_URL = "https://api.stripe.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        tolerance_seconds: int | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else settings.stripe_webhook_tolerance_seconds
        )
        self.timeout = timeout

        if not self.api_key:
            logger.warning("Stripe API key not configured. Set STRIPE_SECRET_KEY.")

    def _get_headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        if not self.api_key:
            raise StripeAuthError("Stripe API key not configured. Set STRIPE_SECRET_KEY.")
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to the Stripe API.

        Raises:
            StripeAuthError: If the key is missing or rejected
            StripeAPIError: If the request fails
        """
        url = f"{self.API_BASE_URL}/{endpoint}"
        headers = self._get_headers(idempotency_key)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info("Making %s request to Stripe %s", method, endpoint)
                if method == "GET":
                    response = await client.get(url, headers=headers)
                elif method == "POST":
                    response = await client.post(url, headers=headers, data=_encode_form(data or {}))
                elif method == "DELETE":
                    response = await client.delete(url, headers=headers)
                else:
                    raise ValueError(f"Unsupported HTTP method: {method}")

                response.raise_for_status()
                return response.json() if response.content else {}

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            try:
                detail = (e.response.json().get("error") or {}).get("message") or str(e)
            except ValueError:
                detail = str(e)
            logger.error("Stripe API error (%s): %s", status_code, detail)
            if status_code == 401:
                raise StripeAuthError(f"Stripe rejected the API key: {detail}") from e
            raise StripeAPIError(f"API request failed: {detail}", status_code=status_code) from e
        except httpx.RequestError as e:
            logger.error("Stripe request error: %s", e)
            raise StripeAPIError(f"Request failed: {e}") from e

    async def create_customer(self, email: str, user_id: str) -> StripeCustomer:
        response = await self._make_request(
            "POST",
            "customers",
            {"email": email, "metadata": {"userId": user_id}},
            idempotency_key=f"customer-{user_id}",
        )
        return StripeCustomer.from_api_response(response)

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        plan: str,
        success_url: str,
        cancel_url: str,
    ) -> StripeCheckoutSession:
        """Create a subscription-mode Checkout Session for one price."""
        response = await self._make_request(
            "POST",
            "checkout/sessions",
            {
                "customer": customer_id,
                "mode": "subscription",
                "payment_method_types": ["card"],
                "line_items": [{"price": price_id, "quantity": 1}],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "client_reference_id": user_id,
                "metadata": {"userId": user_id, "plan": plan},
                "subscription_data": {"metadata": {"userId": user_id, "plan": plan}},
            },
        )
        return StripeCheckoutSession.from_api_response(response)

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Return the URL of a customer billing-portal session."""
        response = await self._make_request(
            "POST",
            "billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url},
        )
        return response.get("url", "")

    async def get_subscription(self, subscription_id: str) -> StripeSubscription:
        response = await self._make_request("GET", f"subscriptions/{subscription_id}")
        return StripeSubscription.from_api_response(response)

    def verify_webhook_signature(self, payload: bytes, signature_header: str | None) -> None:
        """
        Check a ``Stripe-Signature`` header against the raw request body.

        The header carries ``t=<unix time>`` and one or more ``v1=<hex>``
        entries; the expected value is HMAC-SHA256 of ``"<t>.<body>"``.

        Raises:
            StripeWebhookError: If no webhook secret is configured
            StripeSignatureError: If the header is missing, malformed, stale or wrong
        """
        if not self.webhook_secret:
            raise StripeWebhookError("Webhook secret not configured. Set STRIPE_WEBHOOK_SECRET.")
        if not signature_header:
            raise StripeSignatureError("Missing Stripe-Signature header")

        timestamp = None
        signatures: list[str] = []
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1" and value:
                signatures.append(value)

        if (
            not timestamp
            or not (timestamp.isascii() and timestamp.isdigit())
            or not signatures
            or not all(candidate.isascii() for candidate in signatures)
        ):
            raise StripeSignatureError("Malformed Stripe-Signature header")

        if self.tolerance_seconds and abs(time.time() - int(timestamp)) > self.tolerance_seconds:
            raise StripeSignatureError("Webhook timestamp outside the tolerance window")

        expected = hmac.new(
            key=self.webhook_secret.encode("utf-8"),
            msg=timestamp.encode("ascii") + b"." + payload,
            digestmod=hashlib.sha256,
        ).hexdigest()

        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise StripeSignatureError("Webhook signature does not match")

    def construct_event(self, payload: bytes, signature_header: str | None) -> WebhookEvent:
        """Verify the signature, then parse the event envelope."""
        self.verify_webhook_signature(payload, signature_header)
        try:
            data = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StripeWebhookError(f"Invalid JSON payload: {e}") from e
        return WebhookEvent.from_webhook_payload(data)


def sign_webhook_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for a payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        secret.encode("utf-8"), str(timestamp).encode("ascii") + b"." + payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


# Factory function for easy instantiation
def create_stripe_adapter(
    api_key: str | None = None,
    webhook_secret: str | None = None,
) -> StripeAdapter:
    return StripeAdapter(api_key=api_key, webhook_secret=webhook_secret)
