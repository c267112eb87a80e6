"""Stripe payment gateway adapter.

Authorizations are Stripe PaymentIntents. The order's idempotency key is sent
as Stripe's ``Idempotency-Key``, so a retried creation returns the original
intent. Webhook bodies are verified with ``stripe.Webhook.construct_event``
against the endpoint's signing secret.
"""

import json
from decimal import ROUND_HALF_UP, Decimal

import stripe
import structlog

from payments.gateway.port import (
    AuthorizationHandle,
    AuthorizationState,
    AuthorizationStatus,
    GatewayDeclined,
    GatewayError,
    GatewayEvent,
    GatewayTimeout,
    PaymentGateway,
    WebhookEventType,
)

logger = structlog.get_logger(__name__)

# Currencies Stripe charges in whole units
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)

_EVENT_TYPES = {
    "payment_intent.succeeded": WebhookEventType.AUTHORIZATION_SUCCEEDED.value,
    "payment_intent.payment_failed": WebhookEventType.AUTHORIZATION_FAILED.value,
    "payment_intent.canceled": WebhookEventType.AUTHORIZATION_FAILED.value,
}


def to_minor_units(amount: Decimal, currency: str) -> int:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int | None, currency: str | None) -> Decimal | None:
    if amount is None:
        return None
    if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


class StripeGateway(PaymentGateway):
    """Production gateway backed by the Stripe PaymentIntents API."""

    def __init__(self, api_key: str, webhook_secret: str | None = None) -> None:
        if not api_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured")
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_authorization(
        self,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> AuthorizationHandle:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount, currency),
                currency=currency.lower(),
                metadata={key: str(value) for key, value in (metadata or {}).items()},
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
                api_key=self.api_key,
            )
        except stripe.CardError as exc:
            logger.info("stripe_card_declined", code=exc.code, idempotency_key=idempotency_key)
            raise GatewayDeclined(exc.user_message or "Card declined") from exc
        except stripe.APIConnectionError as exc:
            raise GatewayTimeout(f"Stripe unreachable: {exc}") from exc
        except stripe.StripeError as exc:
            logger.error("stripe_create_failed", error=str(exc), idempotency_key=idempotency_key)
            raise GatewayError(str(exc)) from exc

        return AuthorizationHandle(
            handle_id=intent["id"],
            client_secret=intent["client_secret"],
            amount=Decimal(amount),
            currency=currency,
            state=self._state(intent),
        )

    def retrieve_authorization(self, handle_id: str) -> AuthorizationStatus:
        try:
            intent = stripe.PaymentIntent.retrieve(handle_id, api_key=self.api_key)
        except stripe.APIConnectionError as exc:
            raise GatewayTimeout(f"Stripe unreachable: {exc}") from exc
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc

        currency = intent.get("currency")
        return AuthorizationStatus(
            handle_id=intent["id"],
            state=self._state(intent),
            failure_reason=self._failure_reason(intent),
            amount=from_minor_units(intent.get("amount"), currency),
            currency=currency.upper() if currency else None,
            metadata=dict(intent.get("metadata") or {}),
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        if not self.webhook_secret or not signature:
            return False
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("stripe_webhook_rejected", error=str(exc))
            return False
        return True

    def parse_webhook(self, payload: str) -> GatewayEvent:
        body = json.loads(payload)
        intent = (body.get("data") or {}).get("object") or {}
        if not body.get("type") or not intent.get("id"):
            raise ValueError("Webhook payload is missing the event type or payment intent")
        return GatewayEvent(
            event_id=str(body.get("id") or ""),
            type=_EVENT_TYPES.get(body["type"], body["type"]),
            handle_id=intent["id"],
            order_id=(intent.get("metadata") or {}).get("order_id"),
            failure_reason=self._failure_reason(intent),
        )

    @staticmethod
    def _state(intent) -> str:
        status = intent.get("status")
        if status in ("succeeded", "requires_capture"):
            return AuthorizationState.SUCCEEDED.value
        if status == "processing":
            return AuthorizationState.PROCESSING.value
        if status == "canceled":
            return AuthorizationState.FAILED.value
        if status == "requires_payment_method" and intent.get("last_payment_error"):
            return AuthorizationState.FAILED.value
        return AuthorizationState.REQUIRES_ACTION.value

    @staticmethod
    def _failure_reason(intent) -> str | None:
        error = intent.get("last_payment_error") or {}
        if error:
            return error.get("message") or "Payment failed"
        if intent.get("status") == "canceled":
            return intent.get("cancellation_reason") or "Payment canceled"
        return None
