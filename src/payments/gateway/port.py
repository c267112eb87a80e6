"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
Checkout asks the gateway for an authorization handle, the payer's client
completes the challenge with the gateway directly, and the gateway reports
the outcome by webhook. ``retrieve_authorization`` is the authoritative
answer when the client claims completion.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class GatewayError(Exception):
    """The gateway call failed and its outcome is unknown."""


class GatewayTimeout(GatewayError):
    """No answer within the allotted time. The authorization may still exist."""


class GatewayDeclined(GatewayError):
    """The gateway refused to create the authorization. Nothing was authorized."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AuthorizationState(Enum):
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class WebhookEventType(Enum):
    AUTHORIZATION_SUCCEEDED = "authorization.succeeded"
    AUTHORIZATION_FAILED = "authorization.failed"


@dataclass(frozen=True)
class AuthorizationHandle:
    """What the payer's client needs to complete the payment with the gateway."""

    handle_id: str
    client_secret: str
    amount: Decimal
    currency: str
    state: str = AuthorizationState.REQUIRES_ACTION.value


@dataclass(frozen=True)
class AuthorizationStatus:
    handle_id: str
    state: str
    failure_reason: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state == AuthorizationState.SUCCEEDED.value

    @property
    def failed(self) -> bool:
        return self.state == AuthorizationState.FAILED.value

    @property
    def pending(self) -> bool:
        return not (self.succeeded or self.failed)


@dataclass(frozen=True)
class GatewayEvent:
    """An asynchronous notification about one authorization."""

    event_id: str
    type: str
    handle_id: str
    order_id: str | None = None
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.type == WebhookEventType.AUTHORIZATION_SUCCEEDED.value

    @property
    def failed(self) -> bool:
        return self.type == WebhookEventType.AUTHORIZATION_FAILED.value


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_authorization(
        self,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> AuthorizationHandle:
        """Create (or, for a repeated idempotency key, return) an authorization."""
        ...

    @abstractmethod
    def retrieve_authorization(self, handle_id: str) -> AuthorizationStatus:
        """Current state of an authorization as the gateway sees it."""
        ...

    @abstractmethod
    def verify_webhook_signature(
        self,
        payload: str,
        signature: str,
    ) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    def parse_webhook(self, payload: str) -> GatewayEvent:
        """Decode a verified webhook body into a ``GatewayEvent``.

        Raises ``ValueError`` for a body that is not a recognizable event.
        """
        body = json.loads(payload)
        data = body.get("data") or {}
        metadata = data.get("metadata") or {}
        if not body.get("type") or not data.get("handle_id"):
            raise ValueError("Webhook payload is missing the event type or handle id")
        return GatewayEvent(
            event_id=str(body.get("id") or ""),
            type=body["type"],
            handle_id=data["handle_id"],
            order_id=metadata.get("order_id"),
            failure_reason=data.get("failure_reason"),
        )
