"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
Authorizations start in ``requires_action``; tests (or the payer simulation)
complete them with ``complete()``. It can also be told to decline at creation
or to time out, so callers can exercise every branch of checkout.

Repeated idempotency keys return the original handle, like real gateways do.
"""

import json
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from payments.gateway.port import (
    AuthorizationHandle,
    AuthorizationState,
    AuthorizationStatus,
    GatewayDeclined,
    GatewayTimeout,
    PaymentGateway,
    WebhookEventType,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.should_timeout: bool = False
        self.calls: list[dict] = []
        self.handles: dict[str, AuthorizationHandle] = {}
        self.metadata: dict[str, dict] = {}
        self._by_idempotency_key: dict[str, str] = {}
        self._statuses: dict[str, AuthorizationStatus] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        should_timeout: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_timeout = should_timeout

    def create_authorization(
        self,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> AuthorizationHandle:
        call = {
            "method": "create_authorization",
            "amount": str(amount),
            "currency": currency,
            "idempotency_key": idempotency_key,
            "metadata": dict(metadata or {}),
        }
        self.calls.append(call)

        if self.should_timeout:
            raise GatewayTimeout("Gateway did not respond in time")
        if not self.should_succeed:
            raise GatewayDeclined(self.failure_reason)

        existing = self._by_idempotency_key.get(idempotency_key)
        if existing:
            return self.handles[existing]

        handle_id = f"fake_auth_{uuid4().hex[:12]}"
        handle = AuthorizationHandle(
            handle_id=handle_id,
            client_secret=f"{handle_id}_secret_{uuid4().hex[:8]}",
            amount=amount,
            currency=currency,
        )
        self.handles[handle_id] = handle
        self.metadata[handle_id] = dict(metadata or {})
        self._by_idempotency_key[idempotency_key] = handle_id
        self._statuses[handle_id] = AuthorizationStatus(
            handle_id=handle_id,
            state=handle.state,
            amount=amount,
            currency=currency,
            metadata=dict(metadata or {}),
        )
        return handle

    def retrieve_authorization(self, handle_id: str) -> AuthorizationStatus:
        self.calls.append({"method": "retrieve_authorization", "handle_id": handle_id})
        if self.should_timeout:
            raise GatewayTimeout("Gateway did not respond in time")
        status = self._statuses.get(handle_id)
        if status is None:
            return AuthorizationStatus(
                handle_id=handle_id,
                state=AuthorizationState.FAILED.value,
                failure_reason="Unknown authorization",
            )
        return status

    def complete(self, handle_id: str, succeeded: bool = True, failure_reason: str | None = None) -> None:
        """Simulate the payer finishing (or failing) the challenge."""
        state = AuthorizationState.SUCCEEDED if succeeded else AuthorizationState.FAILED
        current = self._statuses.get(handle_id) or AuthorizationStatus(handle_id=handle_id, state=state.value)
        self._statuses[handle_id] = replace(
            current,
            state=state.value,
            failure_reason=None if succeeded else (failure_reason or self.failure_reason),
        )

    def webhook_payload(self, handle_id: str, succeeded: bool = True, failure_reason: str | None = None) -> str:
        """Body the gateway would post for ``handle_id``."""
        event_type = (
            WebhookEventType.AUTHORIZATION_SUCCEEDED if succeeded else WebhookEventType.AUTHORIZATION_FAILED
        )
        return json.dumps(
            {
                "id": f"evt_{uuid4().hex[:12]}",
                "type": event_type.value,
                "data": {
                    "handle_id": handle_id,
                    "metadata": self.metadata.get(handle_id, {}),
                    "failure_reason": None if succeeded else (failure_reason or self.failure_reason),
                },
            }
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
