"""OrderDraft aggregate: one authoritative payment record per order.

An order draft is created at checkout submission from a frozen, priced
snapshot of the cart. Later menu or price changes never touch it.

Payment state machine:
    CREATED → AUTHORIZING → AUTHORIZED → SETTLED
    CREATED / AUTHORIZING → FAILED

SETTLED and FAILED are terminal. Gateway signals (client callback or
webhook) are merged by ``apply_gateway_signal``: success is idempotent and
commutative, and a signal that contradicts a terminal decision is recorded
as an anomaly instead of changing state.
"""

import json
import secrets
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.cart.pricing import to_decimal, to_storage
from ordering.domain import ordering
from ordering.order.events import (
    GatewaySignalAnomaly,
    GuestOrderAccessRedeemed,
    OrderDraftCreated,
    OrderSettled,
    PaymentAuthorizationRequested,
    PaymentAuthorized,
    PaymentFailed,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentState(Enum):
    CREATED = "Created"
    AUTHORIZING = "Authorizing"
    AUTHORIZED = "Authorized"
    SETTLED = "Settled"
    FAILED = "Failed"


class SignalSource(Enum):
    CLIENT = "client"
    WEBHOOK = "webhook"
    SUBMISSION = "submission"


class SignalOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED_LATE_FAILURE = "ignored_late_failure"
    IGNORED_AFTER_FAILURE = "ignored_after_failure"


# State machine transition map
_VALID_TRANSITIONS = {
    PaymentState.CREATED: {PaymentState.AUTHORIZING, PaymentState.FAILED},
    PaymentState.AUTHORIZING: {PaymentState.AUTHORIZED, PaymentState.FAILED},
    PaymentState.AUTHORIZED: {PaymentState.SETTLED},
    PaymentState.SETTLED: set(),  # Terminal
    PaymentState.FAILED: set(),  # Terminal
}


def generate_order_number(now=None) -> str:
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="OrderDraft")
class Payer:
    """Who pays: an authenticated user, or a guest identified by contact details."""

    user_id = Identifier()
    email = String(max_length=254)
    first_name = String(max_length=100)
    last_name = String(max_length=100)

    @invariant.post
    def user_or_guest_contact_required(self):
        if self.user_id:
            return
        if not (self.email and self.first_name and self.last_name):
            raise ValidationError({"payer": ["Guest checkout requires email, first name and last name"]})

    @property
    def is_guest(self) -> bool:
        return not self.user_id


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="OrderDraft")
class OrderLine:
    """A priced copy of one cart line at the moment of submission."""

    identity_key = String(required=True, max_length=1000)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = String(required=True, max_length=32)
    line_total = String(required=True, max_length=32)
    options = Text()  # JSON: [{group_id, option_id, name, price_modifier}]
    notes = Text()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class OrderDraft:
    order_number = String(required=True, max_length=30)
    idempotency_key = String(required=True, max_length=64)
    submission_id = String(max_length=255)
    cart_key = Identifier()
    cart_hash = String(max_length=64)
    location_id = Identifier(required=True)
    lines = HasMany(OrderLine)
    total_amount = String(required=True, max_length=32)
    currency = String(max_length=3, default="AUD")
    payer = ValueObject(Payer, required=True)
    payment_state = String(choices=PaymentState, default=PaymentState.CREATED.value)
    authorization_handle = String(max_length=255)
    client_secret = String(max_length=255)
    authorized_via = String(max_length=20)
    failure_reason = String(max_length=500)
    guest_nonce = String(max_length=64)
    access_nonce = String(max_length=64)
    access_redeemed_at = DateTime()
    ledger_reference = String(max_length=255)
    delivery_notes = Text()
    created_at = DateTime()
    updated_at = DateTime()
    authorized_at = DateTime()
    settled_at = DateTime()
    failed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id,
        idempotency_key,
        location_id,
        lines_data,
        payer,
        currency="AUD",
        submission_id=None,
        cart_key=None,
        cart_hash=None,
        delivery_notes=None,
        guest_nonce=None,
    ):
        """Create a draft from a cart snapshot.

        Args:
            lines_data: List of dicts with identity_key, product_id,
                product_name, quantity, unit_price, options (list), notes.
            payer: Dict with user_id, or email, first_name and last_name.
        """
        if not lines_data:
            raise ValidationError({"lines": ["Cannot create an order from an empty cart"]})

        now = datetime.now(UTC)
        lines = []
        total = Decimal("0")
        for line in lines_data:
            unit_price = to_decimal(line["unit_price"])
            line_total = unit_price * line["quantity"]
            total += line_total
            lines.append(
                OrderLine(
                    identity_key=line["identity_key"],
                    product_id=line["product_id"],
                    product_name=line["product_name"],
                    quantity=line["quantity"],
                    unit_price=to_storage(unit_price),
                    line_total=to_storage(line_total),
                    options=json.dumps(line.get("options") or []),
                    notes=line.get("notes") or None,
                )
            )

        draft = cls(
            id=order_id,
            order_number=generate_order_number(now),
            idempotency_key=idempotency_key,
            submission_id=submission_id,
            cart_key=cart_key,
            cart_hash=cart_hash,
            location_id=location_id,
            lines=lines,
            total_amount=to_storage(total),
            currency=currency,
            payer=Payer(**payer),
            payment_state=PaymentState.CREATED.value,
            delivery_notes=delivery_notes,
            guest_nonce=guest_nonce,
            created_at=now,
            updated_at=now,
        )

        draft.raise_(
            OrderDraftCreated(
                order_id=str(draft.id),
                order_number=draft.order_number,
                location_id=str(location_id),
                total_amount=draft.total_amount,
                currency=currency,
                payer_kind="Guest" if draft.payer.is_guest else "User",
                created_at=now,
            )
        )
        return draft

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def state(self) -> PaymentState:
        return PaymentState(self.payment_state)

    @property
    def is_terminal(self) -> bool:
        return self.state in (PaymentState.SETTLED, PaymentState.FAILED)

    @property
    def is_paid(self) -> bool:
        return self.state in (PaymentState.AUTHORIZED, PaymentState.SETTLED)

    def total(self) -> Decimal:
        return to_decimal(self.total_amount)

    def snapshot(self) -> dict:
        """What the ledger books: the frozen order as plain data."""
        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "location_id": str(self.location_id),
            "total_amount": self.total_amount,
            "currency": self.currency,
            "payer": {
                "user_id": self.payer.user_id,
                "email": self.payer.email,
                "first_name": self.payer.first_name,
                "last_name": self.payer.last_name,
            },
            "lines": [
                {
                    "product_id": str(line.product_id),
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                    "options": json.loads(line.options) if line.options else [],
                    "notes": line.notes,
                }
                for line in self.lines
            ],
            "delivery_notes": self.delivery_notes,
            "authorization_handle": self.authorization_handle,
        }

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_state):
        current = self.state
        if target_state not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"payment_state": [f"Cannot transition from {current.value} to {target_state.value}"]}
            )

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def begin_authorization(self, handle_id, client_secret=None):
        self._assert_can_transition(PaymentState.AUTHORIZING)
        self.payment_state = PaymentState.AUTHORIZING.value
        self.authorization_handle = handle_id
        if client_secret:
            self.client_secret = client_secret
        self.updated_at = datetime.now(UTC)

        self.raise_(PaymentAuthorizationRequested(order_id=str(self.id), handle_id=handle_id))

    def apply_gateway_signal(self, succeeded, source, reason=None, handle_id=None) -> SignalOutcome:
        """Merge one success/failure report into the payment state."""
        state = self.state
        source = SignalSource(source).value

        if succeeded:
            if state in (PaymentState.AUTHORIZED, PaymentState.SETTLED):
                return SignalOutcome.DUPLICATE
            if state == PaymentState.FAILED:
                self._record_anomaly("success_after_failure", source, reason)
                return SignalOutcome.IGNORED_AFTER_FAILURE
            if state == PaymentState.CREATED:
                # Submission stopped after the gateway call; keep the state machine intact
                self.begin_authorization(handle_id or self.authorization_handle)
            self._authorize(source, handle_id)
            return SignalOutcome.APPLIED

        if state in (PaymentState.AUTHORIZED, PaymentState.SETTLED):
            self._record_anomaly("failure_after_authorization", source, reason)
            return SignalOutcome.IGNORED_LATE_FAILURE
        if state == PaymentState.FAILED:
            return SignalOutcome.DUPLICATE

        self.mark_failed(reason or "Payment failed", source=source)
        return SignalOutcome.APPLIED

    def _authorize(self, source, handle_id=None):
        self._assert_can_transition(PaymentState.AUTHORIZED)
        now = datetime.now(UTC)
        self.payment_state = PaymentState.AUTHORIZED.value
        self.authorized_via = source
        self.authorized_at = now
        self.updated_at = now
        if handle_id and not self.authorization_handle:
            self.authorization_handle = handle_id
        if self.payer.is_guest:
            self.access_nonce = secrets.token_hex(16)

        self.raise_(
            PaymentAuthorized(
                order_id=str(self.id),
                handle_id=self.authorization_handle,
                source=source,
                authorized_at=now,
            )
        )

    def _record_anomaly(self, kind, source, reason=None):
        self.raise_(
            GatewaySignalAnomaly(
                order_id=str(self.id),
                kind=kind,
                source=source,
                payment_state=self.payment_state,
                reason=reason,
            )
        )

    def mark_failed(self, reason, source=SignalSource.SUBMISSION.value):
        self._assert_can_transition(PaymentState.FAILED)
        now = datetime.now(UTC)
        self.payment_state = PaymentState.FAILED.value
        self.failure_reason = reason
        self.failed_at = now
        self.updated_at = now

        self.raise_(PaymentFailed(order_id=str(self.id), reason=reason, source=source, failed_at=now))

    def mark_settled(self, ledger_reference=None) -> bool:
        """AUTHORIZED → SETTLED. Returns False when already settled."""
        if self.state == PaymentState.SETTLED:
            return False
        self._assert_can_transition(PaymentState.SETTLED)
        now = datetime.now(UTC)
        self.payment_state = PaymentState.SETTLED.value
        self.ledger_reference = ledger_reference
        self.settled_at = now
        self.updated_at = now

        self.raise_(OrderSettled(order_id=str(self.id), ledger_reference=ledger_reference, settled_at=now))
        return True

    # -------------------------------------------------------------------
    # Guest order access
    # -------------------------------------------------------------------
    def redeem_guest_access(self):
        if not self.access_nonce or self.access_redeemed_at:
            raise ValidationError({"access": ["Order access link is no longer valid"]})
        now = datetime.now(UTC)
        self.access_redeemed_at = now
        self.raise_(GuestOrderAccessRedeemed(order_id=str(self.id), redeemed_at=now))
