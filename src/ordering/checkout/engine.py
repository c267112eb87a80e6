"""Checkout Settlement Engine.

Drives an order from cart submission to a terminal payment state:

1. ``submit`` freezes the cart into an ``OrderDraft`` (CREATED), spends the
   guest authorization if there is one, asks the gateway for an
   authorization handle and moves the draft to AUTHORIZING. Retries of the
   same attempt are matched by idempotency key and never create a second
   order or a second authorization.
2. The payer's client completes the challenge with the gateway. Success or
   failure then reaches us twice and in any order: ``confirm_from_client``
   (verified against the gateway, which is authoritative) and
   ``handle_gateway_event`` (webhook). Both feed one compare-and-set on the
   draft, serialized per order id. The first success authorizes; later ones
   are duplicates. Contradicting signals after a terminal decision are
   recorded as anomalies and ignored.
3. On authorization the cart is cleared exactly once and the order is
   forwarded to the ledger, best effort. The ledger's acknowledgment
   settles the order; its absence never rolls back a payment.

Everything that can be rejected locally is rejected before the gateway is
called. After that point only ``PaymentDeclined`` and ``PaymentAmbiguous``
reach the caller.
"""

import json
from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.cart.pricing import to_decimal
from ordering.cart.storage import CartStorage
from ordering.cart.store import CartStore
from ordering.checkout.idempotency import (
    find_draft_by_handle,
    find_draft_by_key,
    find_draft_for_submission,
    idempotency_key,
)
from ordering.config import Settings, get_settings
from ordering.errors import (
    AdmissionDenied,
    GuestAuthorizationRejected,
    PaymentAmbiguous,
    PaymentDeclined,
    SecurityVerificationUnavailable,
)
from ordering.guest.redemption import GuestAuthorizationVerifier
from ordering.inventory.admission import AdmissionCheck
from ordering.ledger import get_ledger
from ordering.ledger.port import LedgerUnavailable, OrderLedger
from ordering.order import access
from ordering.order.authorization import RecordAuthorizationRequested, RecordGatewaySignal, RecordSubmissionFailure
from ordering.order.creation import CreateOrderDraft
from ordering.order.order import OrderDraft, Payer, PaymentState, SignalOutcome, SignalSource
from ordering.order.settlement import RecordSettlement
from ordering.utils.locks import cart_locks, order_locks, submission_locks
from ordering.utils.timeouts import ExternalCallTimeout, call_with_timeout
from payments.gateway import get_gateway
from payments.gateway.port import AuthorizationStatus, GatewayDeclined, GatewayError, GatewayEvent, PaymentGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GuestContact:
    email: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class SubmissionReceipt:
    """What the payer's client needs to complete payment with the gateway."""

    order_id: str
    order_number: str
    state: str
    handle_id: str | None
    client_secret: str | None
    amount: str
    currency: str
    duplicate: bool = False


@dataclass(frozen=True)
class ConfirmationResult:
    order_id: str
    order_number: str
    state: str
    outcome: str
    access_token: str | None = None


class SettlementEngine:
    def __init__(
        self,
        gateway: PaymentGateway | None = None,
        ledger: OrderLedger | None = None,
        verifier: GuestAuthorizationVerifier | None = None,
        admission: AdmissionCheck | None = None,
        storage: CartStorage | None = None,
        settings: Settings | None = None,
    ):
        self._gateway = gateway
        self._ledger = ledger
        self.verifier = verifier or GuestAuthorizationVerifier()
        self.admission = admission or AdmissionCheck()
        self.storage = storage or CartStorage()
        self.settings = settings or get_settings()

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def ledger(self) -> OrderLedger:
        return self._ledger or get_ledger()

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def submit(
        self,
        cart_key,
        submission_id,
        user_id=None,
        guest: GuestContact | None = None,
        guest_authorization=None,
        delivery_notes=None,
    ) -> SubmissionReceipt:
        if not submission_id:
            raise ValidationError({"submission_id": ["A submission id is required"]})

        payer = self._payer(user_id, guest)
        cart = self.storage.load(cart_key)
        if cart.is_empty():
            # A paid attempt empties the cart; its retry still answers with that order
            original = find_draft_for_submission(cart_key, submission_id, payer)
            if original is not None:
                logger.info("duplicate_submission", order_id=str(original.id), state=original.payment_state)
                return self._resume(original)
            raise ValidationError({"cart": ["Your cart is empty"]})
        if not cart.bound_location_id:
            raise ValidationError({"location_id": ["Choose a location before checking out"]})

        cart_hash = cart.content_hash()
        key = idempotency_key(cart_key, payer, cart_hash, str(submission_id))

        with submission_locks.hold(key):
            existing = find_draft_by_key(key)
            if existing is not None:
                logger.info("duplicate_submission", order_id=str(existing.id), state=existing.payment_state)
                return self._resume(existing)

            authorization = None
            if not payer.get("user_id"):
                if guest_authorization is None:
                    raise SecurityVerificationUnavailable("Security verification is required for guest checkout")
                authorization = self.verifier.verify(guest_authorization)

            self._reject_futile_lines(cart)

            order_id = str(uuid4())
            with order_locks.hold(order_id):
                current_domain.process(
                    CreateOrderDraft(
                        order_id=order_id,
                        idempotency_key=key,
                        submission_id=str(submission_id),
                        cart_key=str(cart_key),
                        cart_hash=cart_hash,
                        location_id=cart.bound_location_id,
                        lines=json.dumps(self._priced_lines(cart)),
                        payer=json.dumps(payer),
                        currency=self.settings.currency,
                        delivery_notes=delivery_notes,
                        guest_nonce=authorization.nonce if authorization else None,
                    ),
                    asynchronous=False,
                )
                logger.info("order_draft_created", order_id=order_id, cart_key=str(cart_key), total=str(cart.total()))

                if authorization is not None:
                    try:
                        self.verifier.redeem(authorization, order_id)
                    except GuestAuthorizationRejected:
                        current_domain.process(
                            RecordSubmissionFailure(order_id=order_id, reason="Guest authorization rejected"),
                            asynchronous=False,
                        )
                        raise

                return self._request_authorization(self._draft(order_id))

    def _payer(self, user_id, guest: GuestContact | None) -> dict:
        if user_id:
            payer = {"user_id": str(user_id)}
        elif guest is not None:
            payer = {"email": guest.email, "first_name": guest.first_name, "last_name": guest.last_name}
        else:
            raise ValidationError({"payer": ["Sign in or provide guest contact details"]})
        Payer(**payer)  # validates guest contact details up front
        return payer

    def _priced_lines(self, cart) -> list[dict]:
        return [
            {
                "identity_key": line.identity_key,
                "product_id": str(line.product_id),
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit_price": str(line.unit_price()),
                "options": line.selected_options(),
                "notes": line.notes,
            }
            for line in cart.lines
        ]

    def _reject_futile_lines(self, cart) -> None:
        for review in self.admission.review_cart(cart):
            if not review.available:
                raise AdmissionDenied(
                    f"{review.product_name}: {review.message}",
                    product_id=review.product_id,
                    current_stock=review.current_stock,
                )

    def _resume(self, draft: OrderDraft) -> SubmissionReceipt:
        """Answer a repeated submission with the original attempt's outcome."""
        if draft.state == PaymentState.FAILED:
            raise PaymentDeclined(draft.failure_reason or "Payment failed", order_id=str(draft.id))

        if draft.state == PaymentState.CREATED:
            # The original attempt never recorded a handle; the gateway dedupes on our key
            with order_locks.hold(str(draft.id)):
                draft = self._draft(draft.id)
                if draft.state == PaymentState.CREATED:
                    return self._request_authorization(draft, duplicate=True)

        return self._receipt(draft, duplicate=True)

    def _request_authorization(self, draft: OrderDraft, duplicate=False) -> SubmissionReceipt:
        order_id = str(draft.id)
        try:
            handle = call_with_timeout(
                self.gateway.create_authorization,
                self.settings.gateway_timeout_seconds,
                amount=draft.total(),
                currency=draft.currency,
                idempotency_key=draft.idempotency_key,
                metadata={"order_id": order_id, "order_number": draft.order_number},
            )
        except GatewayDeclined as exc:
            logger.info("payment_declined_at_creation", order_id=order_id, reason=exc.reason)
            current_domain.process(RecordSubmissionFailure(order_id=order_id, reason=exc.reason), asynchronous=False)
            raise PaymentDeclined(exc.reason, order_id=order_id) from exc
        except (GatewayError, ExternalCallTimeout) as exc:
            logger.error("payment_authorization_ambiguous", order_id=order_id, error=str(exc))
            raise PaymentAmbiguous(order_id=order_id) from exc

        current_domain.process(
            RecordAuthorizationRequested(
                order_id=order_id,
                handle_id=handle.handle_id,
                client_secret=handle.client_secret,
            ),
            asynchronous=False,
        )
        logger.info("payment_authorization_requested", order_id=order_id, handle_id=handle.handle_id)
        return self._receipt(self._draft(order_id), duplicate=duplicate)

    # -------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------
    def confirm_from_client(self, order_id, handle_id=None) -> ConfirmationResult:
        """The payer's client says the challenge is done. Ask the gateway what really happened.

        Only the draft's own authorization is ever consulted. A draft whose
        submission never recorded a handle recovers it from the gateway under
        the draft's idempotency key; a handle supplied by the client must match.
        """
        draft = self._draft(order_id)
        if draft.state == PaymentState.CREATED and not draft.authorization_handle:
            draft = self._recover_authorization(draft)
        if draft.is_paid:
            return self._confirmation(draft, SignalOutcome.DUPLICATE)
        if draft.state == PaymentState.FAILED:
            raise PaymentDeclined(draft.failure_reason or "Payment failed", order_id=str(draft.id))

        if handle_id and handle_id != draft.authorization_handle:
            logger.warning(
                "foreign_authorization_handle",
                order_id=str(draft.id),
                expected=draft.authorization_handle,
                received=handle_id,
            )
            raise ValidationError({"handle_id": ["Authorization does not belong to this order"]})
        handle_id = draft.authorization_handle

        try:
            status = call_with_timeout(
                self.gateway.retrieve_authorization,
                self.settings.gateway_timeout_seconds,
                handle_id,
            )
        except (GatewayError, ExternalCallTimeout) as exc:
            logger.warning("payment_verification_failed", order_id=str(draft.id), error=str(exc))
            raise PaymentAmbiguous(order_id=str(draft.id)) from exc

        self._check_status_matches(draft, status)
        if status.pending:
            logger.info("payment_still_pending", order_id=str(draft.id), state=status.state)
            raise PaymentAmbiguous(order_id=str(draft.id))

        outcome, draft = self._apply_signal(
            str(draft.id),
            succeeded=status.succeeded,
            source=SignalSource.CLIENT,
            reason=status.failure_reason,
            handle_id=handle_id,
        )
        if draft.state == PaymentState.FAILED:
            raise PaymentDeclined(draft.failure_reason or "Payment failed", order_id=str(draft.id))
        return self._confirmation(draft, outcome)

    def _recover_authorization(self, draft: OrderDraft) -> OrderDraft:
        with order_locks.hold(str(draft.id)):
            draft = self._draft(draft.id)
            if draft.state == PaymentState.CREATED and not draft.authorization_handle:
                self._request_authorization(draft)
        return self._draft(draft.id)

    def _check_status_matches(self, draft: OrderDraft, status: AuthorizationStatus) -> None:
        order_id = (status.metadata or {}).get("order_id")
        wrong_order = order_id is not None and str(order_id) != str(draft.id)
        wrong_amount = status.amount is not None and to_decimal(status.amount) != draft.total()
        wrong_currency = status.currency is not None and status.currency.upper() != (draft.currency or "").upper()
        if wrong_order or wrong_amount or wrong_currency:
            logger.error(
                "authorization_mismatch",
                order_id=str(draft.id),
                handle_id=status.handle_id,
                reported_order_id=order_id,
                reported_amount=str(status.amount),
                expected_amount=draft.total_amount,
            )
            raise ValidationError({"handle_id": ["Authorization does not belong to this order"]})

    def handle_gateway_event(self, event: GatewayEvent) -> SignalOutcome | None:
        """Apply a verified webhook. Unknown orders are logged and acknowledged."""
        if not (event.succeeded or event.failed):
            logger.info("webhook_ignored", event_type=event.type, handle_id=event.handle_id)
            return None

        draft = None
        if event.order_id:
            try:
                draft = self._draft(event.order_id)
            except ObjectNotFoundError:
                draft = None
        if draft is None:
            draft = find_draft_by_handle(event.handle_id)
        if draft is None:
            logger.warning("webhook_for_unknown_order", order_id=event.order_id, handle_id=event.handle_id)
            return None

        if draft.authorization_handle and draft.authorization_handle != event.handle_id:
            logger.warning(
                "webhook_handle_mismatch",
                order_id=str(draft.id),
                expected=draft.authorization_handle,
                received=event.handle_id,
            )
            return None

        outcome, _ = self._apply_signal(
            str(draft.id),
            succeeded=event.succeeded,
            source=SignalSource.WEBHOOK,
            reason=event.failure_reason,
            handle_id=event.handle_id,
        )
        return outcome

    def _apply_signal(self, order_id, succeeded, source: SignalSource, reason=None, handle_id=None):
        with order_locks.hold(order_id):
            outcome = SignalOutcome(
                current_domain.process(
                    RecordGatewaySignal(
                        order_id=order_id,
                        succeeded=succeeded,
                        source=source.value,
                        handle_id=handle_id,
                        failure_reason=reason,
                    ),
                    asynchronous=False,
                )
            )
            draft = self._draft(order_id)
            newly_authorized = outcome == SignalOutcome.APPLIED and draft.state == PaymentState.AUTHORIZED
            if newly_authorized:
                self._clear_cart(draft)

        if outcome == SignalOutcome.IGNORED_LATE_FAILURE:
            logger.warning("late_failure_after_authorization", order_id=order_id, source=source.value, reason=reason)
        elif outcome == SignalOutcome.IGNORED_AFTER_FAILURE:
            logger.error("success_after_failure", order_id=order_id, source=source.value)
        else:
            logger.info("gateway_signal_applied", order_id=order_id, source=source.value, outcome=outcome.value)

        if newly_authorized:
            self._forward_to_ledger(order_id)
            draft = self._draft(order_id)
        return outcome, draft

    def _clear_cart(self, draft: OrderDraft) -> None:
        """Empty the cart the order came from, or take out only what was bought if it changed since."""
        if not draft.cart_key:
            return
        store = CartStore(draft.cart_key, admission=self.admission, storage=self.storage)
        with cart_locks.hold(str(draft.cart_key)):
            cart = store.cart()
            if not draft.cart_hash or cart.content_hash() == draft.cart_hash:
                store.clear(reason="checkout")
                logger.info("cart_cleared_after_payment", order_id=str(draft.id), cart_key=str(draft.cart_key))
                return

            for bought in draft.lines:
                line = cart.line(bought.identity_key)
                if line is not None:
                    store.set_quantity(bought.identity_key, line.quantity - bought.quantity)
        logger.info("cart_trimmed_after_payment", order_id=str(draft.id), cart_key=str(draft.cart_key))

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def _forward_to_ledger(self, order_id) -> None:
        draft = self._draft(order_id)
        if draft.state != PaymentState.AUTHORIZED:
            return

        try:
            ack = call_with_timeout(
                self.ledger.submit_order,
                self.settings.external_call_timeout_seconds,
                draft.snapshot(),
            )
        except (LedgerUnavailable, ExternalCallTimeout) as exc:
            logger.warning("ledger_forward_failed", order_id=str(order_id), error=str(exc))
            return

        if not ack.accepted:
            logger.warning("ledger_rejected_order", order_id=str(order_id), message=ack.message)
            return
        self.acknowledge_settlement(order_id, ack.reference)

    def acknowledge_settlement(self, order_id, ledger_reference=None) -> OrderDraft:
        with order_locks.hold(str(order_id)):
            settled = current_domain.process(
                RecordSettlement(order_id=str(order_id), ledger_reference=ledger_reference),
                asynchronous=False,
            )
        if settled:
            logger.info("order_settled", order_id=str(order_id), ledger_reference=ledger_reference)
        return self._draft(order_id)

    def retry_settlement(self, order_id) -> OrderDraft:
        draft = self._draft(order_id)
        if not draft.is_paid:
            raise ValidationError({"payment_state": [f"Order is {draft.payment_state}, not authorized"]})
        self._forward_to_ledger(order_id)
        return self._draft(order_id)

    # -------------------------------------------------------------------
    # Guest access
    # -------------------------------------------------------------------
    def view_guest_order(self, order_id, token) -> OrderDraft:
        return access.view_guest_order(order_id, token)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _draft(self, order_id) -> OrderDraft:
        return current_domain.repository_for(OrderDraft).get(str(order_id))

    def _receipt(self, draft: OrderDraft, duplicate=False) -> SubmissionReceipt:
        return SubmissionReceipt(
            order_id=str(draft.id),
            order_number=draft.order_number,
            state=draft.payment_state,
            handle_id=draft.authorization_handle,
            client_secret=draft.client_secret,
            amount=draft.total_amount,
            currency=draft.currency,
            duplicate=duplicate,
        )

    def _confirmation(self, draft: OrderDraft, outcome: SignalOutcome) -> ConfirmationResult:
        return ConfirmationResult(
            order_id=str(draft.id),
            order_number=draft.order_number,
            state=draft.payment_state,
            outcome=outcome.value,
            access_token=access.issue_access_token(draft) if not draft.access_redeemed_at else None,
        )
