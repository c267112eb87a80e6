"""Domain events for the OrderDraft aggregate.

Every payment state change raises one event. Anomalous gateway signals
(a failure after authorization, a success after failure) are recorded as
events too, so a refund or support workflow can pick them up.
"""

from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="OrderDraft")
class OrderDraftCreated:
    """An order was created from a frozen snapshot of the cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    location_id = Identifier(required=True)
    total_amount = String(required=True, max_length=32)
    currency = String(max_length=3)
    payer_kind = String(max_length=10)
    created_at = DateTime(required=True)


@ordering.event(part_of="OrderDraft")
class PaymentAuthorizationRequested:
    __version__ = 1

    order_id = Identifier(required=True)
    handle_id = String(max_length=255)


@ordering.event(part_of="OrderDraft")
class PaymentAuthorized:
    """The gateway authorized the payment. The first signal to arrive wins."""

    __version__ = 1

    order_id = Identifier(required=True)
    handle_id = String(max_length=255)
    source = String(max_length=20)
    authorized_at = DateTime(required=True)


@ordering.event(part_of="OrderDraft")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(max_length=500)
    source = String(max_length=20)
    failed_at = DateTime(required=True)


@ordering.event(part_of="OrderDraft")
class GatewaySignalAnomaly:
    """A gateway signal contradicted a terminal decision and was ignored."""

    __version__ = 1

    order_id = Identifier(required=True)
    kind = String(required=True, max_length=50)
    source = String(max_length=20)
    payment_state = String(max_length=20)
    reason = String(max_length=500)


@ordering.event(part_of="OrderDraft")
class OrderSettled:
    """The ledger acknowledged the order as bookable."""

    __version__ = 1

    order_id = Identifier(required=True)
    ledger_reference = String(max_length=255)
    settled_at = DateTime(required=True)


@ordering.event(part_of="OrderDraft")
class GuestOrderAccessRedeemed:
    __version__ = 1

    order_id = Identifier(required=True)
    redeemed_at = DateTime(required=True)
