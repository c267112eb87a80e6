"""Order draft creation: command and handler."""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import OrderDraft


@ordering.command(part_of="OrderDraft")
class CreateOrderDraft:
    order_id = Identifier(required=True)
    idempotency_key = String(required=True, max_length=64)
    submission_id = String(max_length=255)
    cart_key = Identifier()
    cart_hash = String(max_length=64)
    location_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of priced line dicts
    payer = Text(required=True)  # JSON: {user_id} or {email, first_name, last_name}
    currency = String(max_length=3, default="AUD")
    delivery_notes = Text()
    guest_nonce = String(max_length=64)


@ordering.command_handler(part_of=OrderDraft)
class CreateOrderDraftHandler:
    @handle(CreateOrderDraft)
    def create_order_draft(self, command):
        lines_data = json.loads(command.lines) if isinstance(command.lines, str) else command.lines
        payer = json.loads(command.payer) if isinstance(command.payer, str) else command.payer

        draft = OrderDraft.create(
            order_id=command.order_id,
            idempotency_key=command.idempotency_key,
            location_id=command.location_id,
            lines_data=lines_data,
            payer=payer,
            currency=command.currency or "AUD",
            submission_id=command.submission_id,
            cart_key=command.cart_key,
            cart_hash=command.cart_hash,
            delivery_notes=command.delivery_notes,
            guest_nonce=command.guest_nonce,
        )
        current_domain.repository_for(OrderDraft).add(draft)
        return str(draft.id)
