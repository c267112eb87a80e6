"""Guest order access.

A guest has no account to look their order up with, so a paid guest order
comes with a single-use credential scoped to that one order:

    token = hex(HMAC_SHA256(secret, "guest_order_access:{order_id}:{access_nonce}"))

The nonce is generated when the order is authorized and stored on it. The
token is honoured once; after that the order is only reachable through
support or the confirmation email.
"""

import hashlib
import hmac

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.config import get_settings
from ordering.domain import ordering
from ordering.errors import OrderAccessDenied, SecurityVerificationUnavailable
from ordering.order.order import OrderDraft
from ordering.utils.locks import order_locks

logger = structlog.get_logger(__name__)

ACCESS_SCOPE = "guest_order_access"


def _secret() -> bytes:
    secret = get_settings().guest_authorization_secret
    if not secret:
        raise SecurityVerificationUnavailable("Security verification is not configured")
    return secret.encode("utf-8")


def access_token_for(order_id, access_nonce) -> str:
    message = f"{ACCESS_SCOPE}:{order_id}:{access_nonce}"
    return hmac.new(_secret(), message.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_access_token(draft: OrderDraft) -> str | None:
    """The access credential for a paid guest order, or None for account holders."""
    if not draft.payer.is_guest or not draft.access_nonce:
        return None
    return access_token_for(draft.id, draft.access_nonce)


@ordering.command(part_of="OrderDraft")
class RedeemOrderAccess:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=OrderDraft)
class RedeemOrderAccessHandler:
    @handle(RedeemOrderAccess)
    def redeem_order_access(self, command):
        repo = current_domain.repository_for(OrderDraft)
        draft = repo.get(command.order_id)
        try:
            draft.redeem_guest_access()
        except ValidationError as exc:
            raise OrderAccessDenied("This order link has already been used") from exc
        repo.add(draft)


def view_guest_order(order_id, token) -> OrderDraft:
    """Redeem a guest access token and return the order it unlocks."""
    with order_locks.hold(str(order_id)):
        try:
            draft = current_domain.repository_for(OrderDraft).get(str(order_id))
        except ObjectNotFoundError as exc:
            raise OrderAccessDenied("Order not found or link is invalid") from exc

        if not draft.access_nonce or not token:
            raise OrderAccessDenied("Order not found or link is invalid")
        if not hmac.compare_digest(access_token_for(draft.id, draft.access_nonce), str(token)):
            logger.warning("guest_order_access_bad_token", order_id=str(order_id))
            raise OrderAccessDenied("Order not found or link is invalid")
        if draft.access_redeemed_at:
            raise OrderAccessDenied("This order link has already been used")

        current_domain.process(RedeemOrderAccess(order_id=str(order_id)), asynchronous=False)

    logger.info("guest_order_access_redeemed", order_id=str(order_id))
    return current_domain.repository_for(OrderDraft).get(str(order_id))
