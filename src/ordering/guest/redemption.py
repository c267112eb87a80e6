"""Guest authorization verification and redemption.

Checks run in a fixed order: signature, expiry, known nonce, checkout action,
unspent. Every failure closes the door. Redemption is a compare-and-set on the
grant under a per-nonce lock, so two checkouts racing with one token cannot both win.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import (
    GuestAuthorizationExpired,
    GuestAuthorizationRejected,
    GuestAuthorizationReplayed,
)
from ordering.guest.authorization import GuestAuthorization, GuestAuthorizationSigner
from ordering.guest.captcha.port import GUEST_CHECKOUT_ACTION
from ordering.guest.grant import GuestGrant
from ordering.utils.locks import grant_locks

logger = structlog.get_logger(__name__)


@ordering.command(part_of="GuestGrant")
class RedeemGuestAuthorization:
    nonce = String(required=True, max_length=64)
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=GuestGrant)
class RedeemGuestAuthorizationHandler:
    @handle(RedeemGuestAuthorization)
    def redeem(self, command):
        repo = current_domain.repository_for(GuestGrant)
        grant = repo.get(command.nonce)
        if grant.redeemed:
            raise GuestAuthorizationReplayed("This guest authorization has already been used")
        grant.redeem(order_id=command.order_id)
        repo.add(grant)


class GuestAuthorizationVerifier:
    def __init__(self, signer: GuestAuthorizationSigner | None = None):
        self._signer = signer

    @property
    def signer(self) -> GuestAuthorizationSigner:
        return self._signer or GuestAuthorizationSigner.from_settings()

    def verify(self, authorization, now: datetime | None = None) -> GuestAuthorization:
        """Validate without spending. Returns the parsed authorization."""
        if isinstance(authorization, dict):
            authorization = GuestAuthorization.from_dict(authorization)

        if not self.signer.signature_valid(authorization):
            logger.warning("guest_authorization_bad_signature", nonce=authorization.nonce)
            raise GuestAuthorizationRejected("Guest authorization is invalid")

        if authorization.is_expired(now or datetime.now(UTC)):
            raise GuestAuthorizationExpired("Guest authorization has expired. Please verify again.")

        try:
            grant = current_domain.repository_for(GuestGrant).get(authorization.nonce)
        except ObjectNotFoundError as exc:
            logger.warning("guest_authorization_unknown_nonce", nonce=authorization.nonce)
            raise GuestAuthorizationRejected("Guest authorization is invalid") from exc

        if grant.action != GUEST_CHECKOUT_ACTION:
            logger.warning("guest_authorization_wrong_action", nonce=authorization.nonce, action=grant.action)
            raise GuestAuthorizationRejected("Guest authorization is invalid")

        if grant.redeemed:
            logger.warning("guest_authorization_replay", nonce=authorization.nonce, order_id=grant.order_id)
            raise GuestAuthorizationReplayed("This guest authorization has already been used")

        return authorization

    def redeem(self, authorization, order_id, now: datetime | None = None) -> GuestAuthorization:
        """Spend the authorization on ``order_id``. Succeeds at most once per nonce."""
        if isinstance(authorization, dict):
            authorization = GuestAuthorization.from_dict(authorization)

        with grant_locks.hold(authorization.nonce):
            self.verify(authorization, now=now)
            current_domain.process(
                RedeemGuestAuthorization(nonce=authorization.nonce, order_id=str(order_id)),
                asynchronous=False,
            )

        logger.info("guest_authorization_redeemed", nonce=authorization.nonce, order_id=str(order_id))
        return authorization
