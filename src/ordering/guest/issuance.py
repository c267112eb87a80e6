"""Guest authorization issuance: command and handler.

Exchanges a one-time CAPTCHA proof for a signed, short-lived guest
authorization. Any problem on the way (no signing secret, CAPTCHA service
down, proof rejected) is a ``SecurityVerificationUnavailable``: the guest
cannot attempt checkout, which is different from a declined payment.
"""

import structlog
from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import SecurityVerificationUnavailable
from ordering.guest.authorization import GuestAuthorizationSigner
from ordering.guest.captcha import get_captcha_verifier
from ordering.guest.captcha.port import GUEST_CHECKOUT_ACTION, CaptchaServiceUnavailable
from ordering.guest.grant import GuestGrant

logger = structlog.get_logger(__name__)


@ordering.command(part_of="GuestGrant")
class IssueGuestAuthorization:
    captcha_token = String(required=True, max_length=4000)
    remote_ip = String(max_length=64)


@ordering.command_handler(part_of=GuestGrant)
class IssueGuestAuthorizationHandler:
    @handle(IssueGuestAuthorization)
    def issue(self, command):
        signer = GuestAuthorizationSigner.from_settings()

        try:
            passed = get_captcha_verifier().verify(command.captcha_token, GUEST_CHECKOUT_ACTION, command.remote_ip)
        except CaptchaServiceUnavailable as exc:
            raise SecurityVerificationUnavailable(
                "Security verification is unavailable right now. Please try again shortly."
            ) from exc

        if not passed:
            logger.warning("guest_authorization_refused", action=GUEST_CHECKOUT_ACTION, remote_ip=command.remote_ip)
            raise SecurityVerificationUnavailable("Security verification failed. Please try again.")

        authorization = signer.issue()
        current_domain.repository_for(GuestGrant).add(GuestGrant.record(authorization, GUEST_CHECKOUT_ACTION))

        logger.info("guest_authorization_issued", nonce=authorization.nonce, expires_at=authorization.expires_at)
        return authorization.to_dict()
