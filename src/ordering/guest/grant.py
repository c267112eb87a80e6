"""GuestGrant aggregate: server-side record of an issued guest authorization.

The signed token travels with the guest; the grant stays here and remembers
whether the token has been spent. A nonce the server never issued, or one
already redeemed, is refused even if its signature is valid.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering
from ordering.guest.events import GuestAuthorizationIssued, GuestAuthorizationRedeemed


class GrantStatus(Enum):
    ISSUED = "Issued"
    REDEEMED = "Redeemed"


@ordering.aggregate
class GuestGrant:
    nonce = String(identifier=True, max_length=64)
    action = String(max_length=50)
    status = String(choices=GrantStatus, default=GrantStatus.ISSUED.value)
    issued_at = DateTime(required=True)
    expires_at = DateTime(required=True)
    redeemed_at = DateTime()
    order_id = Identifier()

    @classmethod
    def record(cls, authorization, action):
        grant = cls(
            nonce=authorization.nonce,
            action=action,
            status=GrantStatus.ISSUED.value,
            issued_at=authorization.issued_at,
            expires_at=authorization.expires_at,
        )
        grant.raise_(
            GuestAuthorizationIssued(
                nonce=grant.nonce,
                action=action,
                issued_at=authorization.issued_at,
                expires_at=authorization.expires_at,
            )
        )
        return grant

    @property
    def redeemed(self) -> bool:
        return self.status == GrantStatus.REDEEMED.value

    def redeem(self, order_id, now=None):
        if self.redeemed:
            raise ValidationError({"nonce": ["Guest authorization has already been used"]})

        now = now or datetime.now(UTC)
        self.status = GrantStatus.REDEEMED.value
        self.redeemed_at = now
        self.order_id = order_id

        self.raise_(GuestAuthorizationRedeemed(nonce=self.nonce, order_id=str(order_id), redeemed_at=now))
