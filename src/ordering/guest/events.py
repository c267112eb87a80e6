"""Domain events for the GuestGrant aggregate."""

from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="GuestGrant")
class GuestAuthorizationIssued:
    __version__ = 1

    nonce = Identifier(required=True)
    action = String(max_length=50)
    issued_at = DateTime(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="GuestGrant")
class GuestAuthorizationRedeemed:
    """A guest authorization was spent on an order. It can never be used again."""

    __version__ = 1

    nonce = Identifier(required=True)
    order_id = Identifier(required=True)
    redeemed_at = DateTime(required=True)
