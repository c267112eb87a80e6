"""Guest authorization tokens.

A guest authorization proves that an unauthenticated checkout passed bot
mitigation a short while ago. It is a random nonce plus its validity window,
signed with HMAC-SHA256 under a server secret:

    signature = hex(HMAC_SHA256(secret, "{nonce}:{issuedAtMs}:{expiresAtMs}"))

On the wire the timestamps are epoch milliseconds. Single use is enforced
separately by the grant record kept per nonce.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from ordering.config import get_settings
from ordering.errors import GuestAuthorizationRejected, SecurityVerificationUnavailable

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)


def to_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // _MILLISECOND


def from_millis(value) -> datetime:
    return _EPOCH + int(value) * _MILLISECOND


def _truncate_to_millis(moment: datetime) -> datetime:
    return from_millis(to_millis(moment))


@dataclass(frozen=True)
class GuestAuthorization:
    nonce: str
    issued_at: datetime
    expires_at: datetime
    signature: str

    def is_expired(self, now: datetime | None = None) -> bool:
        """Evaluated when the authorization is used, never at issuance."""
        return (now or datetime.now(UTC)) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "nonce": self.nonce,
            "issuedAt": to_millis(self.issued_at),
            "expiresAt": to_millis(self.expires_at),
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GuestAuthorization":
        try:
            return cls(
                nonce=str(data["nonce"]),
                issued_at=from_millis(data["issuedAt"]),
                expires_at=from_millis(data["expiresAt"]),
                signature=str(data["signature"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise GuestAuthorizationRejected("Guest authorization is malformed") from exc


class GuestAuthorizationSigner:
    def __init__(self, secret: str, ttl_seconds: int = 300):
        if not secret:
            raise SecurityVerificationUnavailable("Security verification is not configured")
        self._secret = secret.encode("utf-8")
        self.ttl = timedelta(seconds=ttl_seconds)

    @classmethod
    def from_settings(cls) -> "GuestAuthorizationSigner":
        settings = get_settings()
        return cls(settings.guest_authorization_secret, settings.guest_authorization_ttl_seconds)

    def sign(self, nonce: str, issued_at: datetime, expires_at: datetime) -> str:
        message = f"{nonce}:{to_millis(issued_at)}:{to_millis(expires_at)}"
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def issue(self, now: datetime | None = None) -> GuestAuthorization:
        issued_at = _truncate_to_millis(now or datetime.now(UTC))
        expires_at = issued_at + self.ttl
        nonce = secrets.token_hex(16)
        return GuestAuthorization(
            nonce=nonce,
            issued_at=issued_at,
            expires_at=expires_at,
            signature=self.sign(nonce, issued_at, expires_at),
        )

    def signature_valid(self, authorization: GuestAuthorization) -> bool:
        expected = self.sign(authorization.nonce, authorization.issued_at, authorization.expires_at)
        return hmac.compare_digest(expected, authorization.signature)
