"""Client-side guest authorization cache.

The payer's client keeps its current guest authorization in durable storage
(any key-value mapping that survives a reload) and reuses it until it
expires, so the guest is not asked to prove themselves again on every
attempt. An expired authorization is replaced silently on the next attempt.
"""

import json
import threading
from collections.abc import Callable, MutableMapping
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from ordering.errors import GuestAuthorizationRejected, SecurityVerificationUnavailable
from ordering.guest.authorization import GuestAuthorization
from ordering.guest.captcha.port import GUEST_CHECKOUT_ACTION, CaptchaServiceUnavailable
from ordering.guest.issuance import IssueGuestAuthorization

logger = structlog.get_logger(__name__)

STORAGE_KEY = "guest_authorization"


def exchange_in_process(captcha_token: str) -> dict:
    """Exchange a CAPTCHA proof with the issuer running in this process."""
    return current_domain.process(IssueGuestAuthorization(captcha_token=captcha_token), asynchronous=False)


class GuestAuthorizationProvider:
    def __init__(
        self,
        obtain_proof: Callable[[str], str],
        exchange: Callable[[str], dict] = exchange_in_process,
        storage: MutableMapping | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.obtain_proof = obtain_proof
        self.exchange = exchange
        self.storage = storage if storage is not None else {}
        self.clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()

    def cached(self) -> GuestAuthorization | None:
        raw = self.storage.get(STORAGE_KEY)
        if not raw:
            return None
        try:
            return GuestAuthorization.from_dict(json.loads(raw) if isinstance(raw, str) else raw)
        except (GuestAuthorizationRejected, ValueError):
            self.storage.pop(STORAGE_KEY, None)
            return None

    def ensure_authorization(self) -> GuestAuthorization:
        with self._lock:
            cached = self.cached()
            if cached and not cached.is_expired(self.clock()):
                return cached
            if cached:
                logger.info("guest_authorization_reacquired", nonce=cached.nonce)

            try:
                proof = self.obtain_proof(GUEST_CHECKOUT_ACTION)
                authorization = GuestAuthorization.from_dict(self.exchange(proof))
            except CaptchaServiceUnavailable as exc:
                raise SecurityVerificationUnavailable(
                    "Security verification is unavailable right now. Please try again shortly."
                ) from exc
            except GuestAuthorizationRejected as exc:
                raise SecurityVerificationUnavailable("Security verification returned an invalid response") from exc

            self.storage[STORAGE_KEY] = json.dumps(authorization.to_dict())
            return authorization

    def invalidate(self) -> None:
        """Forget the cached authorization, e.g. once it has been redeemed."""
        with self._lock:
            self.storage.pop(STORAGE_KEY, None)
