"""CAPTCHA verification port (abstract interface)."""

from abc import ABC, abstractmethod

GUEST_CHECKOUT_ACTION = "guest_checkout"


class CaptchaServiceUnavailable(Exception):
    """The verification service could not be reached or is not configured."""


class CaptchaVerifier(ABC):
    @abstractmethod
    def verify(self, token: str, action: str, remote_ip: str | None = None) -> bool:
        """True when ``token`` is a fresh proof for ``action``."""
        ...
