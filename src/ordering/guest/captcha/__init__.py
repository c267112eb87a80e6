"""CAPTCHA verifier factory.

CAPTCHA_ADAPTER=recaptcha selects Google reCAPTCHA v3; anything else uses the
fake verifier.
"""

from ordering.config import get_settings
from ordering.guest.captcha.fake_adapter import FakeCaptchaVerifier
from ordering.guest.captcha.port import CaptchaVerifier
from ordering.guest.captcha.recaptcha_adapter import RecaptchaVerifier

_current_verifier: CaptchaVerifier | None = None


def get_captcha_verifier() -> CaptchaVerifier:
    global _current_verifier
    if _current_verifier is None:
        settings = get_settings()
        if settings.captcha_adapter == "recaptcha":
            _current_verifier = RecaptchaVerifier(
                settings.recaptcha_secret_key,
                min_score=settings.recaptcha_min_score,
                timeout=settings.external_call_timeout_seconds,
            )
        else:
            _current_verifier = FakeCaptchaVerifier()
    return _current_verifier


def set_captcha_verifier(verifier: CaptchaVerifier) -> None:
    global _current_verifier
    _current_verifier = verifier


def reset_captcha_verifier() -> None:
    global _current_verifier
    _current_verifier = None
