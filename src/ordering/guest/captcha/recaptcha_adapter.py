"""Google reCAPTCHA v3 verifier.

A token passes when siteverify reports success for the expected action with
a score at or above the configured minimum.
"""

import requests
import structlog

from ordering.guest.captcha.port import CaptchaServiceUnavailable, CaptchaVerifier

logger = structlog.get_logger(__name__)

SITEVERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaVerifier(CaptchaVerifier):
    def __init__(
        self,
        secret_key: str | None,
        min_score: float = 0.5,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.min_score = min_score
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, token: str, action: str, remote_ip: str | None = None) -> bool:
        if not self.secret_key:
            raise CaptchaServiceUnavailable("RECAPTCHA_SECRET_KEY is not configured")
        if not token:
            return False

        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = self.session.post(SITEVERIFY_URL, data=data, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("captcha_verification_failed", error=str(exc))
            raise CaptchaServiceUnavailable(str(exc)) from exc

        if not result.get("success"):
            logger.warning("captcha_rejected", error_codes=result.get("error-codes"))
            return False
        if result.get("action") != action:
            logger.warning("captcha_action_mismatch", expected=action, actual=result.get("action"))
            return False

        score = float(result.get("score", 0.0))
        if score < self.min_score:
            logger.warning("captcha_score_too_low", score=score, min_score=self.min_score)
            return False

        return True
