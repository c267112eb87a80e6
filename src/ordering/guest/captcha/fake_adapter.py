"""Configurable fake CAPTCHA verifier for development and testing."""

from ordering.guest.captcha.port import CaptchaServiceUnavailable, CaptchaVerifier


class FakeCaptchaVerifier(CaptchaVerifier):
    def __init__(self) -> None:
        self.should_pass: bool = True
        self.should_fail_service: bool = False
        self.calls: list[dict] = []

    def configure(self, should_pass: bool = True, should_fail_service: bool = False) -> None:
        self.should_pass = should_pass
        self.should_fail_service = should_fail_service

    def verify(self, token: str, action: str, remote_ip: str | None = None) -> bool:
        self.calls.append({"token": token, "action": action, "remote_ip": remote_ip})
        if self.should_fail_service:
            raise CaptchaServiceUnavailable("CAPTCHA service is unavailable")
        return self.should_pass and bool(token)
