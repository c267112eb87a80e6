"""Service settings read from the environment.

Protean's own configuration (providers, brokers, event processing) lives in
``pyproject.toml`` under ``[tool.protean]``. The values here cover the
checkout engine's collaborators: signing secrets, timeouts and adapter URLs.
"""

import os
from dataclasses import dataclass
from functools import lru_cache


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    guest_authorization_secret: str | None
    guest_authorization_ttl_seconds: int
    recaptcha_secret_key: str | None
    recaptcha_min_score: float
    captcha_adapter: str
    currency: str
    inventory_service_url: str | None
    ledger_service_url: str | None
    external_call_timeout_seconds: float
    gateway_timeout_seconds: float
    ledger_callback_secret: str | None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        guest_authorization_secret=(
            os.environ.get("GUEST_AUTHORIZATION_SECRET") or os.environ.get("JWT_SECRET") or None
        ),
        guest_authorization_ttl_seconds=_int_env("GUEST_AUTHORIZATION_TTL_SECONDS", 5 * 60),
        recaptcha_secret_key=os.environ.get("RECAPTCHA_SECRET_KEY") or None,
        recaptcha_min_score=_float_env("RECAPTCHA_MIN_SCORE", 0.5),
        captcha_adapter=os.environ.get("CAPTCHA_ADAPTER", "fake"),
        currency=os.environ.get("CHECKOUT_CURRENCY", "AUD").upper(),
        inventory_service_url=os.environ.get("INVENTORY_SERVICE_URL") or None,
        ledger_service_url=os.environ.get("LEDGER_SERVICE_URL") or None,
        external_call_timeout_seconds=_float_env("EXTERNAL_CALL_TIMEOUT_SECONDS", 5.0),
        gateway_timeout_seconds=_float_env("GATEWAY_TIMEOUT_SECONDS", 15.0),
        ledger_callback_secret=os.environ.get("LEDGER_CALLBACK_SECRET") or None,
    )


def reset_settings() -> None:
    """Drop the cached settings so the next read picks up environment changes."""
    get_settings.cache_clear()
