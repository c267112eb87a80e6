"""Order ledger factory.

HttpOrderLedger when LEDGER_SERVICE_URL is configured, FakeLedger otherwise.
"""

from ordering.config import get_settings
from ordering.ledger.fake_adapter import FakeLedger
from ordering.ledger.http_adapter import HttpOrderLedger
from ordering.ledger.port import OrderLedger

_current_ledger: OrderLedger | None = None


def get_ledger() -> OrderLedger:
    global _current_ledger
    if _current_ledger is None:
        settings = get_settings()
        if settings.ledger_service_url:
            _current_ledger = HttpOrderLedger(
                settings.ledger_service_url,
                timeout=settings.external_call_timeout_seconds,
            )
        else:
            _current_ledger = FakeLedger()
    return _current_ledger


def set_ledger(ledger: OrderLedger) -> None:
    global _current_ledger
    _current_ledger = ledger


def reset_ledger() -> None:
    global _current_ledger
    _current_ledger = None
