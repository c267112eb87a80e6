"""Configurable fake order ledger for development and testing."""

from uuid import uuid4

from ordering.ledger.port import LedgerAck, LedgerUnavailable, OrderLedger


class FakeLedger(OrderLedger):
    def __init__(self) -> None:
        self.should_accept: bool = True
        self.should_fail: bool = False
        self.calls: list[dict] = []
        self.booked: dict[str, str] = {}  # order_id -> reference

    def configure(self, should_accept: bool = True, should_fail: bool = False) -> None:
        self.should_accept = should_accept
        self.should_fail = should_fail

    def submit_order(self, snapshot: dict) -> LedgerAck:
        self.calls.append(snapshot)
        if self.should_fail:
            raise LedgerUnavailable("Ledger is unavailable")
        if not self.should_accept:
            return LedgerAck(accepted=False, message="Order could not be booked")

        order_id = str(snapshot["order_id"])
        reference = self.booked.setdefault(order_id, f"LEDGER-{uuid4().hex[:10].upper()}")
        return LedgerAck(accepted=True, reference=reference)
