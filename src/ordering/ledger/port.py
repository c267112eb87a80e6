"""Order ledger port (abstract interface).

The ledger (fulfillment booking) receives every order once its payment is
authorized. Its acknowledgment moves the order to settled, but a missing
acknowledgment never undoes a successful payment.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LedgerUnavailable(Exception):
    """The ledger could not be reached or answered with an error."""


@dataclass(frozen=True)
class LedgerAck:
    accepted: bool
    reference: str | None = None
    message: str | None = None


class OrderLedger(ABC):
    @abstractmethod
    def submit_order(self, snapshot: dict) -> LedgerAck:
        """Book an authorized order. Must be idempotent on ``snapshot["order_id"]``."""
        ...
