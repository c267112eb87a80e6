"""Order ledger over HTTP.

POST {base_url}/orders  (order snapshot as JSON)
  -> {"accepted": bool, "reference": str}
"""

import requests
import structlog

from ordering.ledger.port import LedgerAck, LedgerUnavailable, OrderLedger

logger = structlog.get_logger(__name__)


class HttpOrderLedger(OrderLedger):
    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def submit_order(self, snapshot: dict) -> LedgerAck:
        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json=snapshot,
                headers={"Idempotency-Key": str(snapshot["order_id"])},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("ledger_submit_failed", order_id=snapshot.get("order_id"), error=str(exc))
            raise LedgerUnavailable(str(exc)) from exc

        return LedgerAck(
            accepted=bool(body.get("accepted")),
            reference=body.get("reference"),
            message=body.get("message"),
        )
