"""Inventory service over HTTP.

POST {base_url}/inventory/check-availability
    {"items": [{"menuItemId", "locationId", "quantity"}]}
  -> {"results": [{"available", "currentStock"}]}
"""

import requests
import structlog

from ordering.inventory.port import (
    AvailabilityRequest,
    AvailabilityResult,
    InventoryService,
    InventoryServiceUnavailable,
)

logger = structlog.get_logger(__name__)


class HttpInventoryService(InventoryService):
    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def check_availability(self, requests_: list[AvailabilityRequest]) -> list[AvailabilityResult]:
        payload = {
            "items": [
                {"menuItemId": r.product_id, "locationId": r.location_id, "quantity": r.quantity} for r in requests_
            ]
        }
        try:
            response = self.session.post(
                f"{self.base_url}/inventory/check-availability",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("inventory_check_failed", error=str(exc), items=len(requests_))
            raise InventoryServiceUnavailable(str(exc)) from exc

        results = body.get("results") or []
        if len(results) != len(requests_):
            raise InventoryServiceUnavailable("Inventory service returned a mismatched result set")

        return [
            AvailabilityResult(available=bool(r.get("available")), current_stock=int(r.get("currentStock", -1)))
            for r in results
        ]
