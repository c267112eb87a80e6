"""Configurable fake inventory service for development and testing.

Stock is set per (product, location); anything else gets ``default_stock``.
A ``None`` default reports unknown products as untracked and unavailable.
"""

from ordering.inventory.port import (
    UNTRACKED_STOCK,
    AvailabilityRequest,
    AvailabilityResult,
    InventoryService,
    InventoryServiceUnavailable,
)


class FakeInventoryService(InventoryService):
    def __init__(self, default_stock: int | None = 99) -> None:
        self.stock: dict[tuple[str, str], int] = {}
        self.default_stock = default_stock  # None: unknown products are untracked
        self.should_fail: bool = False
        self.calls: list[list[AvailabilityRequest]] = []

    def set_stock(self, product_id: str, location_id: str, quantity: int) -> None:
        self.stock[(str(product_id), str(location_id))] = quantity

    def configure(self, should_fail: bool = False, default_stock: int | None = 99) -> None:
        self.should_fail = should_fail
        self.default_stock = default_stock

    def check_availability(self, requests: list[AvailabilityRequest]) -> list[AvailabilityResult]:
        self.calls.append(list(requests))
        if self.should_fail:
            raise InventoryServiceUnavailable("Inventory service is unavailable")

        results = []
        for request in requests:
            stock = self.stock.get((str(request.product_id), str(request.location_id)), self.default_stock)
            if stock is None or stock == UNTRACKED_STOCK:
                results.append(AvailabilityResult(available=False, current_stock=UNTRACKED_STOCK))
            else:
                results.append(AvailabilityResult(available=stock >= request.quantity, current_stock=stock))
        return results
