"""Inventory admission control.

A pre-flight stock check run before the cart grows. It only filters out
obviously futile additions; stock is decided for real when the order is
booked downstream. When the inventory service cannot answer, admission is
granted: an occasional oversell is cheaper than blocking the cart on an
optional check.
"""

from dataclasses import dataclass

import structlog

from ordering.inventory import get_inventory_service
from ordering.inventory.port import (
    UNTRACKED_STOCK,
    AvailabilityRequest,
    AvailabilityResult,
    InventoryService,
    InventoryServiceUnavailable,
)

logger = structlog.get_logger(__name__)


def describe_stock(current_stock: int) -> str:
    if current_stock == UNTRACKED_STOCK:
        return "This item is currently unavailable"
    if current_stock <= 0:
        return "Sold out at this location"
    return f"Only {current_stock} available in stock"


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    reason: str | None = None
    current_stock: int | None = None
    checked: bool = True  # False when the service could not answer


@dataclass(frozen=True)
class LineReview:
    identity_key: str
    product_id: str
    product_name: str
    available: bool
    current_stock: int
    message: str | None = None


class AdmissionCheck:
    def __init__(self, service: InventoryService | None = None) -> None:
        self._service = service

    @property
    def service(self) -> InventoryService:
        return self._service or get_inventory_service()

    def check_availability(self, requests: list[AvailabilityRequest]) -> list[AvailabilityResult]:
        if not requests:
            return []
        return self.service.check_availability(requests)

    def admit(self, product_id, location_id, desired_quantity) -> AdmissionDecision:
        """Decide whether the cart may hold ``desired_quantity`` of a product. Never raises."""
        request = AvailabilityRequest(
            product_id=str(product_id),
            location_id=str(location_id),
            quantity=desired_quantity,
        )
        try:
            [result] = self.check_availability([request])
        except (InventoryServiceUnavailable, ValueError) as exc:
            logger.warning(
                "admission_check_skipped",
                product_id=str(product_id),
                location_id=str(location_id),
                error=str(exc),
            )
            return AdmissionDecision(admitted=True, checked=False)

        if result.available:
            return AdmissionDecision(admitted=True, current_stock=result.current_stock)

        logger.info(
            "admission_denied",
            product_id=str(product_id),
            location_id=str(location_id),
            desired_quantity=desired_quantity,
            current_stock=result.current_stock,
        )
        return AdmissionDecision(
            admitted=False,
            reason=describe_stock(result.current_stock),
            current_stock=result.current_stock,
        )

    def review_cart(self, cart) -> list[LineReview]:
        """Advisory per-line stock review of a bound cart.

        Lines of the same product share stock, so each product is checked
        for the quantity summed across its lines. Returns an empty list when
        the cart is empty or the service cannot answer.
        """
        if cart.is_empty():
            return []

        totals: dict[str, int] = {}
        for line in cart.lines:
            totals[str(line.product_id)] = totals.get(str(line.product_id), 0) + line.quantity

        product_ids = list(totals)
        requests = [
            AvailabilityRequest(product_id=pid, location_id=str(cart.bound_location_id), quantity=totals[pid])
            for pid in product_ids
        ]
        try:
            results = dict(zip(product_ids, self.check_availability(requests), strict=True))
        except (InventoryServiceUnavailable, ValueError) as exc:
            logger.warning("cart_review_skipped", cart_key=cart.cart_key, error=str(exc))
            return []

        return [
            LineReview(
                identity_key=line.identity_key,
                product_id=str(line.product_id),
                product_name=line.product_name,
                available=results[str(line.product_id)].available,
                current_stock=results[str(line.product_id)].current_stock,
                message=(
                    None
                    if results[str(line.product_id)].available
                    else describe_stock(results[str(line.product_id)].current_stock)
                ),
            )
            for line in cart.lines
        ]
