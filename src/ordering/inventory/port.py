"""Inventory service port (abstract interface).

Stock is owned by the inventory service. The cart asks it, before mutating,
whether a desired quantity looks fulfillable. The answer is advisory: it is
not a reservation and may be stale by the time the order is placed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

# currentStock reported for products the service does not track or has
# withdrawn. Distinct from 0, which means tracked and sold out.
UNTRACKED_STOCK = -1


class InventoryServiceUnavailable(Exception):
    """The inventory service could not be reached or answered with an error."""


@dataclass(frozen=True)
class AvailabilityRequest:
    product_id: str
    location_id: str
    quantity: int


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    current_stock: int

    @property
    def untracked(self) -> bool:
        return self.current_stock == UNTRACKED_STOCK


class InventoryService(ABC):
    @abstractmethod
    def check_availability(self, requests: list[AvailabilityRequest]) -> list[AvailabilityResult]:
        """One result per request, in request order."""
        ...
