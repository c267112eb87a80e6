"""Inventory service factory.

Provides get_inventory_service() / set_inventory_service() to swap
implementations:
- HttpInventoryService when INVENTORY_SERVICE_URL is configured
- FakeInventoryService otherwise (development and testing)
"""

from ordering.config import get_settings
from ordering.inventory.fake_adapter import FakeInventoryService
from ordering.inventory.http_adapter import HttpInventoryService
from ordering.inventory.port import InventoryService

_current_service: InventoryService | None = None


def get_inventory_service() -> InventoryService:
    global _current_service
    if _current_service is None:
        settings = get_settings()
        if settings.inventory_service_url:
            _current_service = HttpInventoryService(
                settings.inventory_service_url,
                timeout=settings.external_call_timeout_seconds,
            )
        else:
            _current_service = FakeInventoryService()
    return _current_service


def set_inventory_service(service: InventoryService) -> None:
    global _current_service
    _current_service = service


def reset_inventory_service() -> None:
    global _current_service
    _current_service = None
