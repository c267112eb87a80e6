"""Location directory port (abstract interface).

The directory is owned by menu management; the cart only needs to know which
locations a user may order from, which products each location serves, and
the priced menu entry for a product.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


class DirectoryUnavailable(Exception):
    """The directory could not be reached or answered with an error."""


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    address: str | None = None


@dataclass(frozen=True)
class MenuOption:
    id: str
    name: str
    price_modifier: Decimal = Decimal("0")


@dataclass(frozen=True)
class OptionGroup:
    id: str
    name: str
    options: tuple[MenuOption, ...] = ()
    required: bool = False
    multi_select: bool = False

    def option(self, option_id: str) -> MenuOption | None:
        return next((o for o in self.options if o.id == option_id), None)


@dataclass(frozen=True)
class MenuProduct:
    id: str
    name: str
    base_price: Decimal
    option_groups: tuple[OptionGroup, ...] = field(default_factory=tuple)

    def group(self, group_id: str) -> OptionGroup | None:
        return next((g for g in self.option_groups if g.id == group_id), None)


class LocationDirectory(ABC):
    @abstractmethod
    def list_accessible_locations(self, auth_context: dict | None) -> list[Location]:
        """Locations the caller may order from."""
        ...

    @abstractmethod
    def list_available_product_ids(self, location_id: str) -> set[str]:
        """Ids of the products on the menu at ``location_id``."""
        ...

    @abstractmethod
    def get_product(self, product_id: str) -> MenuProduct | None:
        """The current menu entry for ``product_id`` or None if it is not sold."""
        ...
