"""In-memory location directory for development and testing.

Holds locations, per-location menus and priced products in dictionaries.
It can be told to fail so callers can exercise the unavailable path.
"""

from ordering.location.port import DirectoryUnavailable, Location, LocationDirectory, MenuProduct


class InMemoryLocationDirectory(LocationDirectory):
    def __init__(self) -> None:
        self.locations: dict[str, Location] = {}
        self.menus: dict[str, set[str]] = {}
        self.products: dict[str, MenuProduct] = {}
        self.assignments: dict[str, set[str]] = {}  # user_id -> location ids
        self.should_fail: bool = False
        self.calls: list[dict] = []

    def add_location(self, location: Location, product_ids=()) -> None:
        self.locations[location.id] = location
        self.menus.setdefault(location.id, set()).update(product_ids)

    def add_product(self, product: MenuProduct, location_ids=()) -> None:
        self.products[product.id] = product
        for location_id in location_ids:
            self.menus.setdefault(location_id, set()).add(product.id)

    def assign_user(self, user_id: str, location_ids) -> None:
        self.assignments[user_id] = set(location_ids)

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.should_fail:
            raise DirectoryUnavailable("Location directory is unavailable")

    def list_accessible_locations(self, auth_context: dict | None) -> list[Location]:
        self._record("list_accessible_locations", auth_context=auth_context)
        user_id = (auth_context or {}).get("user_id")
        allowed = self.assignments.get(user_id) if user_id else None
        return [loc for loc_id, loc in self.locations.items() if allowed is None or loc_id in allowed]

    def list_available_product_ids(self, location_id: str) -> set[str]:
        self._record("list_available_product_ids", location_id=location_id)
        return set(self.menus.get(location_id, set()))

    def get_product(self, product_id: str) -> MenuProduct | None:
        self._record("get_product", product_id=product_id)
        return self.products.get(product_id)
