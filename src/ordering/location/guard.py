"""Location Binding Guard.

A cart never mixes items from two locations. When the active location
changes under a non-empty cart, the guard works out which lines the new
location's menu can serve, and rebinds only after the user confirms, even
when nothing would be lost. Declining leaves the cart exactly as it was.

An empty cart is never touched here: it binds on its first add.
"""

import json
from dataclasses import asdict, dataclass

import structlog
from protean.utils.globals import current_domain

from ordering.cart.storage import CartStorage
from ordering.errors import LocationConflict, LocationDirectoryUnavailable
from ordering.location import get_directory
from ordering.location.port import DirectoryUnavailable, Location, LocationDirectory
from ordering.location.switching import RebindCart
from ordering.utils.locks import cart_locks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RebindPlan:
    cart_key: str
    from_location_id: str | None
    to_location_id: str
    keep_keys: tuple[str, ...] = ()
    remove_keys: tuple[str, ...] = ()
    unavailable_names: tuple[str, ...] = ()
    fingerprint: str = ""

    @property
    def has_conflict(self) -> bool:
        """True when a non-empty cart would move. Confirmation is always required then."""
        return bool(self.from_location_id) and self.from_location_id != self.to_location_id

    @property
    def loses_items(self) -> bool:
        return bool(self.remove_keys)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["keep_keys"] = list(self.keep_keys)
        data["remove_keys"] = list(self.remove_keys)
        data["unavailable_names"] = list(self.unavailable_names)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RebindPlan":
        return cls(
            cart_key=data["cart_key"],
            from_location_id=data.get("from_location_id"),
            to_location_id=data["to_location_id"],
            keep_keys=tuple(data.get("keep_keys") or ()),
            remove_keys=tuple(data.get("remove_keys") or ()),
            unavailable_names=tuple(data.get("unavailable_names") or ()),
            fingerprint=data.get("fingerprint", ""),
        )


@dataclass(frozen=True)
class LocationSelection:
    """Outcome of picking a location that needed no confirmation."""

    active_location_id: str
    bound_location_id: str | None
    changed: bool = False


class LocationBindingGuard:
    def __init__(self, directory: LocationDirectory | None = None, storage: CartStorage | None = None):
        self._directory = directory
        self.storage = storage or CartStorage()

    @property
    def directory(self) -> LocationDirectory:
        return self._directory or get_directory()

    def list_accessible_locations(self, auth_context: dict | None = None) -> list[Location]:
        try:
            return self.directory.list_accessible_locations(auth_context)
        except DirectoryUnavailable as exc:
            raise LocationDirectoryUnavailable("Locations are unavailable right now. Please try again.") from exc

    def plan_switch(self, cart_key, to_location_id) -> RebindPlan:
        cart = self.storage.load(cart_key)
        to_location_id = str(to_location_id)

        if cart.is_empty() or cart.bound_location_id == to_location_id:
            return RebindPlan(
                cart_key=str(cart_key),
                from_location_id=None if cart.is_empty() else cart.bound_location_id,
                to_location_id=to_location_id,
                keep_keys=tuple(line.identity_key for line in cart.lines),
                fingerprint=cart.content_hash(),
            )

        try:
            available = {str(pid) for pid in self.directory.list_available_product_ids(to_location_id)}
        except DirectoryUnavailable as exc:
            raise LocationDirectoryUnavailable(
                "We could not check the menu at that location. Please try again."
            ) from exc

        keep, remove, names = [], [], []
        for line in cart.lines:
            if str(line.product_id) in available:
                keep.append(line.identity_key)
            else:
                remove.append(line.identity_key)
                names.append(line.product_name)

        return RebindPlan(
            cart_key=str(cart_key),
            from_location_id=cart.bound_location_id,
            to_location_id=to_location_id,
            keep_keys=tuple(keep),
            remove_keys=tuple(remove),
            unavailable_names=tuple(names),
            fingerprint=cart.content_hash(),
        )

    def select_location(self, cart_key, location_id) -> LocationSelection:
        """Make ``location_id`` the active location for a cart.

        Raises ``LocationConflict`` carrying the plan when a non-empty cart is
        bound elsewhere; nothing changes until ``confirm`` is called.
        """
        plan = self.plan_switch(cart_key, location_id)
        if plan.has_conflict:
            if plan.loses_items:
                message = (
                    "Some items in your cart are not available at this location: "
                    f"{', '.join(plan.unavailable_names)}. Remove them and switch?"
                )
            else:
                message = "Your cart will move to this location. Switch?"
            logger.info(
                "location_switch_needs_confirmation",
                cart_key=plan.cart_key,
                from_location_id=plan.from_location_id,
                to_location_id=plan.to_location_id,
                unavailable=len(plan.remove_keys),
            )
            raise LocationConflict(message, plan)

        return LocationSelection(active_location_id=plan.to_location_id, bound_location_id=plan.from_location_id)

    def confirm(self, plan: RebindPlan) -> LocationSelection:
        """Apply a plan the user accepted, if it still describes the cart.

        The plan is recomputed here and the fresh one is applied. A plan whose
        cart changed, or whose removals differ from what the target menu
        demands, is answered with a ``LocationConflict`` carrying the fresh plan.
        """
        with cart_locks.hold(plan.cart_key):
            fresh = self.plan_switch(plan.cart_key, plan.to_location_id)
            if not fresh.has_conflict:
                return LocationSelection(
                    active_location_id=fresh.to_location_id, bound_location_id=fresh.from_location_id
                )

            if fresh.fingerprint != plan.fingerprint:
                raise LocationConflict("Your cart changed. Please review the location switch again.", fresh)
            if set(fresh.remove_keys) != set(plan.remove_keys) or fresh.from_location_id != plan.from_location_id:
                logger.warning(
                    "rebind_plan_mismatch",
                    cart_key=plan.cart_key,
                    to_location_id=plan.to_location_id,
                    expected=list(fresh.remove_keys),
                    received=list(plan.remove_keys),
                )
                raise LocationConflict("Please review the location switch again.", fresh)

            bound = current_domain.process(
                RebindCart(
                    cart_key=fresh.cart_key,
                    to_location_id=fresh.to_location_id,
                    remove_keys=json.dumps(list(fresh.remove_keys)),
                ),
                asynchronous=False,
            )

        logger.info(
            "cart_rebound",
            cart_key=fresh.cart_key,
            from_location_id=fresh.from_location_id,
            to_location_id=fresh.to_location_id,
            removed=len(fresh.remove_keys),
        )
        return LocationSelection(active_location_id=fresh.to_location_id, bound_location_id=bound, changed=True)

    def decline(self, plan: RebindPlan) -> str | None:
        """The user kept their cart. Returns the location the selection reverts to."""
        logger.info("location_switch_declined", cart_key=plan.cart_key, to_location_id=plan.to_location_id)
        return plan.from_location_id
