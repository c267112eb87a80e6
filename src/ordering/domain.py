"""Ordering bounded context: shopping cart, checkout and settlement.

Holds the cart (bound to exactly one pickup location), inventory admission,
guest checkout authorization and the order draft whose payment state is
driven by the settlement engine.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

ordering = Domain(name="ordering")
