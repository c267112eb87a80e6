"""Order history queries for authenticated users."""

from dataclasses import dataclass

from protean.utils.globals import current_domain

from ordering.errors import OrderAccessDenied
from ordering.order.order import OrderDraft

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderPage:
    orders: list
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


def orders_for_user(user_id, page=1, limit=DEFAULT_PAGE_SIZE) -> OrderPage:
    """A user's orders, newest first."""
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), MAX_PAGE_SIZE)

    results = (
        current_domain.repository_for(OrderDraft)
        ._dao.query.filter(payer_user_id=str(user_id))
        .order_by("-created_at")
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return OrderPage(orders=list(results.items), page=page, limit=limit, total=results.total)


def get_order_for_user(order_id, user_id) -> OrderDraft:
    """A single order, only if it belongs to ``user_id``."""
    draft = current_domain.repository_for(OrderDraft).get(str(order_id))
    if not draft.payer or str(draft.payer.user_id or "") != str(user_id):
        raise OrderAccessDenied("You do not have access to this order")
    return draft
