"""Checkout idempotency keys.

A submission is identified by whose cart it is, who pays, what is being
bought and the client's own submission id. A double click or a network
retry of the same attempt maps to the same order, while a deliberate second
order (new submission id), a changed cart, another cart or another payer
does not.
"""

import hashlib

from protean.utils.globals import current_domain

from ordering.order.order import OrderDraft


def payer_reference(payer: dict) -> str:
    if payer.get("user_id"):
        return f"user:{payer['user_id']}"
    return f"guest:{(payer.get('email') or '').strip().lower()}"


def idempotency_key(cart_key: str, payer: dict, cart_content_hash: str, submission_id: str) -> str:
    material = "\n".join([str(cart_key), payer_reference(payer), cart_content_hash, str(submission_id)])
    return hashlib.sha256(material.encode()).hexdigest()


def find_draft_by_key(key: str) -> OrderDraft | None:
    drafts = current_domain.repository_for(OrderDraft)._dao.query.filter(idempotency_key=key).all().items
    return drafts[0] if drafts else None


def find_draft_for_submission(cart_key: str, submission_id: str, payer: dict) -> OrderDraft | None:
    """Latest draft this payer submitted from ``cart_key`` under ``submission_id``."""
    drafts = (
        current_domain.repository_for(OrderDraft)
        ._dao.query.filter(cart_key=str(cart_key), submission_id=str(submission_id))
        .order_by("-created_at")
        .all()
        .items
    )
    reference = payer_reference(payer)
    for draft in drafts:
        if payer_reference({"user_id": draft.payer.user_id, "email": draft.payer.email}) == reference:
            return draft
    return None


def find_draft_by_handle(handle_id: str) -> OrderDraft | None:
    drafts = current_domain.repository_for(OrderDraft)._dao.query.filter(authorization_handle=handle_id).all().items
    return drafts[0] if drafts else None
