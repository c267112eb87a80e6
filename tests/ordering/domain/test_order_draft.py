"""Tests for OrderDraft creation, the Payer value object and order snapshots."""

import re
from decimal import Decimal

import pytest
from ordering.order.events import OrderDraftCreated
from ordering.order.order import OrderDraft, Payer, PaymentState, generate_order_number
from protean.exceptions import ValidationError


def _lines():
    return [
        {
            "identity_key": "latte__size:large",
            "product_id": "latte",
            "product_name": "Latte",
            "quantity": 2,
            "unit_price": "5.30",
            "options": [{"group_id": "size", "option_id": "large", "name": "Large", "price_modifier": "0.80"}],
            "notes": "extra hot",
        },
        {
            "identity_key": "muffin",
            "product_id": "muffin",
            "product_name": "Muffin",
            "quantity": 1,
            "unit_price": "3.25",
            "options": [],
        },
    ]


def _draft(payer=None, **overrides):
    params = {
        "order_id": "ord-001",
        "idempotency_key": "a" * 64,
        "location_id": "loc-north",
        "lines_data": _lines(),
        "payer": payer or {"user_id": "user-001"},
        "submission_id": "sub-001",
        "cart_key": "cart-001",
    }
    params.update(overrides)
    return OrderDraft.create(**params)


class TestOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", generate_order_number())


class TestOrderDraftCreation:
    def test_starts_created(self):
        draft = _draft()
        assert draft.state == PaymentState.CREATED
        assert not draft.is_paid
        assert not draft.is_terminal

    def test_prices_lines_and_total(self):
        draft = _draft()
        assert draft.total_amount == "13.85"
        assert draft.total() == Decimal("13.85")
        latte = draft.lines[0]
        assert latte.unit_price == "5.30"
        assert latte.line_total == "10.60"

    def test_default_currency(self):
        assert _draft().currency == "AUD"

    def test_raises_created_event(self):
        draft = _draft()
        event = draft._events[-1]
        assert isinstance(event, OrderDraftCreated)
        assert event.total_amount == "13.85"
        assert event.payer_kind == "User"

    def test_guest_payer(self):
        draft = _draft(payer={"email": "sam@example.com", "first_name": "Sam", "last_name": "Taylor"})
        assert draft.payer.is_guest
        assert draft._events[-1].payer_kind == "Guest"

    def test_empty_lines_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _draft(lines_data=[])
        assert "lines" in exc_info.value.messages


class TestPayer:
    def test_user_payer(self):
        payer = Payer(user_id="user-001")
        assert not payer.is_guest

    def test_guest_needs_full_contact(self):
        with pytest.raises(ValidationError):
            Payer(email="sam@example.com", first_name="Sam")

    def test_nobody_is_not_a_payer(self):
        with pytest.raises(ValidationError):
            Payer()


class TestSnapshot:
    def test_snapshot_is_plain_data(self):
        snapshot = _draft().snapshot()
        assert snapshot["order_id"] == "ord-001"
        assert snapshot["total_amount"] == "13.85"
        assert snapshot["payer"]["user_id"] == "user-001"
        assert snapshot["lines"][0]["options"][0]["option_id"] == "large"
        assert snapshot["lines"][0]["notes"] == "extra hot"
        assert snapshot["lines"][1]["options"] == []
