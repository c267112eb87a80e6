"""Application tests for ledger settlement, guest order access and order history."""

import pytest
from ordering.cart.store import CartStore
from ordering.errors import OrderAccessDenied
from ordering.order.history import get_order_for_user, orders_for_user
from ordering.order.order import OrderDraft, PaymentState
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


@pytest.fixture()
def cart(inventory, directory, latte, muffin):
    store = CartStore("cart-001")
    store.add_item(latte, options={"size": ["large"]}, location_id="loc-north")
    store.add_item(muffin, quantity=2)
    return store


@pytest.fixture()
def paid(engine, gateway, cart):
    """Submit and confirm a user order; returns its order id."""

    def _pay(submission_id="sub-1", user_id="user-001"):
        receipt = engine.submit("cart-001", submission_id=submission_id, user_id=user_id)
        gateway.complete(receipt.handle_id)
        engine.confirm_from_client(receipt.order_id)
        return receipt.order_id

    return _pay


def _draft(order_id):
    return current_domain.repository_for(OrderDraft).get(order_id)


class TestLedgerForwarding:
    def test_snapshot_sent_to_ledger(self, ledger, paid):
        order_id = paid()

        snapshot = ledger.calls[0]
        assert snapshot["order_id"] == order_id
        assert snapshot["total_amount"] == "11.80"
        assert snapshot["location_id"] == "loc-north"
        assert snapshot["payer"]["user_id"] == "user-001"
        assert {line["product_id"]: line["quantity"] for line in snapshot["lines"]} == {"latte": 1, "muffin": 2}

    def test_ledger_outage_leaves_order_authorized(self, ledger, paid):
        ledger.configure(should_fail=True)
        order_id = paid()

        draft = _draft(order_id)
        assert draft.state == PaymentState.AUTHORIZED
        assert draft.ledger_reference is None

    def test_ledger_rejection_leaves_order_authorized(self, ledger, paid):
        ledger.configure(should_accept=False)
        order_id = paid()
        assert _draft(order_id).state == PaymentState.AUTHORIZED

    def test_retry_settles_after_outage(self, engine, ledger, paid):
        ledger.configure(should_fail=True)
        order_id = paid()

        ledger.configure()
        draft = engine.retry_settlement(order_id)

        assert draft.state == PaymentState.SETTLED
        assert draft.ledger_reference == ledger.booked[order_id]

    def test_retry_on_settled_order_is_harmless(self, engine, ledger, paid):
        order_id = paid()
        reference = _draft(order_id).ledger_reference

        draft = engine.retry_settlement(order_id)

        assert draft.ledger_reference == reference
        assert len(ledger.calls) == 1

    def test_retry_requires_payment(self, engine, cart):
        receipt = engine.submit("cart-001", submission_id="sub-1", user_id="user-001")
        with pytest.raises(ValidationError) as exc_info:
            engine.retry_settlement(receipt.order_id)
        assert "payment_state" in exc_info.value.messages


class TestAcknowledgeSettlement:
    def test_acknowledge_settles(self, engine, ledger, paid):
        ledger.configure(should_fail=True)
        order_id = paid()

        draft = engine.acknowledge_settlement(order_id, "LEDGER-MANUAL")

        assert draft.state == PaymentState.SETTLED
        assert draft.ledger_reference == "LEDGER-MANUAL"

    def test_second_acknowledgment_keeps_the_first(self, engine, ledger, paid):
        ledger.configure(should_fail=True)
        order_id = paid()
        engine.acknowledge_settlement(order_id, "LEDGER-1")

        draft = engine.acknowledge_settlement(order_id, "LEDGER-2")

        assert draft.ledger_reference == "LEDGER-1"

    def test_unpaid_order_cannot_settle(self, engine, cart):
        receipt = engine.submit("cart-001", submission_id="sub-1", user_id="user-001")
        with pytest.raises(ValidationError):
            engine.acknowledge_settlement(receipt.order_id, "LEDGER-1")


class TestGuestOrderAccess:
    @pytest.fixture()
    def guest_order(self, engine, gateway, guest, cart, issue_guest_authorization):
        receipt = engine.submit(
            "cart-001",
            submission_id="sub-1",
            guest=guest,
            guest_authorization=issue_guest_authorization(),
        )
        gateway.complete(receipt.handle_id)
        return engine.confirm_from_client(receipt.order_id)

    def test_token_opens_the_order_once(self, engine, guest_order):
        draft = engine.view_guest_order(guest_order.order_id, guest_order.access_token)

        assert str(draft.id) == guest_order.order_id
        assert draft.access_redeemed_at is not None
        with pytest.raises(OrderAccessDenied):
            engine.view_guest_order(guest_order.order_id, guest_order.access_token)

    def test_wrong_token(self, engine, guest_order):
        with pytest.raises(OrderAccessDenied):
            engine.view_guest_order(guest_order.order_id, "0" * 64)
        assert _draft(guest_order.order_id).access_redeemed_at is None

    def test_missing_token(self, engine, guest_order):
        with pytest.raises(OrderAccessDenied):
            engine.view_guest_order(guest_order.order_id, None)

    def test_unknown_order(self, engine, guest_order):
        with pytest.raises(OrderAccessDenied):
            engine.view_guest_order("no-such-order", guest_order.access_token)

    def test_token_is_scoped_to_its_order(self, engine, guest, guest_order, muffin, issue_guest_authorization):
        CartStore("cart-002").add_item(muffin, location_id="loc-north")
        other_id = engine.submit(
            "cart-002",
            submission_id="sub-2",
            guest=guest,
            guest_authorization=issue_guest_authorization(),
        ).order_id
        with pytest.raises(OrderAccessDenied):
            engine.view_guest_order(other_id, guest_order.access_token)

    def test_confirmation_after_redemption_has_no_token(self, engine, guest_order):
        engine.view_guest_order(guest_order.order_id, guest_order.access_token)
        result = engine.confirm_from_client(guest_order.order_id)
        assert result.access_token is None


class TestOrderHistory:
    def _order_for(self, engine, cart, submission_id, user_id):
        return engine.submit("cart-001", submission_id=submission_id, user_id=user_id).order_id

    def test_lists_only_the_users_orders(self, engine, cart):
        mine = {self._order_for(engine, cart, f"sub-{i}", "user-001") for i in range(3)}
        self._order_for(engine, cart, "sub-other", "user-002")

        page = orders_for_user("user-001")

        assert {str(o.id) for o in page.orders} == mine
        assert page.total == 3
        assert page.pages == 1

    def test_paging(self, engine, cart):
        for i in range(5):
            self._order_for(engine, cart, f"sub-{i}", "user-001")

        first = orders_for_user("user-001", page=1, limit=2)
        last = orders_for_user("user-001", page=3, limit=2)

        assert len(first.orders) == 2
        assert first.total == 5
        assert first.pages == 3
        assert len(last.orders) == 1

    def test_limits_are_clamped(self, engine, cart):
        page = orders_for_user("user-001", page=0, limit=1000)
        assert page.page == 1
        assert page.limit == 100
        assert page.pages == 0

    def test_guest_orders_are_not_listed(self, engine, guest, cart, issue_guest_authorization):
        engine.submit("cart-001", submission_id="sub-1", guest=guest, guest_authorization=issue_guest_authorization())
        assert orders_for_user("user-001").total == 0

    def test_single_order_for_its_owner(self, engine, cart):
        order_id = self._order_for(engine, cart, "sub-1", "user-001")
        assert str(get_order_for_user(order_id, "user-001").id) == order_id

    def test_single_order_for_someone_else(self, engine, cart):
        order_id = self._order_for(engine, cart, "sub-1", "user-001")
        with pytest.raises(OrderAccessDenied):
            get_order_for_user(order_id, "user-002")

    def test_single_order_unknown(self):
        with pytest.raises(ObjectNotFoundError):
            get_order_for_user("no-such-order", "user-001")
