"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.cart.store import CartStore
from ordering.errors import CheckoutError
from ordering.order.order import OrderDraft, PaymentState
from protean import current_domain
from pytest_bdd import given, parsers, then, when

CART_KEY = "cart-001"


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def context():
    """Container for what happened in a scenario: receipts, results, captured errors."""
    return {"error": None, "receipt": None, "outcome": None}


@pytest.fixture()
def menu(latte, bagel, muffin):
    return {product.id: product for product in (latte, bagel, muffin)}


@pytest.fixture()
def store(inventory, directory):
    return CartStore(CART_KEY)


@pytest.fixture()
def attempt(context):
    """Run a call and keep a checkout error for the Then steps instead of raising."""

    def _attempt(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except CheckoutError as exc:
            context["error"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the campus menu")
def campus_menu(directory, inventory):
    """North Campus serves everything; South Campus has no bagels."""


@given(parsers.cfparse('the cart holds {qty:d} "{product_id}" from "{location_id}"'))
def cart_holds(store, menu, qty, product_id, location_id):
    result = store.add_item(menu[product_id], quantity=qty, location_id=location_id)
    assert result.success


@given(parsers.cfparse('the gateway declines with "{reason}"'))
def gateway_declines(gateway, reason):
    gateway.configure(should_succeed=False, failure_reason=reason)


@given("the gateway times out")
def gateway_times_out(gateway):
    gateway.configure(should_succeed=True, should_timeout=True)


@given("the ledger is unavailable")
def ledger_unavailable(ledger):
    ledger.configure(should_fail=True)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the gateway approves the payment")
def gateway_approves(gateway, context):
    gateway.complete(context["receipt"].handle_id)


@when("the client confirms the payment")
def client_confirms(engine, context, attempt):
    result = attempt(engine.confirm_from_client, context["receipt"].order_id)
    if result is not None:
        context["result"] = result
        context["outcome"] = result.outcome


@when("the approval webhook arrives")
def approval_webhook(engine, gateway, context):
    payload = gateway.webhook_payload(context["receipt"].handle_id, succeeded=True)
    outcome = engine.handle_gateway_event(gateway.parse_webhook(payload))
    context["outcome"] = outcome.value if outcome else None


@when("the failure webhook arrives")
def failure_webhook(engine, gateway, context):
    payload = gateway.webhook_payload(context["receipt"].handle_id, succeeded=False)
    outcome = engine.handle_gateway_event(gateway.parse_webhook(payload))
    context["outcome"] = outcome.value if outcome else None


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the cart is bound to "{location_id}"'))
def cart_bound_to(store, location_id):
    assert store.cart().bound_location_id == location_id


@then("the cart is not bound")
def cart_not_bound(store):
    assert store.cart().bound_location_id is None


@then(parsers.cfparse("the cart has {count:d} line"))
def cart_has_one_line(store, count):
    assert len(store.cart().lines) == count


@then(parsers.cfparse("the cart has {count:d} lines"))
def cart_has_n_lines(store, count):
    assert len(store.cart().lines) == count


@then("the cart is empty")
def cart_is_empty(store):
    assert store.cart().is_empty()


@then(parsers.cfparse('the order is "{state}"'))
def order_in_state(context, state):
    order_id = context["receipt"].order_id if context["receipt"] else context["error"].order_id
    draft = current_domain.repository_for(OrderDraft).get(order_id)
    assert draft.state == PaymentState(state)


@then(parsers.cfparse('the last signal was a "{outcome}"'))
def last_signal(context, outcome):
    assert context["outcome"] == outcome
