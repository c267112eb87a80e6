"""Tests for RebindPlan semantics and its wire form."""

from ordering.location.guard import RebindPlan


class TestRebindPlan:
    def test_moving_a_bound_cart_is_a_conflict(self):
        plan = RebindPlan(cart_key="c", from_location_id="loc-north", to_location_id="loc-south")
        assert plan.has_conflict
        assert not plan.loses_items

    def test_same_location_is_not_a_conflict(self):
        plan = RebindPlan(cart_key="c", from_location_id="loc-north", to_location_id="loc-north")
        assert not plan.has_conflict

    def test_empty_cart_is_not_a_conflict(self):
        plan = RebindPlan(cart_key="c", from_location_id=None, to_location_id="loc-south")
        assert not plan.has_conflict

    def test_loses_items(self):
        plan = RebindPlan(
            cart_key="c",
            from_location_id="loc-north",
            to_location_id="loc-south",
            keep_keys=("latte",),
            remove_keys=("bagel",),
            unavailable_names=("Bagel",),
        )
        assert plan.loses_items

    def test_dict_round_trip(self):
        plan = RebindPlan(
            cart_key="c",
            from_location_id="loc-north",
            to_location_id="loc-south",
            keep_keys=("latte",),
            remove_keys=("bagel",),
            unavailable_names=("Bagel",),
            fingerprint="abc",
        )
        data = plan.to_dict()
        assert data["remove_keys"] == ["bagel"]
        assert RebindPlan.from_dict(data) == plan
