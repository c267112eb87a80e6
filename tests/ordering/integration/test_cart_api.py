"""Integration tests for the cart, location and inventory endpoints via TestClient."""

from ordering.cart.cart import ShoppingCart
from protean import current_domain


class TestCartEndpoints:
    def test_unknown_cart_is_empty(self, client):
        response = client.get("/carts/cart-001")
        assert response.status_code == 200
        assert response.json() == {
            "cart_key": "cart-001",
            "bound_location_id": None,
            "items": [],
            "item_count": 0,
            "total": "0.00",
        }

    def test_add_item(self, add_item):
        body = add_item("cart-001", "latte", quantity=2, options={"size": ["large"], "milk": ["oat"]})

        assert body["success"] is True
        assert body["identity_key"] == "latte__milk:oat|size:large"
        line = body["cart"]["items"][0]
        assert line["unit_price"] == "5.80"
        assert line["line_total"] == "11.60"
        assert line["options"] == ["Oat milk (+$0.50)", "Large (+$0.80)"]
        assert body["cart"]["bound_location_id"] == "loc-north"

        cart = current_domain.repository_for(ShoppingCart).get("cart-001")
        assert cart.lines[0].quantity == 2

    def test_same_selection_merges(self, add_item):
        add_item("cart-001", "latte", options={"size": ["large"]})
        body = add_item("cart-001", "latte", options={"size": ["large"]})
        assert len(body["cart"]["items"]) == 1
        assert body["cart"]["item_count"] == 2

    def test_missing_required_option(self, client):
        response = client.post(
            "/carts/cart-001/items",
            json={"product_id": "latte", "location_id": "loc-north"},
        )
        assert response.status_code == 400

    def test_unknown_product(self, client):
        response = client.post(
            "/carts/cart-001/items",
            json={"product_id": "croissant", "location_id": "loc-north"},
        )
        assert response.status_code == 404

    def test_quantity_must_be_positive(self, client):
        response = client.post(
            "/carts/cart-001/items",
            json={"product_id": "muffin", "quantity": 0, "location_id": "loc-north"},
        )
        assert response.status_code == 422

    def test_inventory_denial_is_reported_not_raised(self, add_item, inventory):
        add_item("cart-001", "muffin")
        inventory.set_stock("muffin", "loc-north", 1)

        body = add_item("cart-001", "muffin")

        assert body["success"] is False
        assert body["reason"] == "Only 1 available in stock"
        assert body["current_stock"] == 1
        assert body["cart"]["item_count"] == 1

    def test_other_location_is_reported(self, add_item):
        add_item("cart-001", "muffin")
        body = add_item("cart-001", "muffin", location_id="loc-south")
        assert body["success"] is False
        assert body["location_mismatch"] is True

    def test_set_quantity(self, client, add_item):
        add_item("cart-001", "muffin")
        response = client.patch("/carts/cart-001/items/muffin", json={"quantity": 4})
        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 4

    def test_set_quantity_of_missing_line(self, client, add_item):
        add_item("cart-001", "muffin")
        response = client.patch("/carts/cart-001/items/bagel", json={"quantity": 4})
        assert response.status_code == 404

    def test_remove_last_item_unbinds(self, client, add_item):
        add_item("cart-001", "muffin")
        response = client.delete("/carts/cart-001/items/muffin")
        assert response.status_code == 200
        assert response.json()["bound_location_id"] is None

    def test_clear(self, client, add_item):
        add_item("cart-001", "muffin", quantity=3)
        response = client.delete("/carts/cart-001")
        assert response.status_code == 200
        assert response.json()["items"] == []


class TestLocationEndpoints:
    def test_list_locations(self, client):
        response = client.get("/locations")
        assert response.status_code == 200
        assert {loc["id"] for loc in response.json()} == {"loc-north", "loc-south"}

    def test_list_locations_for_user(self, client, directory):
        directory.assign_user("user-001", ["loc-north"])
        response = client.get("/locations", headers={"X-User-Id": "user-001"})
        assert [loc["id"] for loc in response.json()] == ["loc-north"]

    def test_directory_down(self, client, directory):
        directory.should_fail = True
        response = client.get("/locations")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "location_directory_unavailable"

    def test_select_for_empty_cart(self, client):
        response = client.put("/carts/cart-001/location", json={"location_id": "loc-south"})
        assert response.status_code == 200
        assert response.json() == {"active_location_id": "loc-south", "bound_location_id": None, "changed": False}

    def test_switch_conflict_then_confirm(self, client, add_item):
        add_item("cart-001", "latte", options={"size": ["regular"]})
        add_item("cart-001", "bagel")

        conflict = client.put("/carts/cart-001/location", json={"location_id": "loc-south"})

        assert conflict.status_code == 409
        error = conflict.json()["error"]
        assert error["code"] == "location_conflict"
        assert error["plan"]["remove_keys"] == ["bagel"]

        confirmed = client.post("/carts/cart-001/location/confirm", json=error["plan"])

        assert confirmed.status_code == 200
        assert confirmed.json()["changed"] is True
        cart = client.get("/carts/cart-001").json()
        assert cart["bound_location_id"] == "loc-south"
        assert [line["identity_key"] for line in cart["items"]] == ["latte__size:regular"]

    def test_confirm_plan_for_other_cart(self, client, add_item):
        add_item("cart-001", "bagel")
        plan = client.put("/carts/cart-001/location", json={"location_id": "loc-south"}).json()["error"]["plan"]

        response = client.post("/carts/cart-002/location/confirm", json=plan)

        assert response.status_code == 400

    def test_tampered_plan_is_refused(self, client, add_item):
        add_item("cart-001", "latte", options={"size": ["regular"]})
        add_item("cart-001", "bagel")
        plan = client.put("/carts/cart-001/location", json={"location_id": "loc-south"}).json()["error"]["plan"]

        response = client.post("/carts/cart-001/location/confirm", json={**plan, "remove_keys": []})

        assert response.status_code == 409
        cart = client.get("/carts/cart-001").json()
        assert cart["bound_location_id"] == "loc-north"
        assert len(cart["items"]) == 2

    def test_stale_plan_conflicts_again(self, client, add_item):
        add_item("cart-001", "bagel")
        plan = client.put("/carts/cart-001/location", json={"location_id": "loc-south"}).json()["error"]["plan"]
        add_item("cart-001", "muffin")

        response = client.post("/carts/cart-001/location/confirm", json=plan)

        assert response.status_code == 409
        assert "muffin" in response.json()["error"]["plan"]["keep_keys"]


class TestCheckAvailabilityEndpoint:
    def test_check(self, client, inventory):
        inventory.set_stock("latte", "loc-north", 2)
        response = client.post(
            "/inventory/check-availability",
            json={
                "items": [
                    {"menuItemId": "latte", "locationId": "loc-north", "quantity": 3},
                    {"menuItemId": "muffin", "locationId": "loc-north", "quantity": 1},
                ]
            },
        )
        assert response.status_code == 200
        assert response.json() == {
            "results": [
                {"available": False, "currentStock": 2},
                {"available": True, "currentStock": 99},
            ]
        }

    def test_service_down(self, client, inventory):
        inventory.configure(should_fail=True)
        response = client.post(
            "/inventory/check-availability",
            json={"items": [{"menuItemId": "latte", "locationId": "loc-north", "quantity": 1}]},
        )
        assert response.status_code == 503
