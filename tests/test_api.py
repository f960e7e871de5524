"""Endpoint tests via TestClient."""

from bson import ObjectId
from fastapi.testclient import TestClient

import database
from main import app


def _save_cart(client, customer_id, items):
    return client.post("/api/cart/save", json={"customer_id": customer_id, "items": items})


def _create_order(client, customer, latte, **overrides):
    body = {
        "customer_id": str(customer["_id"]),
        "items": [{"product_id": str(latte["_id"]), "name": "Latte", "price": 3.50, "quantity": 2}],
        "total_price": 7.00,
        "order_type": "restaurant",
        "table_number": 4,
        "email": "c@x.com",
    }
    body.update(overrides)
    return client.post("/api/orders/create", json=body)


class TestCheckoutScenario:
    def test_cart_then_restaurant_checkout(self, client, customer, latte):
        customer_id = str(customer["_id"])

        response = _save_cart(client, customer_id, [{"product_id": str(latte["_id"]), "quantity": 2}])
        assert response.status_code == 200
        cart = response.json()["cart"]
        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 2
        assert cart["items"][0]["price"] == 3.50

        response = _create_order(client, customer, latte)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        order = body["order"]
        assert order["status"] == "pending"
        assert order["payment_status"] == "paid"
        assert order["table_number"] == 4
        assert order["delivery_address"] is None
        assert order["customer_id"] == customer_id
        assert order["items"][0]["product_id"] == str(latte["_id"])
        assert order["items"][0]["product"]["name"] == "Latte"


class TestCartEndpoints:
    def test_get_missing_cart_is_empty(self, client, customer):
        response = client.get(f"/api/cart/{customer['_id']}")
        assert response.status_code == 200
        assert response.json()["cart"]["items"] == []

    def test_empty_save_clears(self, client, customer, latte):
        _save_cart(client, str(customer["_id"]), [{"product_id": str(latte["_id"])}])
        response = _save_cart(client, str(customer["_id"]), [])

        assert response.status_code == 200
        assert response.json()["message"] == "Cart cleared successfully"
        assert client.get(f"/api/cart/{customer['_id']}").json()["cart"]["items"] == []

    def test_partial_acceptance(self, client, customer, latte, missing_product_id):
        response = _save_cart(
            client,
            str(customer["_id"]),
            [{"product_id": missing_product_id}, {"product_id": str(latte["_id"])}],
        )
        assert response.status_code == 200
        assert [line["name"] for line in response.json()["cart"]["items"]] == ["Latte"]

    def test_non_finite_numbers_fall_back(self, client, customer, latte):
        response = _save_cart(
            client,
            str(customer["_id"]),
            [{"product_id": str(latte["_id"]), "quantity": "NaN", "price": "Infinity"}],
        )
        assert response.status_code == 200
        line = response.json()["cart"]["items"][0]
        assert line["quantity"] == 1
        assert line["price"] == 3.50

    def test_malformed_customer_reads_empty_cart(self, client):
        response = client.get("/api/cart/not-an-id")
        assert response.status_code == 200
        assert response.json()["cart"]["items"] == []

    def test_no_valid_items(self, client, customer, missing_product_id):
        response = _save_cart(client, str(customer["_id"]), [{"product_id": missing_product_id}])
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_unknown_customer(self, client, latte):
        response = _save_cart(client, str(ObjectId()), [{"product_id": str(latte["_id"])}])
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Customer not found"}

    def test_missing_customer_id(self, client):
        response = client.post("/api/cart/save", json={"items": []})
        assert response.status_code == 400
        assert response.json()["message"] == "Customer ID is required"

    def test_clear(self, client, customer, latte):
        _save_cart(client, str(customer["_id"]), [{"product_id": str(latte["_id"])}])
        response = client.delete(f"/api/cart/{customer['_id']}")
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestOrderEndpoints:
    def test_delivery_requires_address(self, client, customer, latte):
        response = _create_order(client, customer, latte, order_type="delivery")
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Delivery address is required for delivery orders",
        }

    def test_missing_product_is_404(self, client, customer, latte, missing_product_id):
        items = [{"product_id": missing_product_id, "name": "Ghost", "price": 1, "quantity": 1}]
        response = _create_order(client, customer, latte, items=items)
        assert response.status_code == 404
        assert response.json()["message"] == "Product Ghost not found"

    def test_customer_history(self, client, customer, latte):
        _create_order(client, customer, latte)
        _create_order(client, customer, latte, table_number=2)

        response = client.get(f"/api/orders/customer/{customer['_id']}")
        assert response.status_code == 200
        assert [o["table_number"] for o in response.json()["orders"]] == [2, 4]

    def test_all_orders_joined(self, client, customer, latte, barista):
        order_id = _create_order(client, customer, latte).json()["order"]["_id"]
        client.put(f"/api/orders/{order_id}/status", json={"status": "preparing", "prepared_by": str(barista["_id"])})

        orders = client.get("/api/orders/all").json()["orders"]
        assert orders[0]["customer"]["name"] == "Carla"
        assert orders[0]["preparer"]["name"] == "Bruno"
        assert orders[0]["delivery_person"] is None

    def test_update_status(self, client, customer, latte, courier):
        order_id = _create_order(client, customer, latte).json()["order"]["_id"]
        response = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "on-the-way", "delivery_person_id": str(courier["_id"])},
        )
        assert response.status_code == 200
        order = response.json()["order"]
        assert order["status"] == "on-the-way"
        assert order["delivery_person_id"] == str(courier["_id"])

    def test_invalid_status(self, client, customer, latte):
        order_id = _create_order(client, customer, latte).json()["order"]["_id"]
        response = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Status must be one of")

    def test_unknown_order(self, client):
        response = client.put(f"/api/orders/{ObjectId()}/status", json={"status": "ready"})
        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"

    def test_get_order(self, client, customer, latte):
        order_id = _create_order(client, customer, latte).json()["order"]["_id"]
        response = client.get(f"/api/orders/{order_id}")
        assert response.status_code == 200
        assert response.json()["order"]["_id"] == order_id

    def test_metrics(self, client, customer, latte):
        _create_order(client, customer, latte)
        body = client.get("/api/orders/metrics").json()
        assert body["active_orders"] == 1
        assert body["total_products"] == 1


class TestCatalogEndpoints:
    def test_list_and_filter(self, client, latte, croissant):
        assert len(client.get("/api/products").json()["products"]) == 2
        snacks = client.get("/api/products", params={"category": "Snacks"}).json()["products"]
        assert [p["name"] for p in snacks] == ["Croissant"]

    def test_create_product_rejects_unknown_category(self, client):
        response = client.post("/api/products", json={"name": "Bagel", "price": 2.0, "category": "Bread"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_toggle_availability(self, client, latte):
        response = client.put(f"/api/products/{latte['_id']}/availability", json={"is_available": False})
        assert response.status_code == 200
        assert response.json()["product"]["is_available"] is False

    def test_unknown_product(self, client):
        assert client.get(f"/api/products/{ObjectId()}").status_code == 404


class TestCustomerEndpoints:
    def test_register(self, client):
        response = client.post("/api/customers", json={"name": "Eve", "email": "Eve@Example.com"})
        assert response.status_code == 201
        assert response.json()["customer"]["email"] == "eve@example.com"

    def test_duplicate_email(self, client, customer):
        response = client.post("/api/customers", json={"name": "Other", "email": "c@x.com"})
        assert response.status_code == 409


class TestDatabaseUnavailable:
    def test_data_routes_fail_without_database(self, monkeypatch):
        monkeypatch.setattr(database, "db", None)
        app.dependency_overrides.clear()
        response = TestClient(app).get("/api/products")
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Database not available"}


class TestCatalogDrift:
    def test_price_edit_keeps_cart_and_order_snapshots(self, client, customer, latte):
        customer_id = str(customer["_id"])
        _save_cart(client, customer_id, [{"product_id": str(latte["_id"])}])
        order_id = _create_order(client, customer, latte).json()["order"]["_id"]

        response = client.patch(f"/api/products/{latte['_id']}", json={"price": 9.99, "name": "Grande Latte"})
        assert response.status_code == 200
        assert response.json()["product"]["price"] == 9.99

        line = client.get(f"/api/cart/{customer_id}").json()["cart"]["items"][0]
        assert (line["name"], line["price"]) == ("Latte", 3.50)
        assert (line["product"]["name"], line["product"]["price"]) == ("Grande Latte", 9.99)

        line = client.get(f"/api/orders/{order_id}").json()["order"]["items"][0]
        assert (line["name"], line["price"]) == ("Latte", 3.50)
        assert line["product"]["price"] == 9.99

    def test_deleted_product_keeps_snapshots(self, client, customer, latte):
        customer_id = str(customer["_id"])
        _save_cart(client, customer_id, [{"product_id": str(latte["_id"])}])

        response = client.delete(f"/api/products/{latte['_id']}")
        assert response.status_code == 200

        line = client.get(f"/api/cart/{customer_id}").json()["cart"]["items"][0]
        assert line["name"] == "Latte"
        assert line["product"] is None
        assert client.get(f"/api/products/{latte['_id']}").status_code == 404

    def test_edit_unknown_product(self, client):
        response = client.patch(f"/api/products/{ObjectId()}", json={"price": 1.0})
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Product not found"}

    def test_edit_rejects_bad_category(self, client, latte):
        response = client.patch(f"/api/products/{latte['_id']}", json={"category": "Bread"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("category:")

    def test_delete_unknown_product(self, client):
        assert client.delete(f"/api/products/{ObjectId()}").status_code == 404
