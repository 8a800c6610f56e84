"""Tests for buyer order endpoints."""

from fastapi.testclient import TestClient

from marketplace.domain.value_objects import Role


class TestPlaceOrder:
    """Tests for POST /me/orders."""

    def test_place_order(self, client: TestClient, buyer_headers, checkout_body) -> None:
        client.post(
            "/me/cart/items",
            json={"product_id": "prod-wig", "variant_id": "wig-black", "quantity": 2},
            headers=buyer_headers,
        )

        response = client.post(
            "/me/orders", json={**checkout_body, "notes": "Ring twice"}, headers=buyer_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "processing"
        assert data["payment_status"] == "paid"
        assert data["subtotal"]["amount"] == 20000
        assert data["tax"]["amount"] == 1400
        assert data["shipping"]["amount"] == 500
        assert data["total"] == {"amount": 21900, "currency": "USD"}
        assert data["notes_by_buyer"] == "Ring twice"
        assert data["items"][0]["seller_id"] == "seller-a"
        assert data["payment_transaction_id"].startswith("sim_txn_")
        assert "internal_notes" not in data

        cart = client.get("/me/cart", headers=buyer_headers).json()
        assert cart["id"] != data["cart_id"]
        assert cart["items"] == []

    def test_empty_cart(self, client: TestClient, buyer_headers, checkout_body) -> None:
        client.get("/me/cart", headers=buyer_headers)
        response = client.post("/me/orders", json=checkout_body, headers=buyer_headers)

        assert response.status_code == 400
        assert response.json()["error_code"] == "CART_EMPTY"

    def test_stock_shortfall_lists_variants(
        self, client: TestClient, buyer_headers, checkout_body, container
    ) -> None:
        client.post(
            "/me/cart/items",
            json={"product_id": "prod-wig", "variant_id": "wig-blonde", "quantity": 3},
            headers=buyer_headers,
        )
        container.catalog.add_variant(
            "wig-blonde", "prod-wig", "WIG-BLD-18", 12000, 1, attributes={"color": "blonde"}
        )

        response = client.post("/me/orders", json=checkout_body, headers=buyer_headers)

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "INSUFFICIENT_STOCK"
        assert data["details"]["shortfalls"][0]["variant_id"] == "wig-blonde"
        assert client.get("/me/cart", headers=buyer_headers).json()["total_quantity"] == 3

    def test_missing_address(self, client: TestClient, buyer_headers, checkout_body) -> None:
        client.post(
            "/me/cart/items",
            json={"product_id": "prod-comb", "variant_id": "comb"},
            headers=buyer_headers,
        )
        response = client.post(
            "/me/orders",
            json={**checkout_body, "shipping_address_id": "nowhere"},
            headers=buyer_headers,
        )
        assert response.status_code == 404

    def test_missing_fields(self, client: TestClient, buyer_headers) -> None:
        response = client.post("/me/orders", json={}, headers=buyer_headers)

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_requires_buyer(self, client: TestClient, admin_headers, checkout_body) -> None:
        assert client.post("/me/orders", json=checkout_body).status_code == 401
        response = client.post("/me/orders", json=checkout_body, headers=admin_headers)
        assert response.status_code == 403


class TestMyOrders:
    """Tests for browsing and cancelling own orders."""

    def test_list_and_get(self, client: TestClient, buyer_headers, placed_order) -> None:
        response = client.get("/me/orders", headers=buyer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_results"] == 1
        assert data["page"] == 1
        assert data["limit"] == 10
        assert data["results"][0]["id"] == placed_order["id"]
        assert data["results"][0]["seller_ids"] == ["seller-a", "seller-b"]

        response = client.get(f"/me/orders/{placed_order['id']}", headers=buyer_headers)
        assert response.status_code == 200
        assert response.json()["total"]["amount"] == placed_order["total"]["amount"]

    def test_status_filter(self, client: TestClient, buyer_headers, placed_order) -> None:
        response = client.get("/me/orders?status=shipped", headers=buyer_headers)
        assert response.json()["total_results"] == 0

        response = client.get("/me/orders?status=bogus", headers=buyer_headers)
        assert response.status_code == 400

    def test_page_size_is_capped(self, client: TestClient, buyer_headers, placed_order) -> None:
        response = client.get("/me/orders?limit=500", headers=buyer_headers)
        assert response.json()["limit"] == 100

    def test_cancel(self, client: TestClient, buyer_headers, placed_order) -> None:
        response = client.post(
            f"/me/orders/{placed_order['id']}/cancel",
            json={"reason": "Changed my mind"},
            headers=buyer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled_by_user"
        assert data["payment_status"] == "refunded"
        assert data["refunded"]["amount"] == data["total"]["amount"]
        assert data["status_history"][-1]["reason"] == "Changed my mind"

    def test_cancel_without_body(self, client: TestClient, buyer_headers, placed_order) -> None:
        response = client.post(f"/me/orders/{placed_order['id']}/cancel", headers=buyer_headers)
        assert response.status_code == 200

    def test_cancel_after_shipping(
        self, client: TestClient, buyer_headers, seller_a_headers, placed_order
    ) -> None:
        client.patch(
            f"/me/store/orders/{placed_order['id']}/status",
            json={"status": "shipped", "tracking_number": "1Z999"},
            headers=seller_a_headers,
        )

        response = client.post(f"/me/orders/{placed_order['id']}/cancel", headers=buyer_headers)
        assert response.status_code == 400
        assert response.json()["error_code"] == "ORDER_NOT_CANCELLABLE"

    def test_other_buyers_order_is_not_found(
        self, client: TestClient, placed_order, container
    ) -> None:
        container.identity.register("other-token", "buyer-2", Role.BUYER)
        response = client.get(
            f"/me/orders/{placed_order['id']}", headers={"Authorization": "Bearer other-token"}
        )
        assert response.status_code == 404


class TestReturns:
    """Tests for POST /me/orders/{id}/returns."""

    def test_return_requires_delivery(self, client: TestClient, buyer_headers, placed_order) -> None:
        line_id = placed_order["items"][0]["id"]
        response = client.post(
            f"/me/orders/{placed_order['id']}/returns",
            json={"order_line_id": line_id, "quantity": 1, "reason": "Wrong shade"},
            headers=buyer_headers,
        )
        assert response.status_code == 400

    def test_return_after_delivery(
        self, client: TestClient, buyer_headers, seller_a_headers, placed_order
    ) -> None:
        order_id = placed_order["id"]
        for body in (
            {"status": "shipped", "tracking_number": "1Z999"},
            {"status": "delivered"},
        ):
            response = client.patch(
                f"/me/store/orders/{order_id}/status", json=body, headers=seller_a_headers
            )
            assert response.status_code == 200

        line = next(i for i in placed_order["items"] if i["seller_id"] == "seller-a")
        response = client.post(
            f"/me/orders/{order_id}/returns",
            json={"order_line_id": line["id"], "quantity": 1, "reason": "Wrong shade"},
            headers=buyer_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending_approval"
        assert data["seller_id"] == "seller-a"
