"""
HTTP surface tests.

Verifies:
- Requests without a verified actor return 401
- Only buyers and sellers can check out (403 otherwise)
- Domain errors map to their status codes with error/details bodies
- A full cart -> checkout -> order round trip over HTTP
"""

import pytest

from fulfillment.models import Order, User
from fulfillment.services import order_service


def _open_cart_id(client, headers, kind):
    resp = client.get(f"/api/cart/{kind}", headers=headers)
    assert resp.status_code == 200
    return resp.get_json()["cart"]["id"]


# =============================================================================
# ACTOR HEADERS: 401 / 403
# =============================================================================


class TestActorHeaders:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("GET", "/api/products/1"),
            ("GET", "/api/cart/buy"),
            ("POST", "/api/cart/buy/add"),
            ("POST", "/api/orders/checkout"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("PUT", "/api/orders/1/status"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_actor(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Actor-Id": "4242", "X-Actor-Role": "buyer"})
        assert resp.status_code == 401

    def test_invalid_role_header(self, client, buyer):
        resp = client.get("/api/products", headers={"X-Actor-Id": str(buyer.id), "X-Actor-Role": "root"})
        assert resp.status_code == 401

    def test_role_header_must_match_stored_role(self, client, seller, buyer, drafter, actor_headers):
        client.post("/api/cart/sell/add", json={"product_id": drafter.id}, headers=actor_headers(seller))
        cart_id = _open_cart_id(client, actor_headers(seller), "sell")
        resp = client.post(
            "/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "cash"}, headers=actor_headers(seller)
        )
        order_id = resp.get_json()["order"]["order_id"]

        resp = client.get(f"/api/orders/{order_id}", headers=actor_headers(buyer, role="admin"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Actor role does not match"

        resp = client.put(
            f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=actor_headers(buyer, role="admin")
        )
        assert resp.status_code == 403

    def test_roleless_actor_cannot_assert_admin(self, client, db_session):
        newcomer = User(username="newcomer", role=None)
        db_session.add(newcomer)
        db_session.commit()

        resp = client.get("/api/orders", headers={"X-Actor-Id": str(newcomer.id), "X-Actor-Role": "admin"})
        assert resp.status_code == 403

        resp = client.get("/api/orders", headers={"X-Actor-Id": str(newcomer.id), "X-Actor-Role": "seller"})
        assert resp.status_code == 200

    def test_admin_cannot_check_out(self, client, admin, actor_headers):
        resp = client.post(
            "/api/orders/checkout",
            json={"cart_id": 1, "payment_method": "cash"},
            headers=actor_headers(admin),
        )
        assert resp.status_code == 403
        assert resp.get_json()["required_roles"] == ["buyer", "seller"]


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:

    def test_list_and_get(self, client, buyer, drafter, lab_coat, actor_headers):
        resp = client.get("/api/products", headers=actor_headers(buyer))
        assert resp.status_code == 200
        codes = [p["code"] for p in resp.get_json()["products"]]
        assert codes == ["DFT-P", "WLC-M"]

        resp = client.get(f"/api/products/{drafter.id}", headers=actor_headers(buyer))
        assert resp.get_json()["product"]["available_quantity"] == 5

        resp = client.get("/api/products/9999", headers=actor_headers(buyer))
        assert resp.status_code == 404

    def test_name_filter(self, client, buyer, drafter, lab_coat, actor_headers):
        resp = client.get("/api/products?name=white_lab_coat", headers=actor_headers(buyer))
        assert [p["code"] for p in resp.get_json()["products"]] == ["WLC-M"]

    def test_serials_filter(self, client, buyer, drafter, actor_headers):
        resp = client.get(f"/api/products/{drafter.id}/serials?consumed=false", headers=actor_headers(buyer))
        assert resp.status_code == 200
        assert [s["serial_number"] for s in resp.get_json()["serials"]][:2] == ["DFT-P001", "DFT-P002"]

        resp = client.get(f"/api/products/{drafter.id}/serials?consumed=maybe", headers=actor_headers(buyer))
        assert resp.status_code == 400


# =============================================================================
# CARTS
# =============================================================================


class TestCartRoutes:

    def test_add_and_view(self, client, buyer, drafter, lab_coat, actor_headers):
        headers = actor_headers(buyer)
        resp = client.post("/api/cart/buy/add", json={"product_id": drafter.id, "quantity": 2}, headers=headers)
        assert resp.status_code == 201
        client.post("/api/cart/buy/add", json={"product_id": lab_coat.id}, headers=headers)

        data = client.get("/api/cart/buy", headers=headers).get_json()
        assert data["summary"]["subtotal_cents"] == 1030
        assert data["cart"]["status"] == "open"

    def test_add_validation(self, client, buyer, drafter, actor_headers):
        headers = actor_headers(buyer)
        assert client.post("/api/cart/buy/add", json={}, headers=headers).status_code == 400
        assert client.post(
            "/api/cart/buy/add", json={"product_id": str(drafter.id)}, headers=headers
        ).status_code == 400
        assert client.post(
            "/api/cart/rent/add", json={"product_id": drafter.id}, headers=headers
        ).status_code == 400

    def test_add_over_stock_is_conflict(self, client, buyer, drafter, actor_headers):
        resp = client.post(
            "/api/cart/buy/add", json={"product_id": drafter.id, "quantity": 6}, headers=actor_headers(buyer)
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert "Insufficient stock" in body["error"]
        assert body["details"]["available_quantity"] == 5

    def test_update_remove_clear(self, client, buyer, drafter, lab_coat, actor_headers):
        headers = actor_headers(buyer)
        client.post("/api/cart/buy/add", json={"product_id": drafter.id}, headers=headers)
        client.post("/api/cart/buy/add", json={"product_id": lab_coat.id}, headers=headers)

        resp = client.put("/api/cart/buy/update", json={"product_id": drafter.id, "quantity": 3}, headers=headers)
        assert resp.get_json()["line"]["quantity"] == 3

        resp = client.delete(f"/api/cart/buy/remove/{lab_coat.id}", headers=headers)
        assert resp.status_code == 200

        resp = client.delete("/api/cart/buy/clear", headers=headers)
        assert resp.get_json()["deleted_items"] == 1

        resp = client.delete(f"/api/cart/buy/remove/{lab_coat.id}", headers=headers)
        assert resp.status_code == 404


# =============================================================================
# CHECKOUT AND ORDERS
# =============================================================================


class TestCheckoutRoutes:

    def test_buy_round_trip(self, client, db_session, buyer, drafter, lab_coat, actor_headers):
        headers = actor_headers(buyer)
        client.post("/api/cart/buy/add", json={"product_id": drafter.id, "quantity": 2}, headers=headers)
        client.post("/api/cart/buy/add", json={"product_id": lab_coat.id, "quantity": 1}, headers=headers)
        cart_id = _open_cart_id(client, headers, "buy")

        resp = client.post(
            "/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "upi"}, headers=headers
        )

        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["serial_label"] == "ORD-001"
        assert order["total_amount_cents"] == 1030
        assert order["total_items"] == 3
        serials = {item["product_code"]: item["serial_numbers"] for item in order["items"]}
        assert serials == {"DFT-P": ["DFT-P001", "DFT-P002"], "WLC-M": ["WLC-M001"]}

        cart = client.get("/api/cart/buy", headers=headers).get_json()
        assert cart["items"] == []

        resp = client.get(f"/api/products/{drafter.id}", headers=headers)
        assert resp.get_json()["product"]["available_quantity"] == 3

    def test_seller_checkout_creates_sell_order(self, client, seller, calculator, actor_headers):
        headers = actor_headers(seller)
        client.post("/api/cart/sell/add", json={"product_id": calculator.id, "quantity": 2}, headers=headers)
        cart_id = _open_cart_id(client, headers, "sell")

        resp = client.post(
            "/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "cash"}, headers=headers
        )

        order = resp.get_json()["order"]
        assert order["kind"] == "sell"
        assert order["items"][0]["serial_numbers"] == ["CALC-ES001", "CALC-ES002"]

    def test_checkout_errors(self, client, buyer, other_buyer, drafter, actor_headers):
        headers = actor_headers(buyer)
        client.post("/api/cart/buy/add", json={"product_id": drafter.id}, headers=headers)
        cart_id = _open_cart_id(client, headers, "buy")

        resp = client.post("/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "card"}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["details"]["payment_method"] == "card"

        resp = client.post("/api/orders/checkout", json={"cart_id": str(cart_id), "payment_method": "cash"}, headers=headers)
        assert resp.status_code == 400

        resp = client.post(
            "/api/orders/checkout",
            json={"cart_id": cart_id, "payment_method": "cash"},
            headers=actor_headers(other_buyer),
        )
        assert resp.status_code == 403

        resp = client.post(
            "/api/orders/checkout",
            json={"cart_id": cart_id, "payment_method": "cash"},
            headers=actor_headers(buyer, role="seller"),
        )
        assert resp.status_code == 403

    def test_checkout_insufficient_stock(self, client, db_session, buyer, other_buyer, drafter, actor_headers):
        headers = actor_headers(buyer)
        client.post("/api/cart/buy/add", json={"product_id": drafter.id, "quantity": 4}, headers=headers)
        cart_id = _open_cart_id(client, headers, "buy")

        rival = actor_headers(other_buyer)
        client.post("/api/cart/buy/add", json={"product_id": drafter.id, "quantity": 3}, headers=rival)
        client.post(
            "/api/orders/checkout",
            json={"cart_id": _open_cart_id(client, rival, "buy"), "payment_method": "cash"},
            headers=rival,
        )

        resp = client.post("/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "cash"}, headers=headers)

        assert resp.status_code == 409
        assert resp.get_json()["details"]["items"][0]["available_quantity"] == 2
        db_session.expire_all()
        assert db_session.query(Order).filter_by(owner_user_id=buyer.id).count() == 0

    def test_first_checkout_assigns_role(self, client, db_session, drafter):
        newcomer = User(username="newcomer", role=None)
        db_session.add(newcomer)
        db_session.commit()
        headers = {"X-Actor-Id": str(newcomer.id), "X-Actor-Role": "buyer"}

        client.post("/api/cart/buy/add", json={"product_id": drafter.id}, headers=headers)
        cart_id = _open_cart_id(client, headers, "buy")
        resp = client.post("/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "cash"}, headers=headers)

        assert resp.status_code == 201
        db_session.expire_all()
        assert db_session.get(User, newcomer.id).role == "buyer"


class TestOrderRoutes:

    def _sell(self, client, headers, product, quantity=1):
        client.post("/api/cart/sell/add", json={"product_id": product.id, "quantity": quantity}, headers=headers)
        cart_id = _open_cart_id(client, headers, "sell")
        resp = client.post("/api/orders/checkout", json={"cart_id": cart_id, "payment_method": "cash"}, headers=headers)
        return resp.get_json()["order"]

    def test_get_order_access(self, client, seller, buyer, admin, drafter, actor_headers):
        order = self._sell(client, actor_headers(seller), drafter, 2)

        resp = client.get(f"/api/orders/{order['order_id']}", headers=actor_headers(seller))
        assert resp.status_code == 200
        body = resp.get_json()["order"]
        assert body["open_quantity"] == 2
        assert body["lines"][0]["serial_numbers"] == ["DFT-P006", "DFT-P007"]

        assert client.get(f"/api/orders/{order['order_id']}", headers=actor_headers(buyer)).status_code == 403
        assert client.get(f"/api/orders/{order['order_id']}", headers=actor_headers(admin)).status_code == 200
        assert client.get("/api/orders/9999", headers=actor_headers(admin)).status_code == 404

    def test_list_orders(self, client, seller, drafter, actor_headers):
        headers = actor_headers(seller)
        for _ in range(3):
            self._sell(client, headers, drafter)

        resp = client.get("/api/orders?limit=2&page=2", headers=headers)

        data = resp.get_json()
        assert len(data["orders"]) == 1
        assert data["orders"][0]["serial_label"] == "ORD-001"
        assert data["pagination"]["total_orders"] == 3

        assert client.get("/api/orders?status=lost", headers=headers).status_code == 400

    def test_update_status(self, client, seller, drafter, actor_headers):
        headers = actor_headers(seller)
        order = self._sell(client, headers, drafter)
        url = f"/api/orders/{order['order_id']}/status"

        assert client.put(url, json={}, headers=headers).status_code == 400

        resp = client.put(url, json={"status": "cancelled"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "cancelled"

        assert client.put(url, json={"status": "completed"}, headers=headers).status_code == 400

    @pytest.mark.parametrize(
        "target,path",
        [
            ("list_orders", "/api/orders"),
            ("get_order", "/api/orders/1"),
        ],
    )
    def test_unexpected_errors_return_json_500(self, client, seller, actor_headers, monkeypatch, target, path):
        def _boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(order_service, target, _boom)

        resp = client.get(path, headers=actor_headers(seller))

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}


# =============================================================================
# HEALTH
# =============================================================================


class TestHealth:

    def test_healthy(self, client, drafter):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["ledger"]["status"] == "healthy"
        assert body["checks"]["database"]["details"]["serials"] == 5

    def test_ledger_drift_is_unhealthy(self, client, db_session, drafter):
        drafter.available_quantity = 1
        db_session.commit()

        resp = client.get("/health")

        assert resp.status_code == 503
        mismatches = resp.get_json()["checks"]["ledger"]["mismatches"]
        assert mismatches[0]["product_code"] == "DFT-P"
