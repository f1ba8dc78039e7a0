"""HTTP surface, end to end on the seeded catalog with fake providers."""

import json
import threading
from unittest.mock import patch
from urllib.parse import unquote

from fastapi import Request

from storefront.api.deps import raw_body
from storefront.domain.status import OrderStatus

ADMIN = {"X-User-Id": "99"}
CUSTOMER = {"X-User-Id": "1"}
CONTACT = {"email": "ana@example.com", "name": "Ana"}


def _add(client, headers=None, **item):
    body = {"product_id": 1, "size": "S", "color": "black", "quantity": 1, **item}
    return client.post("/cart/items", json=body, headers=headers or {})


class TestHealth:
    def test_ok(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestUsers:
    def test_create_and_get(self, client):
        created = client.post("/users", json={"id": 7, "name": "Luz"})
        assert created.status_code == 201

        fetched = client.get("/users/7")
        assert fetched.json() == {"id": 7, "name": "Luz", "is_admin": False}

    def test_missing_user(self, client):
        assert client.get("/users/404").status_code == 404

    def test_guest_cannot_create_admin(self, client):
        response = client.post("/users", json={"id": 8, "name": "Max", "is_admin": True})

        assert response.status_code == 403
        assert client.get("/users/8").status_code == 404

    def test_customer_cannot_promote_self(self, client):
        response = client.post("/users", json={"id": 1, "name": "Ana", "is_admin": True}, headers=CUSTOMER)

        assert response.status_code == 403
        assert client.get("/users/1").json()["is_admin"] is False

    def test_admin_creates_admin(self, client):
        response = client.post("/users", json={"id": 8, "name": "Max", "is_admin": True}, headers=ADMIN)

        assert response.status_code == 201
        assert response.json()["is_admin"] is True


class TestProducts:
    def test_variants_with_effective_prices(self, client):
        body = client.get("/products/2").json()

        assert body["name"] == "Denim Jacket"
        prices = {(v["size"], v["color"]): v["unit_price"] for v in body["variants"]}
        assert prices == {("M", "blue"): "25000.00", ("L", "blue"): "26000.00"}

    def test_unknown_product(self, client):
        response = client.get("/products/404")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"


class TestGuestCart:
    def test_add_sets_cookie(self, client):
        response = _add(client, quantity=2)

        assert response.status_code == 200
        assert response.json()["items"][0]["line_id"] == "1:S:black"
        assert response.json()["totals"]["total"] == "24200.00"
        cookie = json.loads(unquote(client.cookies["cart"]))
        assert cookie["items"] == [{"productId": 1, "size": "S", "color": "black", "quantity": 2}]

    def test_cart_survives_requests_through_cookie(self, client):
        _add(client)
        _add(client, quantity=2)

        body = client.get("/cart").json()
        assert body["item_count"] == 3

    def test_batch_add(self, client):
        response = client.post(
            "/cart/items",
            json={"items": [
                {"product_id": 1, "size": "S", "color": "black", "quantity": 1},
                {"product_id": 2, "size": "M", "color": "blue", "quantity": 1},
            ]},
        )
        assert {i["line_id"] for i in response.json()["items"]} == {"1:S:black", "2:M:blue"}

    def test_stock_error(self, client):
        response = _add(client, size="M", quantity=4)

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "insufficient_stock"
        assert detail["available"] == 3

    def test_update_and_remove(self, client):
        _add(client)

        updated = client.patch("/cart/items/1:S:black", json={"quantity": 4})
        assert updated.json()["items"][0]["quantity"] == 4

        removed = client.delete("/cart/items/1:S:black")
        assert removed.json()["items"] == []

    def test_update_unknown_line(self, client):
        assert client.patch("/cart/items/1:S:black", json={"quantity": 4}).status_code == 404

    def test_totals(self, client):
        _add(client, product_id=2, size="M", color="blue", quantity=1)
        assert client.get("/cart/totals").json() == {
            "subtotal": "25000.00",
            "tax": "5250.00",
            "shipping": "0.00",
            "total": "30250.00",
        }

    def test_small_cart_pays_shipping(self, client):
        # 10000 is not above the free-shipping threshold
        _add(client)
        assert client.get("/cart/totals").json()["shipping"] == "1500.00"


class TestUserCart:
    def test_durable_cart(self, client):
        _add(client, headers=CUSTOMER, quantity=2)

        body = client.get("/cart", headers=CUSTOMER).json()
        assert body["user_id"] == 1
        assert body["items"][0]["quantity"] == 2
        assert "cart" not in client.cookies

    def test_sync_absorbs_guest_cart_once(self, client):
        _add(client, headers=CUSTOMER, quantity=2)
        _add(client, quantity=1)
        guest_cookie = client.cookies["cart"]

        first = client.post("/cart/sync", headers=CUSTOMER)
        assert first.json()["items"][0]["quantity"] == 3
        assert "cart" not in client.cookies

        # the same guest cookie replayed does not count twice
        again = client.post("/cart/sync", headers={**CUSTOMER, "Cookie": f"cart={guest_cookie}"})
        assert again.json()["items"][0]["quantity"] == 3

    def test_sync_requires_login(self, client):
        assert client.post("/cart/sync").status_code == 403

    def test_clear(self, client):
        _add(client, headers=CUSTOMER)
        assert client.delete("/cart", headers=CUSTOMER).json()["items"] == []
        assert client.delete("/cart", headers=CUSTOMER).status_code == 200


class TestCheckoutFlow:
    def _checkout(self, client, headers=None, provider="mercadopago"):
        return client.post("/checkout", json={"provider": provider, "contact": CONTACT}, headers=headers or {})

    def test_guest_checkout_and_webhook(self, client, providers, notifications):
        _add(client, size="M", quantity=2)

        response = self._checkout(client)
        assert response.status_code == 201
        out = response.json()
        assert out["status"] == OrderStatus.PENDING.value
        assert out["redirect_url"]
        assert out["totals"]["total"] == "24200.00"
        assert "cart" not in client.cookies

        hook = {"ref": out["provider_ref_id"], "status": "approved"}
        first = client.post("/payments/webhooks/mercadopago", json=hook)
        second = client.post("/payments/webhooks/mercadopago", json=hook)

        assert first.json()["applied"] is True
        assert first.json()["status"] == OrderStatus.PAID.value
        assert second.status_code == 200
        assert second.json()["applied"] is False
        assert notifications.sent == [("order_confirmation", out["order_id"])]

        status = client.get(f"/orders/{out['order_id']}/status").json()
        assert status["status"] == OrderStatus.PAID.value

        product = client.get("/products/1").json()
        stock = {(v["size"], v["color"]): v["stock"] for v in product["variants"]}
        assert stock[("M", "black")] == 1

    def test_stripe_returns_client_secret(self, client):
        _add(client)
        out = self._checkout(client, provider="stripe").json()
        assert out["client_secret"]
        assert out["redirect_url"] is None

    def test_user_checkout_clears_durable_cart(self, client):
        _add(client, headers=CUSTOMER)
        assert self._checkout(client, headers=CUSTOMER).status_code == 201
        assert client.get("/cart", headers=CUSTOMER).json()["items"] == []

    def test_empty_cart(self, client):
        assert self._checkout(client).status_code == 422

    def test_provider_down(self, client, providers):
        providers["mercadopago"].configure(should_fail=True)
        _add(client)

        response = self._checkout(client)

        assert response.status_code == 502
        assert response.json()["detail"]["message"] == "Payment could not be started, please try again"
        assert client.cookies["cart"]

    def test_retry_after_rejection(self, client):
        _add(client, headers=CUSTOMER)
        out = self._checkout(client, headers=CUSTOMER).json()
        client.post("/payments/webhooks/mercadopago", json={"ref": out["provider_ref_id"], "status": "rejected"})

        retry = client.post(f"/orders/{out['order_id']}/payments", headers=CUSTOMER)

        assert retry.status_code == 201
        assert retry.json()["provider_ref_id"] != out["provider_ref_id"]
        assert retry.json()["status"] == OrderStatus.PENDING.value

    def test_webhook_for_unknown_payment(self, client):
        response = client.post("/payments/webhooks/mercadopago", json={"ref": "nope", "status": "approved"})
        assert response.status_code == 200
        assert response.json()["applied"] is False

    def test_webhook_unknown_provider(self, client):
        assert client.post("/payments/webhooks/paypal", json={}).status_code == 404

    def test_webhook_work_runs_off_the_event_loop(self, client, providers):
        provider = providers["mercadopago"]
        parse = provider.parse_notification
        threads = {}

        async def body_on_loop(request: Request) -> bytes:
            threads["loop"] = threading.get_ident()
            return await request.body()

        def parse_in_handler(*args):
            threads["handler"] = threading.get_ident()
            return parse(*args)

        client.app.dependency_overrides[raw_body] = body_on_loop
        with patch.object(provider, "parse_notification", side_effect=parse_in_handler):
            response = client.post("/payments/webhooks/mercadopago", json={"ref": "nope", "status": "approved"})

        assert response.status_code == 200
        assert threads["handler"] != threads["loop"]


class TestOrders:
    def _paid_order(self, client):
        _add(client, headers=CUSTOMER)
        out = client.post("/checkout", json={"provider": "mercadopago", "contact": CONTACT}, headers=CUSTOMER).json()
        client.post("/payments/webhooks/mercadopago", json={"ref": out["provider_ref_id"], "status": "approved"})
        return out["order_id"]

    def test_owner_sees_order(self, client):
        order_id = self._paid_order(client)

        body = client.get(f"/orders/{order_id}", headers=CUSTOMER).json()

        assert body["status"] == OrderStatus.PAID.value
        assert body["items"][0]["unit_price"] == "10000.00"
        assert body["payments"][0]["status"] == "SUCCEEDED"

    def test_other_user_is_refused(self, client):
        order_id = self._paid_order(client)
        client.post("/users", json={"id": 2, "name": "Eva"})
        assert client.get(f"/orders/{order_id}", headers={"X-User-Id": "2"}).status_code == 403

    def test_fulfillment(self, client):
        order_id = self._paid_order(client)

        assert client.post(f"/orders/{order_id}/ship", headers=ADMIN).json()["status"] == "SHIPPED"
        assert client.post(f"/orders/{order_id}/deliver", headers=ADMIN).json()["status"] == "DELIVERED"

    def test_fulfillment_is_admin_only(self, client):
        order_id = self._paid_order(client)
        assert client.post(f"/orders/{order_id}/ship", headers=CUSTOMER).status_code == 403

    def test_paid_order_cannot_be_cancelled(self, client):
        order_id = self._paid_order(client)
        assert client.post(f"/orders/{order_id}/cancel", headers=ADMIN).status_code == 422

    def test_cancel_pending_order(self, client):
        _add(client, headers=CUSTOMER)
        out = client.post("/checkout", json={"provider": "mercadopago", "contact": CONTACT}, headers=CUSTOMER).json()

        response = client.post(f"/orders/{out['order_id']}/cancel", headers=ADMIN)

        assert response.json()["status"] == "CANCELLED"


class TestInventory:
    def test_admin_adjusts_stock(self, client):
        response = client.post("/inventory/variants/1", json={"operation": "increment", "quantity": 5}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["stock_after"] == response.json()["stock_before"] + 5

    def test_customer_is_refused(self, client):
        response = client.post("/inventory/variants/1", json={"operation": "set", "quantity": 0}, headers=CUSTOMER)
        assert response.status_code == 403

    def test_bad_operation(self, client):
        response = client.post("/inventory/variants/1", json={"operation": "drop", "quantity": 1}, headers=ADMIN)
        assert response.status_code == 422
