"""Storefront API tests."""
import pytest
from fastapi.testclient import TestClient

from storefront.config import Config
from storefront.main import app, get_booking_service, get_storage


CART_HEADERS = {"X-Cart-ID": "cart-123"}
USER_HEADERS = {
    **CART_HEADERS,
    "X-User-ID": "u1",
    "X-User-Email": "ada@example.com",
    "X-User-Name": "Ada",
}


@pytest.fixture
def client(storage, booking_service, monkeypatch):
    monkeypatch.setattr(Config, "PAYMENT_CONFIRMATION_DELAY_SECONDS", 0)
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def add(client, item_id="F1", item_type="flight", price=200, **extra):
    return client.post(
        "/cart/items",
        json={"id": item_id, "type": item_type, "name": f"{item_type} {item_id}", "price": price, **extra},
        headers=CART_HEADERS
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["storage"]["status"] == "healthy"


def test_empty_cart(client):
    response = client.get("/cart", headers=CART_HEADERS)

    assert response.status_code == 200
    assert response.json()["items"] == []
    assert response.json()["total_items"] == 0


def test_missing_cart_header(client):
    assert client.get("/cart").status_code == 422


def test_add_same_item_twice(client, storage):
    first = add(client)
    second = add(client)

    assert first.json()["event"] == "added"
    assert first.json()["title"] == "Flight Added to Cart"
    assert second.json()["event"] == "updated"
    assert second.json()["item"]["quantity"] == 2

    cart = client.get("/cart", headers=CART_HEADERS).json()
    assert cart["total_items"] == 2
    assert float(cart["total_price"]) == 400
    assert storage.get("cart:cart-123") is not None


def test_carts_are_isolated_by_id(client):
    add(client)

    other = client.get("/cart", headers={"X-Cart-ID": "someone-else"})

    assert other.json()["items"] == []


def test_update_and_remove_item(client):
    add(client, "H1", "hotel", 90)

    response = client.patch(
        "/cart/items/hotel/H1",
        json={"quantity": 3, "special_requests": "Late check-in", "add_ons": ["breakfast"]},
        headers=CART_HEADERS
    )
    assert response.status_code == 200
    item = response.json()["item"]
    assert item["quantity"] == 3
    assert item["specialRequests"] == "Late check-in"
    assert item["addOns"] == ["breakfast"]

    assert client.delete("/cart/items/flight/H1", headers=CART_HEADERS).status_code == 404
    assert client.delete("/cart/items/hotel/H1", headers=CART_HEADERS).status_code == 200
    assert client.get("/cart", headers=CART_HEADERS).json()["items"] == []


def test_zero_quantity_update_removes(client):
    add(client, "C1", "car", 45)

    response = client.patch("/cart/items/car/C1", json={"quantity": 0}, headers=CART_HEADERS)

    assert response.json()["removed"] is True
    assert client.get("/cart", headers=CART_HEADERS).json()["total_items"] == 0


def test_update_unknown_item(client):
    response = client.patch("/cart/items/car/nope", json={"quantity": 2}, headers=CART_HEADERS)

    assert response.status_code == 404


def test_unknown_item_type_rejected(client):
    assert client.delete("/cart/items/boat/B1", headers=CART_HEADERS).status_code == 422


def test_clear_cart(client):
    add(client)
    add(client, "H1", "hotel", 90)

    assert client.delete("/cart", headers=CART_HEADERS).status_code == 200
    assert client.get("/cart", headers=CART_HEADERS).json()["total_items"] == 0


def test_checkout(client, backend, storage):
    add(client, "F1", "flight", 100)
    add(client, "H1", "hotel", 50)

    response = client.post("/checkout", json={"payment_method": "card"}, headers=USER_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["booking_reference"] == "AT-000042"
    assert float(body["total_amount"]) == 165.0
    assert body["state"] == "committed"
    assert client.get("/cart", headers=CART_HEADERS).json()["items"] == []
    assert storage.get("userActivity:u1") is not None


def test_checkout_requires_user(client, backend):
    add(client)

    response = client.post("/checkout", json={}, headers=CART_HEADERS)

    assert response.status_code == 401
    assert backend.requests == []


def test_checkout_empty_cart(client, backend):
    response = client.post("/checkout", json={}, headers=USER_HEADERS)

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot checkout empty cart"
    assert backend.requests == []


def test_checkout_booking_failure(client, backend):
    backend.booking_failure = 500
    add(client)

    response = client.post("/checkout", json={}, headers=USER_HEADERS)

    assert response.status_code == 502
    body = response.json()
    assert body["message"] == "Booking service unavailable"
    assert body["state"] == "compensated"
    assert body["idempotency_key"]
    assert client.get("/cart", headers=CART_HEADERS).json()["total_items"] == 1


def test_booking_queries(client, backend):
    backend.add_booking(5, "AT-5", user_id="u1")

    listed = client.get("/bookings/user/u1")
    fetched = client.get("/bookings/AT-5")
    missing = client.get("/bookings/AT-404")

    assert [b["booking_reference"] for b in listed.json()] == ["AT-5"]
    assert fetched.json()["status"] == "PENDING"
    assert missing.status_code == 404


def test_update_booking_status(client, backend):
    backend.add_booking(5, "AT-5")

    response = client.put("/bookings/5/status", json={"status": "CONFIRMED"})

    assert response.status_code == 204
    assert backend.bookings["5"]["status"] == "CONFIRMED"


def test_add_item_with_plain_title(client):
    response = client.post(
        "/cart/items?announce_type=false",
        json={"id": "P1", "type": "package", "name": "Bali week", "price": 1200},
        headers=CART_HEADERS
    )

    assert response.json()["title"] == "Item Added"
    assert response.json()["message"] == "Bali week added to your cart."
