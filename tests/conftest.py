import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from storefront.api_client import ApiClient
from storefront.booking_service import BookingService
from storefront.cart_store import CartStore
from storefront.storage import MemoryStorage


BASE_URL = "http://backend.test/api"


class FakeBackend:
    """Booking backend served through httpx.MockTransport"""

    def __init__(self):
        self.requests = []
        self.booking_failure = None
        self.intent_failure = None
        self.cancel_fails = False
        self.bookings = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if method == "POST" and path == "/api/bookings/payment-intent":
            if self.intent_failure:
                return httpx.Response(self.intent_failure, json={"message": "Payment provider unavailable"})
            return httpx.Response(200, json={"clientSecret": "pi_1_secret", "paymentIntentId": "pi_1"})

        if method == "POST" and path.endswith("/cancel"):
            if self.cancel_fails:
                return httpx.Response(500, json={"error": "cancel failed"})
            return httpx.Response(204)

        if method == "POST" and path == "/api/bookings":
            if self.booking_failure:
                return httpx.Response(self.booking_failure, json={"message": "Booking service unavailable"})
            return httpx.Response(201, json={"data": {"bookingId": 42, "bookingReference": "AT-000042"}})

        if method == "GET" and path.startswith("/api/bookings/user/"):
            user_id = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json=[b for b in self.bookings.values() if b["user_id"] == user_id])

        if method == "GET" and path.startswith("/api/bookings/"):
            key = path.rsplit("/", 1)[-1]
            for booking in self.bookings.values():
                if key in (str(booking["id"]), booking["booking_reference"]):
                    return httpx.Response(200, json={"data": {"booking": booking}})
            return httpx.Response(404, json={"message": "Booking not found"})

        if method == "PUT" and path.endswith("/status"):
            booking_id = path.split("/")[-2]
            body = json.loads(request.content)
            if booking_id in self.bookings:
                self.bookings[booking_id]["status"] = body["status"]
            return httpx.Response(204)

        return httpx.Response(404, json={"message": f"No route for {method} {path}"})

    @property
    def paths(self):
        return [(r.method, r.url.path) for r in self.requests]

    def add_booking(self, booking_id, reference, user_id="u1", status="PENDING", total="165.00"):
        self.bookings[str(booking_id)] = {
            "id": booking_id,
            "booking_reference": reference,
            "user_id": user_id,
            "user_email": "ada@example.com",
            "user_name": "Ada",
            "status": status,
            "total_amount": total,
            "items": [{
                "id": 1,
                "booking_id": booking_id,
                "item_id": "F1",
                "item_type": "flight",
                "item_name": "SYD to MEL",
                "quantity": 1,
                "price": 150,
                "details": {"airline": "Qantas"}
            }],
            "created_at": "2024-05-01T10:00:00Z"
        }


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cart(storage):
    return CartStore(storage, storage_key="cart")


@pytest.fixture
def make_item():
    def _make_item(item_id="F1", item_type="flight", price="200", name=None, **extra):
        return {
            "id": item_id,
            "type": item_type,
            "name": name or f"{item_type} {item_id}",
            "price": Decimal(price),
            **extra
        }
    return _make_item


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def api_client(backend):
    return ApiClient(
        base_url=BASE_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(backend))
    )


@pytest.fixture
def booking_service(api_client):
    return BookingService(api_client)


@pytest.fixture
def clock():
    """Controllable UTC clock"""
    class Clock:
        def __init__(self):
            self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        def __call__(self):
            return self.now

        def advance(self, seconds):
            self.now += timedelta(seconds=seconds)

    return Clock()
