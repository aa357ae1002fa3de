"""
FastAPI application exposing the storefront cart, checkout and bookings.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.activity import ActivityTracker
from storefront.api_client import ApiClient
from storefront.booking_service import BookingService
from storefront.cart_store import CartStore
from storefront.checkout_service import CheckoutService
from storefront.config import Config
from storefront.exceptions import (
    ApiError,
    BookingNotFoundError,
    CheckoutError,
    InvalidResponseError,
    NotAuthenticatedError,
    PreconditionError,
    StorageError,
)
from storefront.middleware import RequestLoggingMiddleware
from storefront.models import (
    Booking,
    BookingStatusUpdateRequest,
    CartEvent,
    CartItem,
    CartItemUpdateRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResult,
    ItemType,
    UserIdentity,
)
from storefront.redis_client import get_redis_client
from storefront.storage import KeyValueStorage, RedisStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.api_client = ApiClient()
    yield
    await app.state.api_client.aclose()


app = FastAPI(
    title="Travel Storefront API",
    description="Cart, checkout and booking queries for the travel storefront",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


# Dependencies

def get_storage() -> KeyValueStorage:
    return RedisStorage(get_redis_client(), ttl=Config.CART_TTL_SECONDS)


def get_cart_id(cart_id: str = Header(..., alias="X-Cart-ID", description="Cart identifier")) -> str:
    if not cart_id.strip():
        raise HTTPException(status_code=400, detail="Cart ID is required")
    return cart_id.strip()


def get_cart_store(
    cart_id: str = Depends(get_cart_id),
    storage: KeyValueStorage = Depends(get_storage)
) -> CartStore:
    return CartStore(storage, storage_key=f"{Config.CART_STORAGE_KEY}:{cart_id}")


def get_current_user(
    user_id: Optional[str] = Header(None, alias="X-User-ID"),
    user_email: Optional[str] = Header(None, alias="X-User-Email"),
    user_name: Optional[str] = Header(None, alias="X-User-Name")
) -> Optional[UserIdentity]:
    if not user_id:
        return None
    return UserIdentity(id=user_id, email=user_email or "", name=user_name or "")


def get_activity_tracker(
    user: Optional[UserIdentity] = Depends(get_current_user),
    storage: KeyValueStorage = Depends(get_storage)
) -> Optional[ActivityTracker]:
    if user is None:
        return None
    return ActivityTracker(storage, storage_key=f"{Config.ACTIVITY_STORAGE_KEY}:{user.id}")


def get_booking_service(request: Request) -> BookingService:
    return BookingService(request.app.state.api_client)


def _cart_response(cart_id: str, cart: CartStore) -> CartResponse:
    return CartResponse(
        cart_id=cart_id,
        items=cart.items,
        total_items=cart.get_item_count(),
        total_price=cart.get_total_price()
    )


# Health check endpoint
@app.get("/health")
async def health_check(storage: KeyValueStorage = Depends(get_storage)):
    """
    Health check endpoint.
    Always returns HTTP 200 if the application is running.
    """
    storage_status = "healthy"
    storage_latency_ms = None

    try:
        ping_start = time.time()
        if not storage.ping():
            storage_status = "unhealthy"
        storage_latency_ms = round((time.time() - ping_start) * 1000, 2)
    except StorageError:
        storage_status = "unhealthy"

    return {
        "status": "healthy",
        "service": "storefront-api",
        "storage": {
            "status": storage_status,
            "latency_ms": storage_latency_ms
        },
        "timestamp": time.time()
    }


# Cart endpoints
@app.get("/cart", response_model=CartResponse)
async def get_cart(
    cart_id: str = Depends(get_cart_id),
    cart: CartStore = Depends(get_cart_store)
):
    """Get cart contents; a cart that was never written is empty"""
    return _cart_response(cart_id, cart)


@app.post("/cart/items", response_model=dict)
async def add_cart_item(
    item: CartItem,
    announce_type: bool = True,
    cart: CartStore = Depends(get_cart_store)
):
    """
    Add item to cart.
    Adding an item already in the cart increases its quantity by one.
    `announce_type=false` gives the plain "Item Added" title.
    """
    events: List[CartEvent] = []
    cart.subscribe(events.append)

    stored = cart.add_item(item, announce_type=announce_type)
    event = events[-1]

    return {
        "success": True,
        "event": event.kind.value,
        "title": event.title,
        "message": event.description,
        "item": stored.model_dump(mode="json", by_alias=True),
        "total_items": cart.get_item_count()
    }


@app.patch("/cart/items/{item_type}/{item_id}", response_model=dict)
async def update_cart_item(
    item_type: ItemType,
    item_id: str,
    request: CartItemUpdateRequest,
    cart: CartStore = Depends(get_cart_store)
):
    """Update quantity, special requests or add-ons of a cart item"""
    if cart.get_item(item_id, item_type) is None:
        raise HTTPException(status_code=404, detail="Item not found in cart")

    if request.special_requests is not None:
        cart.update_special_requests(item_id, item_type, request.special_requests)
    if request.add_ons is not None:
        cart.update_add_ons(item_id, item_type, request.add_ons)
    if request.quantity is not None:
        cart.update_quantity(item_id, item_type, request.quantity)

    updated = cart.get_item(item_id, item_type)
    return {
        "success": True,
        "removed": updated is None,
        "item": updated.model_dump(mode="json", by_alias=True) if updated else None,
        "total_items": cart.get_item_count()
    }


@app.delete("/cart/items/{item_type}/{item_id}", response_model=dict)
async def remove_cart_item(
    item_type: ItemType,
    item_id: str,
    cart: CartStore = Depends(get_cart_store)
):
    """Remove item from cart"""
    if not cart.remove_item(item_id, item_type):
        raise HTTPException(status_code=404, detail="Item not found in cart")

    return {
        "success": True,
        "message": "Item removed from cart",
        "item_id": item_id,
        "item_type": item_type.value
    }


@app.delete("/cart", response_model=dict)
async def clear_cart(cart: CartStore = Depends(get_cart_store)):
    """Remove all items from cart"""
    cart.clear_cart()
    return {"success": True, "message": "All items have been removed from your cart."}


# Checkout endpoint
@app.post("/checkout", response_model=CheckoutResult)
async def checkout(
    request: CheckoutRequest,
    cart: CartStore = Depends(get_cart_store),
    user: Optional[UserIdentity] = Depends(get_current_user),
    bookings: BookingService = Depends(get_booking_service),
    activity: Optional[ActivityTracker] = Depends(get_activity_tracker)
):
    """
    Check out the cart.
    Creates a payment intent and a booking, then clears the cart.
    """
    service = CheckoutService(cart, bookings, activity)
    return await service.checkout(
        user,
        payment_method=request.payment_method,
        idempotency_key=request.idempotency_key
    )


# Booking endpoints
@app.get("/bookings/user/{user_id}", response_model=List[Booking])
async def list_user_bookings(
    user_id: str,
    bookings: BookingService = Depends(get_booking_service)
):
    return await bookings.get_user_bookings(user_id)


@app.get("/bookings/{id_or_reference}", response_model=Booking)
async def get_booking(
    id_or_reference: str,
    bookings: BookingService = Depends(get_booking_service)
):
    return await bookings.get_booking(id_or_reference)


@app.put("/bookings/{booking_id}/status", status_code=204)
async def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdateRequest,
    bookings: BookingService = Depends(get_booking_service)
):
    await bookings.update_booking_status(booking_id, request.status)
    return Response(status_code=204)


# Error handlers
@app.exception_handler(PreconditionError)
async def precondition_error_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Precondition failed", "message": exc.message}
    )


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request, exc):
    return JSONResponse(
        status_code=401,
        content={"error": "Not authenticated", "message": exc.message}
    )


@app.exception_handler(BookingNotFoundError)
async def booking_not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"error": "Booking not found", "message": exc.message}
    )


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request, exc):
    return JSONResponse(
        status_code=502,
        content={
            "error": "Checkout failed",
            "message": exc.message,
            "state": exc.state,
            "payment_intent_id": exc.payment_intent_id,
            "idempotency_key": exc.idempotency_key,
            "compensated": exc.compensated
        }
    )


@app.exception_handler(ApiError)
async def api_error_handler(request, exc):
    return JSONResponse(
        status_code=502,
        content={"error": "Upstream error", "message": exc.message, "upstream_status": exc.status_code}
    )


@app.exception_handler(InvalidResponseError)
async def invalid_response_handler(request, exc):
    return JSONResponse(
        status_code=502,
        content={"error": "Upstream error", "message": exc.message}
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request, exc):
    return JSONResponse(
        status_code=503,
        content={"error": "Service unavailable", "message": "Cart storage unavailable"}
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "type": type(exc).__name__
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
