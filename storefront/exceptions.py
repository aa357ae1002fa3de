"""
Custom exceptions for the storefront cart, checkout and booking layers.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base exception for storefront operations"""
    pass


class PreconditionError(StorefrontError):
    """Raised before any network call when checkout cannot start"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EmptyCartError(PreconditionError):
    """Raised when checking out an empty cart"""
    def __init__(self):
        super().__init__("Cannot checkout empty cart")


class NotAuthenticatedError(PreconditionError):
    """Raised when checkout is attempted without a signed-in user"""
    def __init__(self):
        super().__init__("Please log in to complete checkout")


class ApiError(StorefrontError):
    """Raised when a backend request fails at the transport or HTTP level"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BookingNotFoundError(ApiError):
    """Raised when a booking does not exist"""
    def __init__(self, booking_id: str, message: Optional[str] = None):
        self.booking_id = booking_id
        super().__init__(message or f"Booking not found: {booking_id}", status_code=404)


class InvalidResponseError(StorefrontError):
    """Raised when a backend response cannot be parsed"""
    def __init__(self, message: str = "Invalid JSON response from server"):
        self.message = message
        super().__init__(message)


class CheckoutError(StorefrontError):
    """Raised when a checkout attempt fails after it has started talking to the backend"""
    def __init__(
        self,
        message: str,
        state: str,
        payment_intent_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        compensated: bool = False
    ):
        self.message = message
        self.state = state
        self.payment_intent_id = payment_intent_id
        self.idempotency_key = idempotency_key
        self.compensated = compensated
        super().__init__(message)


class StorageError(StorefrontError):
    """Raised when the storage backend fails"""
    pass


class RedisConnectionError(StorageError):
    """Raised when Redis connection fails"""
    pass
