"""
Booking service: REST wrappers for payment intents and booking records,
plus a poller that watches a booking's status.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from storefront.api_client import ApiClient, unwrap_envelope
from storefront.config import Config
from storefront.exceptions import ApiError, BookingNotFoundError, InvalidResponseError
from storefront.models import (
    Booking,
    BookingConfirmation,
    BookingStatus,
    CartItem,
    PaymentIntent,
    UserIdentity,
)

logger = logging.getLogger(__name__)

_booking_list = TypeAdapter(List[Booking])

BookingId = Union[int, str]


class BookingService:
    """Service for booking endpoints"""

    def __init__(self, api: ApiClient):
        self.api = api

    async def create_payment_intent(self, amount: Decimal, currency: Optional[str] = None) -> PaymentIntent:
        body = await self.api.post("bookings/payment-intent", {
            "amount": float(amount),
            "currency": currency or Config.CURRENCY
        })
        return self._parse(PaymentIntent, unwrap_envelope(body))

    async def cancel_payment_intent(self, payment_intent_id: str) -> None:
        await self.api.post(f"bookings/payment-intent/{payment_intent_id}/cancel")

    async def create_booking(
        self,
        user: UserIdentity,
        items: Sequence[CartItem],
        payment_method: str,
        payment_intent_id: Optional[str],
        total_amount: Decimal,
        idempotency_key: Optional[str] = None
    ) -> BookingConfirmation:
        """
        Create a booking from a snapshot of cart items.

        The idempotency key travels in the ``Idempotency-Key`` header so a
        retried request is recognised by the backend.
        """
        payload = {
            "userId": user.id,
            "userEmail": user.email,
            "userName": user.name,
            "items": [self._line_item(item) for item in items],
            "paymentMethod": payment_method,
            "paymentIntentId": payment_intent_id,
            "totalAmount": float(total_amount)
        }
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        body = await self.api.post("bookings", payload, headers=headers)
        return self._parse(BookingConfirmation, unwrap_envelope(body))

    async def get_user_bookings(self, user_id: BookingId) -> List[Booking]:
        """Bookings for a user, in the order the backend returns them (most recent first)"""
        body = await self.api.get(f"bookings/user/{user_id}")
        bookings = unwrap_envelope(body, "bookings")
        try:
            return _booking_list.validate_python(bookings)
        except ValidationError as e:
            raise InvalidResponseError(f"Unexpected bookings payload: {e.error_count()} invalid field(s)") from e

    async def get_booking(self, id_or_reference: BookingId) -> Booking:
        try:
            body = await self.api.get(f"bookings/{id_or_reference}")
        except ApiError as e:
            if e.status_code == 404:
                raise BookingNotFoundError(str(id_or_reference), e.message) from e
            raise
        return self._parse(Booking, unwrap_envelope(body, "booking"))

    async def update_booking_status(self, booking_id: BookingId, status: BookingStatus) -> None:
        await self.api.put(f"bookings/{booking_id}/status", {"status": BookingStatus(status).value})

    @staticmethod
    def _line_item(item: CartItem) -> dict:
        line = item.model_dump(mode="json", by_alias=True)
        line["price"] = float(item.price)
        return line

    @staticmethod
    def _parse(model, payload):
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(
                f"Unexpected {model.__name__} payload: {e.error_count()} invalid field(s)"
            ) from e


class BookingStatusPoller:
    """Refetches a booking until its status settles"""

    def __init__(
        self,
        booking_service: BookingService,
        interval: Optional[float] = None,
        max_polls: Optional[int] = None
    ):
        self.booking_service = booking_service
        self.interval = Config.BOOKING_POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_polls = max_polls

    async def watch(
        self,
        booking_id: BookingId,
        on_change: Callable[[BookingStatus], None],
        initial_status: Optional[BookingStatus] = None
    ) -> Optional[BookingStatus]:
        """
        Poll a booking and report status changes.

        Stops once the status is terminal or after ``max_polls`` fetches.
        Fetch failures are logged and the next poll goes ahead.

        Returns:
            Last observed status
        """
        status = initial_status
        polls = 0

        while self.max_polls is None or polls < self.max_polls:
            polls += 1
            try:
                booking = await self.booking_service.get_booking(booking_id)
            except (ApiError, InvalidResponseError) as e:
                logger.warning(
                    f"Error fetching booking status: {e}",
                    extra={"booking_id": str(booking_id), "poll": polls}
                )
            else:
                if booking.status != status:
                    status = booking.status
                    logger.info(
                        f"Booking status changed to {status.value}",
                        extra={"booking_id": str(booking_id)}
                    )
                    on_change(status)
                if status.is_terminal:
                    break

            if self.max_polls is not None and polls >= self.max_polls:
                break
            await asyncio.sleep(self.interval)

        return status
