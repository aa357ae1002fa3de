"""
Checkout service turning the cart into a payment intent and a booking.
"""
import asyncio
import hashlib
import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from storefront.activity import ActivityTracker
from storefront.booking_service import BookingService
from storefront.cart_store import CartStore
from storefront.config import Config
from storefront.exceptions import (
    ApiError,
    CheckoutError,
    EmptyCartError,
    InvalidResponseError,
    NotAuthenticatedError,
    StorefrontError,
)
from storefront.models import CheckoutResult, CheckoutState, UserIdentity

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def calculate_total(subtotal: Decimal) -> Decimal:
    """Subtotal plus flat tax, rounded to cents"""
    return (subtotal * Config.tax_multiplier()).quantize(CENTS, rounding=ROUND_HALF_UP)


class CheckoutService:
    """
    Service for checkout operations.

    A checkout attempt moves through these states:

        started -> intent_created -> booking_pending -> committed

    If booking creation fails after the payment intent exists, the intent
    is cancelled (``compensated``). If cancelling fails too, the attempt
    ends ``failed`` with the intent left for reconciliation.
    """

    def __init__(
        self,
        cart: CartStore,
        bookings: BookingService,
        activity: Optional[ActivityTracker] = None,
        confirmation_delay: Optional[float] = None
    ):
        self.cart = cart
        self.bookings = bookings
        self.activity = activity
        self.confirmation_delay = (
            Config.PAYMENT_CONFIRMATION_DELAY_SECONDS if confirmation_delay is None else confirmation_delay
        )
        self.state = CheckoutState.STARTED

    @staticmethod
    def _hash_user(user_id: str) -> str:
        """Hash user ID for logging (no PII)"""
        return hashlib.sha256(user_id.encode()).hexdigest()[:8]

    async def checkout(
        self,
        user: Optional[UserIdentity],
        payment_method: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> CheckoutResult:
        """
        Run one checkout attempt:
        1. Check a user is signed in and the cart has items
        2. Compute the total with tax
        3. Create a payment intent
        4. Wait out the simulated payment confirmation
        5. Create the booking
        6. Clear the cart and track each booked item (best effort)

        Args:
            user: Signed-in shopper, or None
            payment_method: Payment method label
            idempotency_key: Key of an earlier failed attempt to retry it safely

        Returns:
            CheckoutResult with the booking reference

        Raises:
            NotAuthenticatedError, EmptyCartError: before any request is made
            CheckoutError: when a backend step fails
        """
        self.state = CheckoutState.STARTED

        if user is None or not user.id:
            raise NotAuthenticatedError()
        if self.cart.is_empty:
            raise EmptyCartError()

        items = self.cart.items
        total_amount = calculate_total(self.cart.get_total_price())
        idempotency_key = idempotency_key or str(uuid.uuid4())
        payment_method = payment_method or Config.DEFAULT_PAYMENT_METHOD
        log_extra = {"hashed_user_id": self._hash_user(user.id), "idempotency_key": idempotency_key}

        logger.info(f"Checkout started: {len(items)} item(s), total {total_amount}", extra=log_extra)

        try:
            intent = await self.bookings.create_payment_intent(total_amount, Config.CURRENCY)
        except (ApiError, InvalidResponseError) as e:
            self.state = CheckoutState.FAILED
            logger.error(f"Payment intent request failed: {e}", extra=log_extra)
            raise CheckoutError(str(e), state=self.state.value, idempotency_key=idempotency_key) from e

        self.state = CheckoutState.INTENT_CREATED
        await asyncio.sleep(self.confirmation_delay)

        self.state = CheckoutState.BOOKING_PENDING
        try:
            confirmation = await self.bookings.create_booking(
                user=user,
                items=items,
                payment_method=payment_method,
                payment_intent_id=intent.payment_intent_id,
                total_amount=total_amount,
                idempotency_key=idempotency_key
            )
        except (ApiError, InvalidResponseError) as e:
            logger.error(f"Booking creation failed: {e}", extra=log_extra)
            compensated = await self._compensate(intent.payment_intent_id, log_extra)
            raise CheckoutError(
                str(e),
                state=self.state.value,
                payment_intent_id=intent.payment_intent_id,
                idempotency_key=idempotency_key,
                compensated=compensated
            ) from e

        self.state = CheckoutState.COMMITTED
        logger.info(f"Booking created: {confirmation.booking_reference}", extra=log_extra)

        result = CheckoutResult(
            booking_id=confirmation.booking_id,
            booking_reference=confirmation.booking_reference,
            payment_intent_id=intent.payment_intent_id,
            total_amount=total_amount,
            idempotency_key=idempotency_key,
            state=self.state
        )

        # Booking exists; cart and activity failures are logged, not raised
        try:
            self.cart.clear_cart()
        except StorefrontError as e:
            result.cart_cleared = False
            logger.error(f"Could not clear cart after booking {result.booking_reference}: {e}", extra=log_extra)

        if self.activity is not None:
            try:
                for item in items:
                    self.activity.track_booking(item.id, item.type, item.destination)
            except StorefrontError as e:
                logger.warning(f"Could not record booking activity: {e}", extra=log_extra)

        return result

    async def _compensate(self, payment_intent_id: str, log_extra: dict) -> bool:
        """Cancel a payment intent whose booking was not created"""
        try:
            await self.bookings.cancel_payment_intent(payment_intent_id)
        except (ApiError, InvalidResponseError) as e:
            self.state = CheckoutState.FAILED
            logger.error(
                f"Could not cancel payment intent {payment_intent_id}, needs reconciliation: {e}",
                extra=log_extra
            )
            return False

        self.state = CheckoutState.COMPENSATED
        logger.info(f"Payment intent {payment_intent_id} cancelled", extra=log_extra)
        return True
