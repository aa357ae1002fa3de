"""
Pydantic models for cart items, bookings, checkout, activity, requests and responses.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def _coerce_identifier(v: Any) -> Any:
    """Numeric identifiers are stored in their string form"""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class ItemType(str, Enum):
    """Kinds of things that can be put in the cart"""
    FLIGHT = "flight"
    HOTEL = "hotel"
    CAR = "car"
    PACKAGE = "package"

    @property
    def display_name(self) -> str:
        return _ITEM_DISPLAY_NAMES[self]


_ITEM_DISPLAY_NAMES = {
    ItemType.FLIGHT: "Flight",
    ItemType.HOTEL: "Room",
    ItemType.CAR: "Car",
    ItemType.PACKAGE: "Package",
}


# Item details, one variant per item type

class FlightDetails(BaseModel):
    """Flight-specific attributes"""
    type: Literal["flight"] = "flight"
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    cabin_class: Optional[str] = None
    passengers: int = Field(1, ge=1)


class HotelDetails(BaseModel):
    """Hotel-specific attributes"""
    type: Literal["hotel"] = "hotel"
    location: Optional[str] = None
    room_type: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: int = Field(1, ge=1)

    @property
    def destination(self) -> Optional[str]:
        return self.location

    @property
    def nights(self) -> Optional[int]:
        if self.check_in and self.check_out:
            return (self.check_out - self.check_in).days
        return None


class CarDetails(BaseModel):
    """Car rental attributes"""
    type: Literal["car"] = "car"
    company: Optional[str] = None
    model: Optional[str] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    pickup_date: Optional[date] = None
    dropoff_date: Optional[date] = None

    @property
    def destination(self) -> Optional[str]:
        return self.pickup_location


class PackageDetails(BaseModel):
    """Vacation package attributes"""
    type: Literal["package"] = "package"
    destination: Optional[str] = None
    duration_days: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    inclusions: List[str] = Field(default_factory=list)


ItemDetails = Annotated[
    Union[FlightDetails, HotelDetails, CarDetails, PackageDetails],
    Field(discriminator="type"),
]


class CartItem(BaseModel):
    """Cart line item, unique per (id, type)"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Item identifier")
    type: ItemType = Field(..., description="Item type")
    name: str = Field(..., validation_alias=AliasChoices("name", "title"), description="Display label")
    price: Decimal = Field(..., ge=0, description="Per-unit price")
    quantity: int = Field(1, ge=1, description="Item quantity")
    image: Optional[str] = Field(None, description="Image URL")
    details: Optional[ItemDetails] = Field(None, description="Type-specific attributes")
    special_requests: Optional[str] = Field(None, alias="specialRequests")
    add_ons: List[str] = Field(default_factory=list, alias="addOns")

    @model_validator(mode="before")
    @classmethod
    def tag_details(cls, data: Any) -> Any:
        # Untagged details take the item's own type
        if isinstance(data, dict):
            details = data.get("details")
            item_type = data.get("type")
            if isinstance(details, dict) and "type" not in details and item_type is not None:
                tag = item_type.value if isinstance(item_type, ItemType) else item_type
                data = {**data, "details": {**details, "type": tag}}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    @model_validator(mode="after")
    def validate_details_type(self) -> "CartItem":
        if self.details is not None and self.details.type != self.type.value:
            raise ValueError(
                f"details of type '{self.details.type}' do not match item type '{self.type.value}'"
            )
        return self

    @property
    def key(self) -> Tuple[str, ItemType]:
        return (self.id, self.type)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def destination(self) -> str:
        if self.details is not None and self.details.destination:
            return self.details.destination
        return self.name


# Cart notifications

class CartEventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    QUANTITY_CHANGED = "quantity_changed"
    DETAILS_CHANGED = "details_changed"
    CLEARED = "cleared"


class CartEvent(BaseModel):
    """Notification emitted to cart subscribers after a mutation"""
    kind: CartEventKind
    title: str
    description: str
    item: Optional[CartItem] = None


# Bookings

class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class BookingLineItem(BaseModel):
    """Snapshot of a cart item at time of purchase"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    booking_id: Optional[int] = None
    item_id: str
    item_type: ItemType
    item_name: str
    quantity: int = 1
    price: Decimal
    details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("item_id", mode="before")
    @classmethod
    def validate_item_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)


class Booking(BaseModel):
    """Booking record as returned by the backend"""
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    booking_reference: str
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    items: List[BookingLineItem] = Field(default_factory=list)
    total_amount: Decimal
    payment_method: Optional[str] = None
    payment_intent_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def validate_user_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> Any:
        # Admin tooling writes lower-case statuses
        if isinstance(v, str):
            return v.upper()
        return v


class PaymentIntent(BaseModel):
    """Payment intent created by the backend"""
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(..., alias="clientSecret")
    payment_intent_id: str = Field(..., alias="paymentIntentId")


class BookingConfirmation(BaseModel):
    """Identifiers of a newly created booking"""
    model_config = ConfigDict(populate_by_name=True)

    booking_id: Union[int, str] = Field(..., alias="bookingId")
    booking_reference: str = Field(..., alias="bookingReference")


class UserIdentity(BaseModel):
    """Signed-in shopper, supplied by the caller's session layer"""
    id: str
    email: str
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)


# Checkout

class CheckoutState(str, Enum):
    STARTED = "started"
    INTENT_CREATED = "intent_created"
    BOOKING_PENDING = "booking_pending"
    COMMITTED = "committed"
    COMPENSATED = "compensated"
    FAILED = "failed"


class CheckoutResult(BaseModel):
    """Outcome of a committed checkout"""
    booking_id: Union[int, str]
    booking_reference: str
    payment_intent_id: str
    total_amount: Decimal
    idempotency_key: str
    state: CheckoutState = CheckoutState.COMMITTED
    cart_cleared: bool = True


# Activity tracking

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRecord(_CamelModel):
    destination: str
    date: str
    type: ItemType
    timestamp: datetime


class ViewRecord(_CamelModel):
    item_id: str
    type: str
    timestamp: datetime


class BookingRecord(_CamelModel):
    item_id: str
    type: ItemType
    destination: str
    timestamp: datetime
    time_to_book: Optional[float] = None


class ActivityPreferences(_CamelModel):
    favorite_destinations: List[str] = Field(default_factory=list)
    preferred_activities: List[str] = Field(default_factory=list)
    budget_range: Tuple[int, int] = (0, 5000)
    travel_style: List[str] = Field(default_factory=list)


class UserActivity(_CamelModel):
    searches: List[SearchRecord] = Field(default_factory=list)
    views: List[ViewRecord] = Field(default_factory=list)
    bookings: List[BookingRecord] = Field(default_factory=list)
    preferences: ActivityPreferences = Field(default_factory=ActivityPreferences)


# API requests and responses

class CartItemUpdateRequest(BaseModel):
    """Request model for updating a cart item"""
    quantity: Optional[int] = Field(None, description="New quantity; 0 or less removes the item")
    special_requests: Optional[str] = Field(None, description="Free-text special requests")
    add_ons: Optional[List[str]] = Field(None, description="Selected add-ons")


class CartResponse(BaseModel):
    """Response model for cart retrieval"""
    cart_id: str = Field(..., description="Cart identifier")
    items: List[CartItem] = Field(default_factory=list, description="Cart items in insertion order")
    total_items: int = Field(0, description="Total number of items")
    total_price: Decimal = Field(Decimal("0"), description="Total cart price before tax")


class CheckoutRequest(BaseModel):
    """Request model for checkout"""
    payment_method: Optional[str] = Field(None, description="Payment method label")
    idempotency_key: Optional[str] = Field(None, description="Key from a previous failed attempt")


class BookingStatusUpdateRequest(BaseModel):
    """Request model for admin status changes"""
    status: BookingStatus
