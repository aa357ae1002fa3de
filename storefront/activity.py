"""
Shopper activity tracking: searches, item views and bookings.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from pydantic import ValidationError

from storefront.config import Config
from storefront.models import (
    BookingRecord,
    ItemType,
    SearchRecord,
    UserActivity,
    ViewRecord,
)
from storefront.storage import KeyValueStorage

logger = logging.getLogger(__name__)

MAX_SEARCHES = 20
MAX_VIEWS = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityTracker:
    """Keeps a rolling activity log in storage"""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.storage = storage
        self.storage_key = storage_key or Config.ACTIVITY_STORAGE_KEY
        self.clock = clock
        self.activity = self._load()

    def _load(self) -> UserActivity:
        blob = self.storage.get(self.storage_key)
        if not blob:
            return UserActivity()
        try:
            return UserActivity.model_validate_json(blob)
        except ValidationError as e:
            logger.warning(f"Failed to parse stored user activity: {e.error_count()} error(s)")
            return UserActivity()

    def _save(self) -> None:
        self.storage.set(self.storage_key, self.activity.model_dump_json(by_alias=True))

    def track_search(self, destination: str, date: str, item_type: Union[ItemType, str]) -> None:
        searches = self.activity.searches + [SearchRecord(
            destination=destination,
            date=date,
            type=ItemType(item_type),
            timestamp=self.clock()
        )]
        self.activity.searches = searches[-MAX_SEARCHES:]
        self._save()

    def track_view(self, item_id: Union[str, int], item_type: str) -> None:
        # Destinations can be viewed as well as bookable items
        views = self.activity.views + [ViewRecord(
            item_id=str(item_id),
            type=str(getattr(item_type, "value", item_type)),
            timestamp=self.clock()
        )]
        self.activity.views = views[-MAX_VIEWS:]
        self._save()

    def track_booking(self, item_id: Union[str, int], item_type: Union[ItemType, str], destination: str) -> BookingRecord:
        item_id = str(item_id)
        item_type = ItemType(item_type)
        now = self.clock()

        first_view = next(
            (v for v in self.activity.views if v.item_id == item_id and v.type == item_type.value),
            None
        )
        time_to_book = (now - first_view.timestamp).total_seconds() if first_view else None

        record = BookingRecord(
            item_id=item_id,
            type=item_type,
            destination=destination,
            timestamp=now,
            time_to_book=time_to_book
        )
        self.activity.bookings = self.activity.bookings + [record]
        self._save()
        logger.info(
            "Booking tracked",
            extra={"item_type": item_type.value, "time_to_book": time_to_book}
        )
        return record

    def update_preferences(self, **preferences) -> None:
        self.activity.preferences = self.activity.preferences.model_copy(update=preferences)
        self._save()
