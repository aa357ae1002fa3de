"""ActivityTracker tests."""
import json

from storefront.activity import MAX_SEARCHES, MAX_VIEWS, ActivityTracker
from storefront.models import ItemType
from storefront.storage import MemoryStorage


def test_time_to_book_measured_from_first_view(storage, clock):
    tracker = ActivityTracker(storage, clock=clock)
    tracker.track_view("F1", "flight")
    clock.advance(30)
    tracker.track_view("F1", "flight")
    clock.advance(90)

    record = tracker.track_booking("F1", ItemType.FLIGHT, "MEL")

    assert record.time_to_book == 120
    assert record.destination == "MEL"


def test_booking_without_view_has_no_time_to_book(storage, clock):
    tracker = ActivityTracker(storage, clock=clock)
    tracker.track_view("F1", "hotel")

    record = tracker.track_booking("F1", "flight", "MEL")

    assert record.time_to_book is None


def test_rolling_limits(storage, clock):
    tracker = ActivityTracker(storage, clock=clock)

    for n in range(MAX_SEARCHES + 5):
        tracker.track_search(f"city-{n}", "2024-07-01", "hotel")
    for n in range(MAX_VIEWS + 5):
        tracker.track_view(n, "destination")

    assert len(tracker.activity.searches) == MAX_SEARCHES
    assert tracker.activity.searches[0].destination == "city-5"
    assert len(tracker.activity.views) == MAX_VIEWS
    assert tracker.activity.views[-1].item_id == str(MAX_VIEWS + 4)


def test_activity_persists_and_reloads(storage, clock):
    tracker = ActivityTracker(storage, storage_key="userActivity:u1", clock=clock)
    tracker.track_search("Tokyo", "2024-09-10", "flight")
    tracker.update_preferences(favorite_destinations=["Tokyo"], budget_range=(500, 2500))

    stored = json.loads(storage.get("userActivity:u1"))
    assert stored["searches"][0]["destination"] == "Tokyo"
    assert stored["preferences"]["favoriteDestinations"] == ["Tokyo"]

    reloaded = ActivityTracker(storage, storage_key="userActivity:u1", clock=clock)
    assert reloaded.activity.preferences.budget_range == (500, 2500)
    assert reloaded.activity.searches[0].type is ItemType.FLIGHT


def test_corrupted_activity_resets_to_default(clock):
    tracker = ActivityTracker(MemoryStorage({"userActivity": "{broken"}), clock=clock)

    assert tracker.activity.searches == []
    assert tracker.activity.preferences.budget_range == (0, 5000)
