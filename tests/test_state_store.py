"""Tests for the current-state table and the daily ledger."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from smartcycle import state_store
from smartcycle.db import get_session
from smartcycle.errors import NotFoundError
from smartcycle.models import Bike, as_utc


def _event(bike_id, received_at, speed=12.0):
    return {
        "bikeId": bike_id,
        "data": {"avgSpeed": speed, "location": {"lat": 1.0, "lng": 2.0}, "battery": 50},
        "timestamp": "2026-10-18T00:00:00.000Z",
        "serverTimestamp": "2026-10-18T00:00:00.000Z",
        "receivedAt": received_at,
    }


def test_day_key_is_utc():
    ist = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc).astimezone()
    assert state_store.day_key(ist) == "2026-10-19"
    assert state_store.day_key(datetime(2026, 1, 2, 23, 59)) == "2026-01-02"


def test_upsert_preserves_ownership(engine):
    with get_session() as s:
        s.add(Bike(bike_id="BIKE001", ward_id="W001", guardian_id="G001", bike_name="Red Rocket"))
        s.commit()

    state_store.upsert_bike_state("BIKE001", {"avgSpeed": 18, "location": {"lat": 5, "lng": 6}, "battery": 44})
    bike = state_store.get_bike("BIKE001")

    assert (bike.ward_id, bike.guardian_id, bike.bike_name) == ("W001", "G001", "Red Rocket")
    assert bike.avg_speed == 18
    assert bike.battery_level == 44
    assert bike.current_location == {"lat": 5, "lng": 6}


def test_last_seen_round_trips_as_utc(engine):
    seen = datetime(2026, 10, 18, 9, 30, 15, tzinfo=timezone.utc)
    state_store.upsert_bike_state(
        "BIKE009", {"avgSpeed": 3, "location": {"lat": 1, "lng": 2}, "battery": 90}, seen_at=seen
    )

    with get_session() as s:
        stored = s.get(Bike, "BIKE009")
    last_seen = as_utc(stored.last_seen)
    assert last_seen.tzinfo is not None
    assert abs((last_seen - seen).total_seconds()) < 1
    assert as_utc(stored.created_at).tzinfo is not None

    # default stamp when the caller passes none
    state_store.upsert_bike_state("BIKE010", {"avgSpeed": 3, "location": {"lat": 1, "lng": 2}, "battery": 90})
    fresh = as_utc(state_store.get_bike("BIKE010").last_seen)
    assert abs((fresh - datetime.now(timezone.utc)).total_seconds()) < 5


def test_upsert_creates_unowned_row(engine):
    state_store.upsert_bike_state("BIKE009", {"avgSpeed": 3.5, "location": {"lat": 0, "lng": 0}, "battery": 90})
    bike = state_store.get_bike("BIKE009")
    assert bike.status == "active"
    assert bike.guardian_id is None


def test_history_and_dates(engine):
    state_store.append_reading(_event("BIKE001", 1), day="2026-10-17")
    state_store.append_reading(_event("BIKE001", 2), day="2026-10-18")
    state_store.append_reading(_event("BIKE002", 3), day="2026-10-16")

    assert state_store.available_days() == ["2026-10-16", "2026-10-17", "2026-10-18"]
    assert [e["receivedAt"] for e in state_store.history_for_day("2026-10-18")] == [2]
    with pytest.raises(NotFoundError):
        state_store.history_for_day("2026-10-15")


def test_latest_for_bike_picks_newest(engine):
    state_store.append_reading(_event("BIKE001", 300, speed=3), day="2026-10-18")
    state_store.append_reading(_event("BIKE001", 100, speed=1), day="2026-10-18")
    state_store.append_reading(_event("BIKE002", 900, speed=9), day="2026-10-18")

    assert state_store.latest_for_bike("BIKE001", day="2026-10-18")["data"]["avgSpeed"] == 3
    with pytest.raises(NotFoundError):
        state_store.latest_for_bike("BIKE003", day="2026-10-18")


def test_concurrent_appends_keep_every_entry(engine):
    total = 40

    def submit(i):
        state_store.append_reading(_event(f"BIKE{i % 4:03d}", i), day="2026-10-18")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(submit, range(total)))

    entries = state_store.history_for_day("2026-10-18")
    assert len(entries) == total
    assert sorted(e["receivedAt"] for e in entries) == list(range(total))


def test_concurrent_upserts_single_row(engine):
    def submit(i):
        state_store.upsert_bike_state("BIKE001", {"avgSpeed": i, "location": {"lat": 0, "lng": 0}, "battery": 50})

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(submit, range(20)))

    bikes = state_store.list_bikes()
    assert [b.bike_id for b in bikes] == ["BIKE001"]
