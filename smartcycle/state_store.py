"""Current-state table and daily ledger.

The bike table holds one row per bike and is overwritten by each reading.
The ledger is insert-only; a day's collection is every row sharing its UTC
date key. Writers go through ``exclusive()`` so concurrent requests never
interleave inside a collection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlmodel import select, col

from .db import get_session, exclusive, BIKES, LEDGER
from .errors import NotFoundError
from .models import Bike, TelemetryRecord, utcnow

log = logging.getLogger("store")

def day_key(when: datetime | None = None) -> str:
    when = when or datetime.now(timezone.utc)
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return when.strftime("%Y-%m-%d")

def upsert_bike_state(bike_id: str, data: Dict[str, Any], seen_at: datetime | None = None) -> Bike:
    """Apply a reading to the bike's current-state row.

    Only telemetry fields are written; ownership set at provisioning stays.
    The wire field ``battery`` lands in ``battery_level``.
    """
    seen_at = seen_at or utcnow()
    location = data["location"]
    if hasattr(location, "model_dump"):
        location = location.model_dump()
    with exclusive(BIKES), get_session() as s:
        bike = s.get(Bike, bike_id)
        if bike is None:
            bike = Bike(bike_id=bike_id, status="active", created_at=seen_at)
            log.info("new bike %s seen before provisioning", bike_id)
        bike.last_seen = seen_at
        bike.current_location = dict(location)
        bike.avg_speed = float(data["avgSpeed"])
        bike.battery_level = float(data["battery"])
        s.add(bike)
        s.commit()
        s.refresh(bike)
        return bike

def append_reading(event: Dict[str, Any], day: str | None = None) -> TelemetryRecord:
    """Append one enriched event to its day's ledger."""
    day = day or day_key()
    rec = TelemetryRecord(
        day=day,
        bike_id=event["bikeId"],
        received_at=int(event["receivedAt"]),
        event=event,
    )
    with exclusive(LEDGER), get_session() as s:
        s.add(rec)
        s.commit()
        s.refresh(rec)
    log.debug("ledger %s += %s", day, event["bikeId"])
    return rec

def list_bikes() -> List[Bike]:
    with get_session() as s:
        return list(s.exec(select(Bike).order_by(Bike.created_at, Bike.bike_id)).all())

def get_bike(bike_id: str) -> Bike:
    with get_session() as s:
        bike = s.get(Bike, bike_id)
    if bike is None:
        raise NotFoundError("Bike not found")
    return bike

def bikes_by_ids(bike_ids) -> List[Bike]:
    ids = list(bike_ids)
    if not ids:
        return []
    with get_session() as s:
        stmt = select(Bike).where(col(Bike.bike_id).in_(ids)).order_by(Bike.bike_id)
        return list(s.exec(stmt).all())

def latest_for_bike(bike_id: str, day: str | None = None) -> Dict[str, Any]:
    """Most recent ledger event for a bike on `day` (today by default)."""
    day = day or day_key()
    with get_session() as s:
        stmt = (
            select(TelemetryRecord)
            .where(TelemetryRecord.day == day, TelemetryRecord.bike_id == bike_id)
            .order_by(col(TelemetryRecord.received_at).desc(), col(TelemetryRecord.id).desc())
            .limit(1)
        )
        rec = s.exec(stmt).first()
    if rec is None:
        raise NotFoundError("No data found for this bike today")
    return rec.event

def history_for_day(day: str) -> List[Dict[str, Any]]:
    """The full day's collection, in append order."""
    with get_session() as s:
        stmt = select(TelemetryRecord).where(TelemetryRecord.day == day).order_by(TelemetryRecord.id)
        rows = s.exec(stmt).all()
    if not rows:
        raise NotFoundError("No data found for this date")
    return [r.event for r in rows]

def available_days() -> List[str]:
    with get_session() as s:
        days = s.exec(select(TelemetryRecord.day).distinct()).all()
    return sorted(days)
