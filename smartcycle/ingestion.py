"""Accept one bike reading: enrich, persist, broadcast.

The three side effects are independent. A failure in one is logged and the
next still runs, and the caller is acknowledged either way: "accepted" does
not mean "durably stored".
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from dateutil import parser as dtparser

from . import state_store
from .schemas import BikeReading
from .ws_manager import Broadcaster

log = logging.getLogger("ingest")

def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _client_ts(raw: Optional[Union[str, int, float]]) -> Optional[str]:
    """Normalise a device-supplied timestamp (ISO string or epoch ms)."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, (int, float)):
            return _iso(datetime.fromtimestamp(raw / 1000.0, tz=timezone.utc))
        parsed = dtparser.isoparse(raw)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return _iso(parsed)
    except (ValueError, OverflowError, OSError):
        log.debug("unparseable client timestamp %r", raw)
        return None

def enrich(reading: BikeReading, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    stamp = _iso(now)
    return {
        "bikeId": reading.bikeId,
        "data": reading.data.model_dump(),
        "clientTimestamp": _client_ts(reading.timestamp),
        "timestamp": stamp,
        "serverTimestamp": stamp,
        "receivedAt": int(now.timestamp() * 1000),
    }

def summary(event: Dict[str, Any]) -> Dict[str, Any]:
    return {"bikeId": event["bikeId"], "data": event["data"], "timestamp": event["timestamp"]}

def ingest(reading: BikeReading, broadcaster: Optional[Broadcaster]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    event = enrich(reading, now)
    bike_id = event["bikeId"]

    try:
        state_store.upsert_bike_state(bike_id, event["data"], seen_at=now)
    except Exception:
        log.exception("failed to update current state for %s", bike_id)

    try:
        state_store.append_reading(event, day=state_store.day_key(now))
    except Exception:
        log.exception("failed to append %s to ledger", bike_id)

    if broadcaster is not None:
        try:
            broadcaster.publish("bikeData", event)
            broadcaster.publish("bikeUpdate", summary(event))
        except Exception:
            log.exception("failed to publish reading for %s", bike_id)

    data = event["data"]
    log.info(
        "reading from %s: speed=%s battery=%s location=%s",
        bike_id, data["avgSpeed"], data["battery"], data["location"],
    )
    return event
