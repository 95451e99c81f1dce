from fastapi import APIRouter

from .. import state_store

router = APIRouter(prefix="/api/history", tags=["history"])

@router.get("")
def available_dates():
    return {"availableDates": state_store.available_days()}

@router.get("/{date}")
def day_history(date: str):
    return {"date": date, "data": state_store.history_for_day(date)}
