from fastapi import APIRouter, Depends

from .. import state_store
from ..deps import get_broadcaster
from ..ingestion import ingest
from ..schemas import BikeReading, bike_out
from ..ws_manager import Broadcaster

router = APIRouter(prefix="/api", tags=["bikes"])

@router.post("/bike/data")
def receive_bike_data(reading: BikeReading, broadcaster: Broadcaster = Depends(get_broadcaster)):
    ingest(reading, broadcaster)
    return {"message": "data received"}

@router.get("/bikes")
def list_bikes():
    return {"bikes": [bike_out(b) for b in state_store.list_bikes()]}

@router.get("/bikes/{bike_id}")
def get_bike(bike_id: str):
    return {"bike": bike_out(state_store.get_bike(bike_id))}

@router.get("/bikes/{bike_id}/latest")
def latest_bike_data(bike_id: str):
    return {"latestData": state_store.latest_for_bike(bike_id)}
