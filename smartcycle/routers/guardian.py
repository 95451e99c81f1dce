from typing import Any, Dict

from fastapi import APIRouter, Depends

from .. import identity, state_store
from ..schemas import WardCreate, bike_out, guardian_out, ward_out
from ..security import current_identity

router = APIRouter(prefix="/api/guardian", tags=["guardian"], dependencies=[Depends(current_identity)])

@router.get("/me")
def my_guardian(caller: Dict[str, Any] = Depends(current_identity)):
    g, wards = identity.get_or_create_guardian(caller)
    return {"guardian": guardian_out(g, wards)}

@router.post("/wards", status_code=201)
def add_ward(body: WardCreate, caller: Dict[str, Any] = Depends(current_identity)):
    ward, bike = identity.provision_ward(caller, body)
    return {"message": "Ward added successfully", "ward": ward_out(ward), "bike": bike_out(bike)}

@router.get("/wards")
def my_wards(caller: Dict[str, Any] = Depends(current_identity)):
    return {"wards": [ward_out(w) for w in identity.list_wards(caller["id"])]}

@router.get("/bikes")
def my_bikes(caller: Dict[str, Any] = Depends(current_identity)):
    allowed = identity.authorized_bike_ids(caller["id"])
    return {"bikes": [bike_out(b) for b in state_store.bikes_by_ids(allowed)]}
