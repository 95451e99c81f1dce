from datetime import datetime
import math
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Optional, Union

from .models import Bike, Guardian, User, Ward, as_utc

# ---------------- inbound ----------------
def _is_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_is_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_is_finite(v) for v in value)
    return True

class Location(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    lat: float
    lng: float

class ReadingData(BaseModel):
    # devices may send extra metrics; they ride along untouched
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    avgSpeed: float
    location: Location
    battery: float

    @model_validator(mode="after")
    def _finite_extras(self):
        for key, value in (self.model_extra or {}).items():
            if not _is_finite(value):
                raise ValueError(f"{key} must be a finite number")
        return self

class BikeReading(BaseModel):
    bikeId: str = Field(min_length=1)
    data: ReadingData
    timestamp: Optional[Union[str, int, float]] = None

class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    mobile: str = Field(min_length=1)

class LoginRequest(BaseModel):
    email: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = None

class WardCreate(BaseModel):
    name: str = Field(min_length=1)
    age: int
    grade: Union[str, int]
    bikeName: str = Field(min_length=1)

# ---------------- outbound ----------------
class UserOut(BaseModel):
    id: int
    name: str
    email: str
    mobile: str

class AuthResponse(BaseModel):
    token: str
    user: UserOut

class WardOut(BaseModel):
    wardId: str
    name: str
    age: int
    grade: str
    bikeId: str
    bikeName: str
    createdAt: datetime
    status: str

class GuardianOut(BaseModel):
    guardianId: str
    userId: int
    name: str
    email: str
    phone: Optional[str] = None
    createdAt: datetime
    status: str
    wards: list[WardOut] = []

class BikeOut(BaseModel):
    bikeId: str
    wardId: Optional[str] = None
    guardianId: Optional[str] = None
    bikeName: Optional[str] = None
    wardName: Optional[str] = None
    guardianName: Optional[str] = None
    status: str
    lastSeen: datetime
    createdAt: datetime
    currentLocation: dict[str, Any]
    avgSpeed: float
    batteryLevel: Optional[float] = None
    totalDistance: float
    totalRides: int

def user_out(u: User) -> UserOut:
    return UserOut(id=u.id, name=u.name, email=u.email, mobile=u.mobile)

def ward_out(w: Ward) -> WardOut:
    return WardOut(
        wardId=w.ward_id, name=w.name, age=w.age, grade=w.grade, bikeId=w.bike_id,
        bikeName=w.bike_name, createdAt=as_utc(w.created_at), status=w.status,
    )

def guardian_out(g: Guardian, wards: list[Ward]) -> GuardianOut:
    return GuardianOut(
        guardianId=g.guardian_id, userId=g.user_id, name=g.name, email=g.email, phone=g.phone,
        createdAt=as_utc(g.created_at), status=g.status, wards=[ward_out(w) for w in wards],
    )

def bike_out(b: Bike) -> BikeOut:
    return BikeOut(
        bikeId=b.bike_id, wardId=b.ward_id, guardianId=b.guardian_id, bikeName=b.bike_name,
        wardName=b.ward_name, guardianName=b.guardian_name, status=b.status,
        lastSeen=as_utc(b.last_seen), createdAt=as_utc(b.created_at), currentLocation=b.current_location or {},
        avgSpeed=b.avg_speed, batteryLevel=b.battery_level,
        totalDistance=b.total_distance, totalRides=b.total_rides,
    )
