from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Column, JSON

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """Attach UTC to values a backend hands back without tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    mobile: str = Field(index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)

class Guardian(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    guardian_id: str = Field(index=True, unique=True)
    user_id: int = Field(index=True, unique=True, foreign_key="user.id")
    name: str
    email: str
    phone: Optional[str] = None
    status: str = Field(default="active")
    created_at: datetime = Field(default_factory=utcnow)

class Ward(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    ward_id: str = Field(index=True, unique=True)
    guardian_id: str = Field(index=True, foreign_key="guardian.guardian_id")
    name: str
    age: int
    grade: str
    bike_id: str = Field(index=True, unique=True)
    bike_name: str
    status: str = Field(default="active")
    created_at: datetime = Field(default_factory=utcnow)

class Bike(SQLModel, table=True):
    """Current-state row, one per bike."""
    bike_id: str = Field(primary_key=True, index=True)
    # ownership, set once at provisioning
    ward_id: Optional[str] = Field(default=None, index=True)
    guardian_id: Optional[str] = Field(default=None, index=True)
    bike_name: Optional[str] = None
    ward_name: Optional[str] = None
    guardian_name: Optional[str] = None
    # telemetry-derived
    current_location: dict = Field(default_factory=dict, sa_column=Column(JSON))
    avg_speed: float = 0.0
    battery_level: Optional[float] = None
    last_seen: datetime = Field(default_factory=utcnow)
    total_distance: float = 0.0
    total_rides: int = 0
    status: str = Field(default="active")
    created_at: datetime = Field(default_factory=utcnow)

class TelemetryRecord(SQLModel, table=True):
    """One ledger entry; `day` is the UTC date key (YYYY-MM-DD)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    day: str = Field(index=True)
    bike_id: str = Field(index=True)
    received_at: int = Field(index=True)  # epoch ms
    event: dict = Field(sa_column=Column(JSON))

class Sequence(SQLModel, table=True):
    name: str = Field(primary_key=True)
    value: int = 0
