"""Users, guardians and ward/bike provisioning.

IDs come from monotonic counters in the ``sequence`` table, bumped inside the
same transaction and lock as the rows they name, so concurrent provisioning
cannot hand out the same ``bikeId`` twice.
"""
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlmodel import Session, select

from .db import get_session, exclusive, USERS, GUARDIANS, BIKES
from .errors import ConflictError, NotFoundError
from .models import Bike, Guardian, Sequence, User, Ward, utcnow
from .schemas import SignupRequest, WardCreate
from .security import hash_password, verify_password
from .settings import settings

log = logging.getLogger("identity")

def _next_value(s: Session, name: str) -> int:
    seq = s.get(Sequence, name)
    if seq is None:
        seq = Sequence(name=name, value=0)
    seq.value += 1
    s.add(seq)
    return seq.value

def _allocate_id(s: Session, counter: str, prefix: str, taken) -> str:
    """Next ``<prefix>NNN`` from `counter` for which `taken(id)` is false."""
    while True:
        candidate = f"{prefix}{_next_value(s, counter):03d}"
        if not taken(candidate):
            return candidate

# ---------------- users ----------------
def create_user(body: SignupRequest) -> User:
    with exclusive(USERS), get_session() as s:
        if s.exec(select(User).where(User.email == body.email)).first():
            raise ConflictError("Email already registered")
        user = User(
            name=body.name,
            email=body.email,
            mobile=body.mobile,
            password_hash=hash_password(body.password),
        )
        s.add(user)
        s.commit()
        s.refresh(user)
    log.info("user %s signed up", user.id)
    return user

def authenticate(password: str, email: Optional[str] = None, mobile: Optional[str] = None) -> Optional[User]:
    with get_session() as s:
        stmt = select(User).where(User.email == email) if email else select(User).where(User.mobile == mobile)
        user = s.exec(stmt).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user

def get_user(user_id: int) -> User:
    with get_session() as s:
        user = s.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user

# ---------------- guardians ----------------
def _wards_of(s: Session, guardian_id: str) -> List[Ward]:
    stmt = select(Ward).where(Ward.guardian_id == guardian_id).order_by(Ward.id)
    return list(s.exec(stmt).all())

def find_guardian(user_id: int) -> Optional[Tuple[Guardian, List[Ward]]]:
    with get_session() as s:
        g = s.exec(select(Guardian).where(Guardian.user_id == user_id)).first()
        if g is None:
            return None
        return g, _wards_of(s, g.guardian_id)

def get_or_create_guardian(identity: Dict[str, Any]) -> Tuple[Guardian, List[Ward]]:
    """The caller's guardian record, created empty on first use."""
    found = find_guardian(identity["id"])
    if found:
        return found
    with exclusive(GUARDIANS), get_session() as s:
        # another request may have created it while we waited
        g = s.exec(select(Guardian).where(Guardian.user_id == identity["id"])).first()
        if g is not None:
            return g, _wards_of(s, g.guardian_id)
        user = s.get(User, identity["id"])
        guardian_id = _allocate_id(
            s, "guardian", "G",
            lambda gid: s.exec(select(Guardian).where(Guardian.guardian_id == gid)).first() is not None,
        )
        g = Guardian(
            guardian_id=guardian_id,
            user_id=identity["id"],
            name=identity.get("name") or (user.name if user else ""),
            email=identity.get("email") or (user.email if user else ""),
            phone=user.mobile if user else None,
        )
        s.add(g)
        s.commit()
        s.refresh(g)
    log.info("created guardian %s for user %s", g.guardian_id, identity["id"])
    return g, []

def provision_ward(identity: Dict[str, Any], body: WardCreate) -> Tuple[Ward, Bike]:
    """Create a ward and its bike in one transaction.

    A bike row that already exists without an owner (telemetry arrived
    before provisioning) is claimed rather than duplicated.
    """
    with exclusive(GUARDIANS, BIKES), get_session() as s:
        g = s.exec(select(Guardian).where(Guardian.user_id == identity["id"])).first()
        if g is None:
            raise NotFoundError("Guardian not found")

        ward_id = _allocate_id(
            s, "ward", "W",
            lambda wid: s.exec(select(Ward).where(Ward.ward_id == wid)).first() is not None,
        )

        def bike_taken(bid: str) -> bool:
            existing = s.get(Bike, bid)
            return existing is not None and existing.guardian_id is not None

        bike_id = _allocate_id(s, "bike", "BIKE", bike_taken)
        now = utcnow()
        ward = Ward(
            ward_id=ward_id,
            guardian_id=g.guardian_id,
            name=body.name,
            age=body.age,
            grade=str(body.grade),
            bike_id=bike_id,
            bike_name=body.bikeName,
            created_at=now,
        )
        bike = s.get(Bike, bike_id)
        if bike is None:
            bike = Bike(
                bike_id=bike_id,
                last_seen=now,
                created_at=now,
                current_location={"lat": settings.default_lat, "lng": settings.default_lng},
                avg_speed=0.0,
                total_distance=0.0,
                total_rides=0,
            )
        else:
            log.info("claiming unowned bike %s for ward %s", bike_id, ward_id)
        bike.ward_id = ward_id
        bike.guardian_id = g.guardian_id
        bike.bike_name = body.bikeName
        bike.ward_name = body.name
        bike.guardian_name = identity.get("name") or g.name
        bike.status = "active"
        s.add(ward)
        s.add(bike)
        s.commit()
        s.refresh(ward)
        s.refresh(bike)
    log.info("provisioned ward %s with bike %s for guardian %s", ward.ward_id, bike.bike_id, ward.guardian_id)
    return ward, bike

def list_wards(user_id: int) -> List[Ward]:
    found = find_guardian(user_id)
    return found[1] if found else []

def authorized_bike_ids(user_id: int) -> Set[str]:
    """Bike IDs of the caller's own wards."""
    return {w.bike_id for w in list_wards(user_id)}
