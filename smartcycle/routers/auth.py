from typing import Any, Dict

from fastapi import APIRouter, Depends

from .. import identity
from ..errors import AuthError, ValidationError
from ..schemas import AuthResponse, LoginRequest, SignupRequest, UserOut, user_out
from ..security import current_identity, issue_token

router = APIRouter(prefix="/api", tags=["auth"])

@router.post("/signup", response_model=AuthResponse, status_code=201)
def signup(body: SignupRequest):
    user = identity.create_user(body)
    return AuthResponse(token=issue_token(user), user=user_out(user))

@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest):
    if not body.password:
        raise ValidationError("Password required")
    if not body.email and not body.mobile:
        raise ValidationError("Email or mobile number required")
    user = identity.authenticate(body.password, email=body.email, mobile=body.mobile)
    if user is None:
        raise AuthError("credentials")
    return AuthResponse(token=issue_token(user), user=user_out(user))

@router.get("/me", response_model=UserOut)
def me(caller: Dict[str, Any] = Depends(current_identity)):
    return user_out(identity.get_user(caller["id"]))
