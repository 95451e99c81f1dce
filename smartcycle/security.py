"""Password hashing and the bearer-token gate.

Tokens are stateless HS256 JWTs carrying ``{id, name, email}``. There is no
server-side revocation: logging out only discards the client's copy, and a
token keeps working until ``exp``.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthError
from .models import User
from .settings import settings

log = logging.getLogger("auth")

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)

def _secret(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:72]

def hash_password(password: str) -> str:
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt(rounds=10)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False

def issue_token(user: User, issued_at: Optional[datetime] = None) -> str:
    now = issued_at or datetime.now(timezone.utc)
    claims = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(seconds=settings.jwt_expires_seconds),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)

def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        log.info("rejected expired token")
        raise AuthError("invalid")
    except jwt.InvalidTokenError as e:
        log.info("rejected token: %s", e)
        raise AuthError("invalid")

def current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Route dependency: the verified ``{id, name, email}`` of the caller."""
    if credentials is None or not credentials.credentials:
        raise AuthError("missing")
    claims = decode_token(credentials.credentials)
    if "id" not in claims:
        raise AuthError("invalid")
    return {"id": claims["id"], "name": claims.get("name"), "email": claims.get("email")}
