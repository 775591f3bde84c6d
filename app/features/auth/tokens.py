"""
Access token issuance and verification.

Tokens embed a snapshot of the caller's effective roles and permissions.
Route authorization trusts these claims instead of re-resolving per request,
so a role or group change reaches an existing session only when its token is
refreshed or re-issued. The staleness window is ACCESS_TOKEN_TTL_SECONDS.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
import jwt
from fastapi import HTTPException, status

from app.core import config
from app.features.users.models import User


@dataclass(frozen=True)
class Principal:
    """Caller identity and access snapshot carried by an access token."""
    user_ref: str
    email: str
    name: str
    roles: frozenset[str]
    permissions: frozenset[str]
    expires_at: datetime

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def issue_access_token(
    user: User,
    roles: Iterable[str],
    permissions: Iterable[str],
    now: Optional[datetime] = None,
) -> tuple[str, datetime]:
    """Sign a token for ``user`` embedding ``roles`` and ``permissions``."""
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=config.ACCESS_TOKEN_TTL_SECONDS)
    payload = {
        "sub": user.user_ref,
        "email": user.email,
        "name": user.name,
        "roles": sorted(roles),
        "permissions": sorted(permissions),
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    return token, expires_at


def decode_access_token(token: str) -> Principal:
    """
    Verify an access token and return its principal.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(
        user_ref=payload["sub"],
        email=payload.get("email", ""),
        name=payload.get("name", ""),
        roles=frozenset(payload.get("roles", ())),
        permissions=frozenset(payload.get("permissions", ())),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
