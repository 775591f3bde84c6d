"""
Token exchange routes.

``/auth/token`` trades an Appwrite session JWT for an access token carrying
the caller's effective roles and permissions. ``/auth/refresh`` re-resolves
the snapshot for a caller that already holds a valid access token.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from app.features.access.dependencies import get_access_engine
from app.features.access.engine import AccessControlEngine
from app.features.auth.dependencies import get_current_principal, security
from app.features.auth.identity import get_appwrite_user, identity_from_token
from app.features.auth.schemas import TokenResponse
from app.features.auth.tokens import Principal, issue_access_token
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _issue(engine: AccessControlEngine, user: User) -> TokenResponse:
    if not user.is_active:
        log.warning("SECURITY_AUDIT: login refused for deactivated user %s", user.user_ref)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    roles, permissions = await engine.access_snapshot(user)
    token, expires_at = issue_access_token(user, roles, permissions)
    log.info("SECURITY_AUDIT: issued access token for %s roles=%s", user.user_ref, sorted(roles))
    return TokenResponse(
        access_token=token,
        expires_at=expires_at,
        user_ref=user.user_ref,
        roles=sorted(roles),
        permissions=sorted(permissions),
    )


@router.post("/token", response_model=TokenResponse)
async def exchange_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """
    Exchange an Appwrite JWT for an access token.

    Unknown identities are linked to an existing, never-linked user with
    the same email, or provisioned as a new user without roles.
    """
    appwrite_id = identity_from_token(credentials.credentials)

    user = await engine.users.find_by_appwrite_id(appwrite_id)
    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_id)
        email = appwrite_user.get("email", "")
        user = await engine.users.find_by_email(email) if email else None
        if user is not None and user.appwrite_id is not None:
            log.warning(
                "SECURITY_AUDIT: identity %s refused, %s is linked to another identity",
                appwrite_id, user.user_ref,
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email is already linked to another account",
            )
        if user is None:
            user = await engine.create_user(
                user_ref=appwrite_id,
                email=email,
                name=appwrite_user.get("name") or "Unknown",
                appwrite_id=appwrite_id,
            )

    user = await engine.users.record_login(user, appwrite_id)
    return await _issue(engine, user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    principal: Annotated[Principal, Depends(get_current_principal)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """Re-issue the caller's token with a freshly resolved access snapshot."""
    user = await engine.users.find(principal.user_ref)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _issue(engine, user)
