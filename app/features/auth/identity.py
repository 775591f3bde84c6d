"""
Identity provider integration (Appwrite).

Appwrite authenticates the person. This service only learns who they are,
then issues its own access token carrying the resolved access snapshot.
"""
from typing import Optional
import jwt
from fastapi import HTTPException, status
from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.services.users import Users

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AppwriteClient:
    """Lazily built server-side Appwrite client, shared by the process."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            client = Client()
            client.set_endpoint(config.APPWRITE_ENDPOINT)
            client.set_project(config.APPWRITE_PROJECT_ID)
            client.set_key(config.APPWRITE_API_KEY)
            cls._instance = client
        return cls._instance


def identity_from_token(token: str) -> str:
    """
    Return the Appwrite user id carried by an Appwrite session JWT.

    Appwrite owns the signing key, so only expiry and shape are checked
    here; unknown ids are confirmed against Appwrite before provisioning.

    Raises:
        HTTPException: 401 if the token is malformed, expired or has no user id
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {str(e)}")

    appwrite_id = payload.get("userId")
    if not appwrite_id:
        raise _unauthorized("Invalid token payload")
    return appwrite_id


async def get_appwrite_user(appwrite_id: str) -> dict:
    """
    Fetch the Appwrite account (``email``, ``name``, ...) for ``appwrite_id``.

    Raises:
        HTTPException: 401 if Appwrite does not know the user
    """
    try:
        return Users(AppwriteClient.get_client()).get(appwrite_id)
    except AppwriteException as e:
        log.warning("SECURITY_AUDIT: Appwrite lookup failed for %s: %s", appwrite_id, e)
        raise _unauthorized(f"Failed to verify user: {str(e)}")
