"""
Pydantic schemas for token exchange.
"""
from datetime import datetime
from typing import List
from pydantic import BaseModel


class TokenResponse(BaseModel):
    """Access token and the access snapshot it carries."""
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user_ref: str
    roles: List[str]
    permissions: List[str]
