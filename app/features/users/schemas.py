"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserCreate(UserBase):
    """Schema for creating a user with direct roles and initial groups."""
    user_ref: str = Field(..., min_length=1, max_length=100, description="Stable username")
    role_names: list[str] = Field(default_factory=list)
    group_ids: list[str] = Field(default_factory=list)

    @field_validator('user_ref')
    @classmethod
    def user_ref_format(cls, v: str) -> str:
        """Validate username format."""
        if not v.replace('_', '').replace('-', '').replace('.', '').isalnum():
            raise ValueError('Username must contain only alphanumeric characters, underscores, hyphens, and dots')
        return v


class UserUpdate(BaseModel):
    """Partial profile update. Roles and groups have their own endpoints."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None


class UserRolesUpdate(BaseModel):
    """Replace the user's direct roles."""
    role_names: list[str]


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    user_ref: str
    is_active: bool
    direct_role_names: list[str] = []
    group_refs: list[str] = []
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserProfile(UserResponse):
    """Current user with freshly resolved access."""
    effective_roles: list[str] = []
    effective_permissions: list[str] = []
