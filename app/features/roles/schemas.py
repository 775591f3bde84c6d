"""
Pydantic schemas for role management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.permissions.catalog import Permission
from app.features.roles.models import RoleKind


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a CUSTOM role."""
    permissions: List[Permission] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v


class RoleUpdate(BaseModel):
    """Schema for updating a role. The name is immutable."""
    description: Optional[str] = Field(None, max_length=1000)
    permissions: Optional[List[Permission]] = None


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    kind: RoleKind
    permissions: List[str] = []
    is_unrestricted: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RolePermissionsResponse(BaseModel):
    """Resolved permissions of a single role (the full catalog when unrestricted)."""
    role_name: str
    is_unrestricted: bool
    permissions: List[str]
