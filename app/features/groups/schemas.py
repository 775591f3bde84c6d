"""
Pydantic schemas for group management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class GroupBase(BaseModel):
    """Base group schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique group name")
    description: Optional[str] = Field(None, max_length=1000, description="Group description")


class GroupCreate(GroupBase):
    """Schema for creating a group with optional initial members and roles."""
    member_user_refs: List[str] = Field(default_factory=list)
    role_names: List[str] = Field(default_factory=list)


class GroupUpdate(BaseModel):
    """Schema for updating a group. Members and roles have their own endpoints."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    active: Optional[bool] = None


class GroupResponse(GroupBase):
    """Schema for group response."""
    id: str
    active: bool
    member_user_refs: List[str] = []
    role_names: List[str] = []
    member_count: int
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AddGroupMember(BaseModel):
    user_ref: str = Field(..., min_length=1)


class AssignGroupRole(BaseModel):
    role_name: str = Field(..., min_length=1)
