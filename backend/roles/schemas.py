# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for role administration."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from permissions.enums import Permission


# -- Requests --------------------------------------------------------------


class RoleCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    id: int
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None
    is_active: bool = True


class UpdateRolePermissionsRequest(BaseModel):
    role_id: int
    page_permission_ids: List[int] = []


class UserRoleCreateRequest(BaseModel):
    user_id: int
    role_id: int


class UserRoleUpdateRequest(BaseModel):
    id: int
    is_active: bool


class PagePermissionCreateRequest(BaseModel):
    page_name: str = Field(min_length=1, max_length=50)
    page_url: str = Field(min_length=1, max_length=100)
    permission_id: int

    @field_validator("permission_id")
    @classmethod
    def _known_permission(cls, v: int) -> int:
        Permission(v)  # ValueError -> 422
        return v


# -- Responses -------------------------------------------------------------


class RoleRow(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RolePermissionsResponse(BaseModel):
    role_id: int
    page_permission_ids: List[int]


class UserRoleRow(BaseModel):
    id: int
    user_id: int
    role_id: int
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PagePermissionRow(BaseModel):
    id: int
    page_name: str
    page_url: str
    permission_id: int
    permission: str          # label, e.g. "Read"
    is_active: bool
