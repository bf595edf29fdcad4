# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the user-management endpoints."""

from typing import List

from pydantic import BaseModel

from auth.schemas import UserInfoResponse


# -- Requests --------------------------------------------------------------


class CreateUserRequest(BaseModel):
    username: str
    email: str
    full_name: str
    password: str
    roles: List[str] = []  # role names, e.g. ["General"]


class ResetPasswordRequest(BaseModel):
    new_password: str


# -- Responses -------------------------------------------------------------


class UserListResponse(BaseModel):
    users: List[UserInfoResponse]


class GrantRow(BaseModel):
    role_name: str
    page_name: str
    page_url: str
    permission: str  # label, e.g. "Read"


class UserRolesPermissionsResponse(BaseModel):
    user_id: int
    username: str
    roles: List[str]
    grants: List[GrantRow]
