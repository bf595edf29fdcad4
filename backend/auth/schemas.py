# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------


class LoginRequest(BaseModel):
    # Username or email; only used when no Basic header is sent
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    email: str
    full_name: str
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


# -- Responses -------------------------------------------------------------


class UserInfoResponse(BaseModel):
    id: int
    username: str
    email: str
    full_name: str
    is_active: bool
    is_verified: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    roles: List[str] = []

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    success: bool
    message: str
    # Always empty: credentials travel as HTTP Basic on every request
    token: str = ""
    user: Optional[UserInfoResponse] = None
    roles: List[str] = []
    permissions: List[str] = []


class MessageResponse(BaseModel):
    message: str


class PermissionsByPageResponse(BaseModel):
    # page URL → permission labels, e.g. {"/users": ["Read", "Write"]}
    pages: Dict[str, List[str]]
