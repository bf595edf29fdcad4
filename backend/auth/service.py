# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Account helpers shared by the auth and user-management routers and by the
seed script: account creation, role assignment, verification and the
password policy.
"""

import re
import secrets
from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from auth.schemas import UserInfoResponse
from core.security import hash_password
from models.role import Role, UserRole
from models.user import User
from permissions.grants import get_active_role_names


class AccountConflictError(ValueError):
    """Username or email already taken."""


def validate_new_password(pw: str) -> Optional[str]:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.

    Policy: >= 8 chars, at least one uppercase, one lowercase, one digit.
    """
    if len(pw) < 8:
        return "Password must be at least 8 characters"
    if not re.search(r"[A-Z]", pw):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", pw):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", pw):
        return "Password must contain at least one digit"
    return None


def new_verification_code() -> str:
    return secrets.token_urlsafe(32)


def find_conflict(db: Session, username: str, email: str) -> Optional[str]:
    """Which of *username* / *email* is already in use (case-insensitive)."""
    existing = (
        db.query(User)
        .filter(
            or_(
                func.lower(User.username).in_([username.lower(), email.lower()]),
                func.lower(User.email).in_([username.lower(), email.lower()]),
            )
        )
        .first()
    )
    if existing is None:
        return None
    if username.lower() in (existing.username.lower(), existing.email.lower()):
        return "Username already exists"
    return "Email already exists"


def create_account(
    db: Session,
    *,
    username: str,
    email: str,
    full_name: str,
    password: str,
    verified: bool,
) -> User:
    """
    Insert a user row (flushed, not committed).

    ``verified=False`` is the self-registration path: the account stays
    inactive until the emailed code is used.  ``verified=True`` is the admin
    path: active and verified immediately.
    """
    conflict = find_conflict(db, username, email)
    if conflict:
        raise AccountConflictError(conflict)

    user = User(
        username=username.strip(),
        email=email.strip(),
        full_name=full_name.strip(),
        password_hash=hash_password(password),
        is_active=verified,
        is_verified=verified,
        verification_code=None if verified else new_verification_code(),
    )
    db.add(user)
    db.flush()
    return user


def assign_roles(db: Session, user: User, role_names: Iterable[str]) -> list[str]:
    """
    Attach every existing active role in *role_names* to *user*, re-activating
    links that were switched off.  Unknown names are skipped.  Returns the
    names actually assigned.
    """
    wanted = {n.lower() for n in role_names if n}
    if not wanted:
        return []

    roles = (
        db.query(Role)
        .filter(func.lower(Role.name).in_(wanted), Role.is_active.is_(True))
        .all()
    )
    assigned = []
    for role in roles:
        link = (
            db.query(UserRole)
            .filter(UserRole.user_id == user.id, UserRole.role_id == role.id)
            .first()
        )
        if link is None:
            db.add(UserRole(user_id=user.id, role_id=role.id, is_active=True))
        else:
            link.is_active = True
        assigned.append(role.name)
    db.flush()
    return assigned


def verify_account(db: Session, code: str) -> Optional[User]:
    """
    Consume a verification code.  Marks the matching unverified user verified
    and active and clears the code.  Returns None for unknown or used codes.
    """
    if not code or not code.strip():
        return None
    user = (
        db.query(User)
        .filter(User.verification_code == code.strip(), User.is_verified.is_(False))
        .first()
    )
    if user is None:
        return None
    user.is_verified = True
    user.is_active = True
    user.verification_code = None
    return user


def user_info(db: Session, user: User) -> UserInfoResponse:
    info = UserInfoResponse.model_validate(user)
    info.roles = sorted(get_active_role_names(db, user.id))
    return info
