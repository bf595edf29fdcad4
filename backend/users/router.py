# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
User-management endpoints – account lifecycle for administrators.

Every endpoint is guarded by a page permission on ``/users``: Read to list,
Write to create, Update to (de)activate or reset a password, Delete to
remove.  Accounts are never hard-deleted; DELETE deactivates the account and
switches off its role links.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth.identity import Identity
from auth.service import (
    AccountConflictError,
    assign_roles,
    create_account,
    user_info,
    validate_new_password,
)
from core.security import get_client_ip, hash_password
from database import get_db
from models.audit_log import AuditLog
from models.role import UserRole
from models.user import User
from permissions.dependencies import require_permission, require_policy
from permissions.enums import Permission
from permissions.grants import get_active_role_names, get_user_grants
from permissions.policies import USER_ROLE_CONFIGURATION
from auth.schemas import MessageResponse, UserInfoResponse
from users.schemas import (
    CreateUserRequest,
    GrantRow,
    ResetPasswordRequest,
    UserListResponse,
    UserRolesPermissionsResponse,
)

router = APIRouter(prefix="/api/users", tags=["users"])

USERS_PAGE = "/users"

can_read = require_permission(Permission.READ, USERS_PAGE)
can_write = require_permission(Permission.WRITE, USERS_PAGE)
can_update = require_permission(Permission.UPDATE, USERS_PAGE)
can_delete = require_permission(Permission.DELETE, USERS_PAGE)


def _actor_id(caller: Optional[Identity]) -> Optional[int]:
    return caller.user_id if caller is not None else None


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _audit(db: Session, request: Request, caller: Optional[Identity], user_id: int, action: str, detail=None):
    db.add(AuditLog(
        actor_id=_actor_id(caller),
        target_user_id=user_id,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))


# ---------------------------------------------------------------------------
# GET /api/users  – list all users
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListResponse)
def list_users(caller=Depends(can_read), db: Session = Depends(get_db)):
    """Return every user row (no password data – handled by the schema)."""
    users = db.query(User).order_by(User.id).all()
    return UserListResponse(users=[user_info(db, u) for u in users])


@router.get("/{user_id}", response_model=UserInfoResponse)
def get_user(user_id: int, caller=Depends(can_read), db: Session = Depends(get_db)):
    return user_info(db, _get_user(db, user_id))


# ---------------------------------------------------------------------------
# POST /api/users  – create an active, verified account
# ---------------------------------------------------------------------------


@router.post("", response_model=UserInfoResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    request: Request,
    caller=Depends(can_write),
    db: Session = Depends(get_db),
):
    """
    Create an account that can log in straight away (no verification mail),
    optionally attached to the named roles.
    """
    err = validate_new_password(body.password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    try:
        user = create_account(
            db,
            username=body.username,
            email=body.email,
            full_name=body.full_name,
            password=body.password,
            verified=True,
        )
    except AccountConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    assigned = assign_roles(db, user, body.roles)
    _audit(db, request, caller, user.id, "create_user", detail=f"roles={','.join(assigned)}")
    db.commit()
    db.refresh(user)
    return user_info(db, user)


# ---------------------------------------------------------------------------
# PUT /api/users/{id}/activate | /deactivate | /reset-password
# ---------------------------------------------------------------------------


@router.put("/{user_id}/activate", response_model=MessageResponse)
def activate_user(
    user_id: int,
    request: Request,
    caller=Depends(can_update),
    db: Session = Depends(get_db),
):
    """Set ``is_active = True``.  Verification state is left untouched."""
    target = _get_user(db, user_id)
    target.is_active = True
    _audit(db, request, caller, user_id, "enable_user")
    db.commit()
    return MessageResponse(message="User enabled")


@router.put("/{user_id}/deactivate", response_model=MessageResponse)
def deactivate_user(
    user_id: int,
    request: Request,
    caller=Depends(can_update),
    db: Session = Depends(get_db),
):
    """
    Set ``is_active = False``.  The next request carrying this user's
    credentials fails with "Account is deactivated.".

    Guard: a user cannot deactivate their own account.
    """
    if user_id == _actor_id(caller):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot disable yourself",
        )

    target = _get_user(db, user_id)
    target.is_active = False
    _audit(db, request, caller, user_id, "disable_user")
    db.commit()
    return MessageResponse(message="User disabled")


@router.put("/{user_id}/reset-password", response_model=MessageResponse)
def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    caller=Depends(can_update),
    db: Session = Depends(get_db),
):
    """Overwrite a user's password with a freshly hashed one."""
    err = validate_new_password(body.new_password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    target = _get_user(db, user_id)
    target.password_hash = hash_password(body.new_password)
    _audit(db, request, caller, user_id, "reset_password")
    db.commit()
    return MessageResponse(message="Password reset successfully")


# ---------------------------------------------------------------------------
# DELETE /api/users/{id}  – soft delete
# ---------------------------------------------------------------------------


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    request: Request,
    caller=Depends(can_delete),
    db: Session = Depends(get_db),
):
    """Deactivate the account and every role link it has."""
    if user_id == _actor_id(caller):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete yourself",
        )

    target = _get_user(db, user_id)
    target.is_active = False
    db.query(UserRole).filter(UserRole.user_id == user_id).update(
        {UserRole.is_active: False}, synchronize_session=False
    )
    _audit(db, request, caller, user_id, "delete_user")
    db.commit()


# ---------------------------------------------------------------------------
# GET /api/users/{id}/roles-permissions  – inspect a user's effective grants
# ---------------------------------------------------------------------------


def grant_rows(grants) -> List[GrantRow]:
    return [
        GrantRow(
            role_name=g.role_name,
            page_name=g.page_name,
            page_url=g.page_url,
            permission=g.permission.label,
        )
        for g in sorted(grants, key=lambda g: (g.page_url, g.permission_id, g.role_name))
    ]


@router.get("/{user_id}/roles-permissions", response_model=UserRolesPermissionsResponse)
def user_roles_permissions(
    user_id: int,
    caller=Depends(require_policy(USER_ROLE_CONFIGURATION)),
    db: Session = Depends(get_db),
):
    """Active roles and the grants they produce, as the decision point sees them."""
    target = _get_user(db, user_id)
    return UserRolesPermissionsResponse(
        user_id=target.id,
        username=target.username,
        roles=sorted(get_active_role_names(db, target.id)),
        grants=grant_rows(get_user_grants(db, target.id)),
    )
