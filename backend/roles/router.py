# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Role administration – roles, their permission sets, user ↔ role links and
the page-permission catalogue.

Everything here sits behind the ``UserRoleConfiguration`` policy.  Roles,
links and catalogue rows are never hard-deleted; they are switched off with
``is_active`` so the grant join drops them on the next decision.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth.identity import Identity
from core.logger import logger
from core.security import get_client_ip
from database import get_db
from models.audit_log import AuditLog
from models.page_permission import PagePermission, RolePermission
from models.role import Role, UserRole
from models.user import User
from permissions.dependencies import require_policy
from permissions.enums import Permission
from permissions.policies import USER_ROLE_CONFIGURATION
from auth.schemas import MessageResponse
from roles.schemas import (
    PagePermissionCreateRequest,
    PagePermissionRow,
    RoleCreateRequest,
    RolePermissionsResponse,
    RoleRow,
    RoleUpdateRequest,
    UpdateRolePermissionsRequest,
    UserRoleCreateRequest,
    UserRoleRow,
    UserRoleUpdateRequest,
)

can_configure = require_policy(USER_ROLE_CONFIGURATION)

router = APIRouter(prefix="/api/roles", tags=["roles"])
user_roles_router = APIRouter(prefix="/api/user-roles", tags=["roles"])
page_permissions_router = APIRouter(prefix="/api/page-permissions", tags=["roles"])


def _audit(db: Session, request: Request, caller: Optional[Identity], action: str, detail=None, target_user_id=None):
    db.add(AuditLog(
        actor_id=caller.user_id if caller is not None else None,
        target_user_id=target_user_id,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))


def _get_role(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


def _name_taken(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(Role).filter(func.lower(Role.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Role.id != exclude_id)
    return q.first() is not None


# ---------------------------------------------------------------------------
# /api/roles
# ---------------------------------------------------------------------------


@router.get("", response_model=list[RoleRow])
def list_roles(caller=Depends(can_configure), db: Session = Depends(get_db)):
    return db.query(Role).order_by(Role.id).all()


@router.get("/{role_id}", response_model=RoleRow)
def get_role(role_id: int, caller=Depends(can_configure), db: Session = Depends(get_db)):
    return _get_role(db, role_id)


@router.post("", response_model=RoleRow, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreateRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    if _name_taken(db, body.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role already exists")

    role = Role(name=body.name.strip(), description=body.description, is_active=True)
    db.add(role)
    db.flush()
    _audit(db, request, caller, "create_role", detail=f"role={role.name}")
    db.commit()
    db.refresh(role)
    return role


@router.put("/{role_id}", response_model=RoleRow)
def update_role(
    role_id: int,
    body: RoleUpdateRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """Rename / re-describe / (de)activate a role.  Body id must match the path."""
    if role_id != body.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Role id mismatch")

    role = _get_role(db, role_id)
    if _name_taken(db, body.name, exclude_id=role_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role already exists")
    if role.is_admin_role and (not body.is_active or body.name.strip().lower() != role.name.lower()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admin role cannot be renamed or deactivated.",
        )

    role.name = body.name.strip()
    role.description = body.description
    role.is_active = body.is_active
    _audit(db, request, caller, "update_role", detail=f"role={role.name} active={role.is_active}")
    db.commit()
    db.refresh(role)
    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: int,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """Soft delete: the role stays in the table with ``is_active = False``."""
    role = _get_role(db, role_id)
    if role.is_admin_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admin role cannot be renamed or deactivated.",
        )
    role.is_active = False
    _audit(db, request, caller, "delete_role", detail=f"role={role.name}")
    db.commit()


# ---------------------------------------------------------------------------
# /api/roles/{role_id}/permissions
# ---------------------------------------------------------------------------


@router.get("/{role_id}/permissions", response_model=RolePermissionsResponse)
def get_role_permissions(role_id: int, caller=Depends(can_configure), db: Session = Depends(get_db)):
    """Ids of the page permissions currently granted to the role."""
    _get_role(db, role_id)
    rows = (
        db.query(RolePermission.page_permission_id)
        .filter(RolePermission.role_id == role_id, RolePermission.is_active.is_(True))
        .order_by(RolePermission.page_permission_id)
        .all()
    )
    return RolePermissionsResponse(role_id=role_id, page_permission_ids=[r[0] for r in rows])


@router.post("/{role_id}/permissions", response_model=MessageResponse)
def replace_role_permissions(
    role_id: int,
    body: UpdateRolePermissionsRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """
    Replace the role's permission set with ``page_permission_ids``.

    * body ``role_id`` must match the path (400)
    * unknown role -> 404
    * the Admin role's set is fixed (400)
    * ids that match no page permission are dropped silently

    The delete and the inserts commit together or not at all.
    """
    if role_id != body.role_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="RoleId mismatch")

    role = _get_role(db, role_id)
    if role.is_admin_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admin role permissions cannot be modified.",
        )

    valid_ids = []
    if body.page_permission_ids:
        valid_ids = [
            r[0]
            for r in db.query(PagePermission.id)
            .filter(PagePermission.id.in_(set(body.page_permission_ids)))
            .order_by(PagePermission.id)
            .all()
        ]

    try:
        db.query(RolePermission).filter(RolePermission.role_id == role_id).delete(
            synchronize_session=False
        )
        db.add_all(
            RolePermission(role_id=role_id, page_permission_id=pid, is_active=True)
            for pid in valid_ids
        )
        _audit(
            db, request, caller, "replace_role_permissions",
            detail=f"role={role.name} page_permission_ids={valid_ids}",
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating permissions for role %s", role_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update role permissions",
        )

    logger.info("Role %s permission set replaced (%d entries)", role.name, len(valid_ids))
    return MessageResponse(message="Role permissions updated")


# ---------------------------------------------------------------------------
# /api/user-roles
# ---------------------------------------------------------------------------


@user_roles_router.get("", response_model=list[UserRoleRow])
def list_user_roles(caller=Depends(can_configure), db: Session = Depends(get_db)):
    return db.query(UserRole).order_by(UserRole.id).all()


@user_roles_router.post("", response_model=UserRoleRow, status_code=status.HTTP_201_CREATED)
def assign_user_role(
    body: UserRoleCreateRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """Link a user to a role; an existing switched-off link is re-activated."""
    if db.get(User, body.user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    role = _get_role(db, body.role_id)

    link = (
        db.query(UserRole)
        .filter(UserRole.user_id == body.user_id, UserRole.role_id == body.role_id)
        .first()
    )
    if link is None:
        link = UserRole(user_id=body.user_id, role_id=body.role_id, is_active=True)
        db.add(link)
    else:
        link.is_active = True

    _audit(db, request, caller, "assign_role", detail=f"role={role.name}", target_user_id=body.user_id)
    db.commit()
    db.refresh(link)
    return link


@user_roles_router.put("/{link_id}", response_model=UserRoleRow)
def update_user_role(
    link_id: int,
    body: UserRoleUpdateRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """Switch a membership on or off."""
    if link_id != body.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="UserRole id mismatch")

    link = db.get(UserRole, link_id)
    if link is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User role not found")

    link.is_active = body.is_active
    _audit(
        db, request, caller, "toggle_user_role",
        detail=f"role_id={link.role_id} active={body.is_active}",
        target_user_id=link.user_id,
    )
    db.commit()
    db.refresh(link)
    return link


# ---------------------------------------------------------------------------
# /api/page-permissions
# ---------------------------------------------------------------------------


def _page_permission_row(pp: PagePermission) -> PagePermissionRow:
    return PagePermissionRow(
        id=pp.id,
        page_name=pp.page_name,
        page_url=pp.page_url,
        permission_id=pp.permission_id,
        permission=Permission.label_of(pp.permission_id),
        is_active=pp.is_active,
    )


@page_permissions_router.get("", response_model=list[PagePermissionRow])
def list_page_permissions(caller=Depends(can_configure), db: Session = Depends(get_db)):
    """Active catalogue rows, grouped by page."""
    rows = (
        db.query(PagePermission)
        .filter(PagePermission.is_active.is_(True))
        .order_by(PagePermission.page_url, PagePermission.permission_id)
        .all()
    )
    return [_page_permission_row(pp) for pp in rows]


@page_permissions_router.post("", response_model=PagePermissionRow, status_code=status.HTTP_201_CREATED)
def create_page_permission(
    body: PagePermissionCreateRequest,
    request: Request,
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    exists = (
        db.query(PagePermission)
        .filter(
            func.lower(PagePermission.page_url) == body.page_url.strip().lower(),
            PagePermission.permission_id == body.permission_id,
        )
        .first()
    )
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Page permission already exists")

    pp = PagePermission(
        page_name=body.page_name.strip(),
        page_url=body.page_url.strip(),
        permission_id=body.permission_id,
        is_active=True,
    )
    db.add(pp)
    db.flush()
    _audit(db, request, caller, "create_page_permission", detail=f"{pp.page_url}:{pp.permission_id}")
    db.commit()
    db.refresh(pp)
    return _page_permission_row(pp)
