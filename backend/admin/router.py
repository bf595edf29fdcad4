# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – grant inspection, permission-matrix export and the audit
trail.

``/role-permissions`` only needs an authenticated caller (it shows the
caller's own grants).  The export and the audit trail sit behind the
``UserRoleConfiguration`` policy.
"""

import io
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, aliased
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from auth.identity import Identity
from database import get_db
from models.audit_log import AuditLog
from models.page_permission import PagePermission, RolePermission
from models.role import Role
from models.user import User
from permissions.dependencies import get_current_identity, require_policy
from permissions.enums import Permission
from permissions.grants import get_active_role_names, get_user_grants
from permissions.policies import USER_ROLE_CONFIGURATION
from admin.schemas import AuditLogListResponse, AuditLogRow, MyRolePermissionsResponse
from users.router import grant_rows

router = APIRouter(prefix="/api/admin", tags=["admin"])

can_configure = require_policy(USER_ROLE_CONFIGURATION)


# ---------------------------------------------------------------------------
# GET /api/admin/role-permissions  – the caller's own grants
# ---------------------------------------------------------------------------


@router.get("/role-permissions", response_model=MyRolePermissionsResponse)
def my_role_permissions(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return MyRolePermissionsResponse(
        roles=sorted(get_active_role_names(db, identity.user_id)),
        grants=grant_rows(get_user_grants(db, identity.user_id)),
    )


# ---------------------------------------------------------------------------
# GET /api/admin/role-permissions/export  – role × page-permission matrix
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="6C63FF", end_color="6C63FF", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_CELL_ALIGN   = Alignment(horizontal="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_MATRIX_FIXED_HEADERS = ["Page", "Page URL", "Permission"]
_GRANTED_MARK = "Y"


def build_permission_matrix(db: Session) -> Workbook:
    """
    One row per active page permission, one column per active role, and a
    mark where the role holds an active grant for that row.
    """
    roles = db.query(Role).filter(Role.is_active.is_(True)).order_by(Role.name).all()
    pages = (
        db.query(PagePermission)
        .filter(PagePermission.is_active.is_(True))
        .order_by(PagePermission.page_url, PagePermission.permission_id)
        .all()
    )
    granted = {
        (rp.role_id, rp.page_permission_id)
        for rp in db.query(RolePermission).filter(RolePermission.is_active.is_(True)).all()
    }

    wb = Workbook()
    ws = wb.active
    ws.title = "Role Permissions"

    headers = _MATRIX_FIXED_HEADERS + [r.name for r in roles]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    for page in pages:
        ws.append(
            [page.page_name, page.page_url, Permission.label_of(page.permission_id)]
            + [_GRANTED_MARK if (r.id, page.id) in granted else None for r in roles]
        )
        row_idx = ws.max_row
        for col_idx in range(1, len(headers) + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = _THIN_BORDER
            if col_idx > len(_MATRIX_FIXED_HEADERS):
                cell.alignment = _CELL_ALIGN

    # Column widths
    widths = [24, 28, 12] + [max(10, len(r.name) + 2) for r in roles]
    for col_idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width
    ws.freeze_panes = "D2"

    return wb


@router.get("/role-permissions/export")
def export_role_permissions(
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """Download the role × page-permission matrix as an Excel file."""
    wb = build_permission_matrix(db)

    # Stream
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="role-permissions.xlsx"'},
    )


# ---------------------------------------------------------------------------
# GET /api/admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    caller=Depends(can_configure),
    db: Session = Depends(get_db),
):
    """
    Return audit log rows newest-first.  Supports optional filters:

    * ``emails`` – one or more exact email addresses; match rows where
                   *either* actor_id or target_user_id belongs to one of them.
    * ``since`` / ``until`` – ISO-8601 bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    Actor  = aliased(User)
    Target = aliased(User)

    q = (
        db.query(AuditLog, Actor.email, Target.email)
        .outerjoin(Actor,  AuditLog.actor_id       == Actor.id)
        .outerjoin(Target, AuditLog.target_user_id == Target.id)
    )

    if emails:
        q = q.filter(Actor.email.in_(emails) | Target.email.in_(emails))
    if since:
        q = q.filter(AuditLog.created_at >= since)
    if until:
        q = q.filter(AuditLog.created_at <= until)

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=row.id,
            actor_email=actor_email,
            target_email=target_email,
            action=row.action,
            detail=row.detail,
            request_ip=row.request_ip,
            created_at=row.created_at,
        )
        for row, actor_email, target_email in rows
    ])
