# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Role → permission join engine.

A *grant* is the triple (role, page URL, permission kind) obtained by joining

    user_roles  →  roles  →  role_permissions  →  page_permissions

for one user, keeping only rows whose ``is_active`` flag is set at every hop.
Grants are never stored and never cached: every call re-reads the tables, so
switching off any link takes effect on the very next request.
"""

from typing import NamedTuple

from sqlalchemy.orm import Query, Session

from core.logger import logger
from models.page_permission import PagePermission, RolePermission
from models.role import Role, UserRole
from permissions.enums import Permission


class Grant(NamedTuple):
    role_name: str
    page_name: str
    page_url: str
    permission_id: int

    @property
    def permission(self) -> Permission:
        return Permission(self.permission_id)


def _active_memberships(db: Session, user_id: int, *columns) -> Query:
    """user_roles ⋈ roles, both active, for *user_id*."""
    return (
        db.query(*columns)
        .select_from(UserRole)
        .join(Role, Role.id == UserRole.role_id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            Role.is_active.is_(True),
        )
    )


def _active_grants(db: Session, user_id: int, *columns) -> Query:
    """Full four-table join, every hop filtered to active rows."""
    return (
        _active_memberships(db, user_id, *columns)
        .join(RolePermission, RolePermission.role_id == UserRole.role_id)
        .join(PagePermission, PagePermission.id == RolePermission.page_permission_id)
        .filter(
            RolePermission.is_active.is_(True),
            PagePermission.is_active.is_(True),
        )
    )


def get_active_role_names(db: Session, user_id: int) -> set[str]:
    """Names of the roles *user_id* effectively holds.  Empty set if none."""
    rows = _active_memberships(db, user_id, Role.name).distinct().all()
    return {name for (name,) in rows}


def get_user_grants(db: Session, user_id: int) -> set[Grant]:
    """Every active grant of *user_id*."""
    rows = (
        _active_grants(
            db,
            user_id,
            Role.name,
            PagePermission.page_name,
            PagePermission.page_url,
            PagePermission.permission_id,
        )
        .distinct()
        .all()
    )

    grants = set()
    for role_name, page_name, page_url, permission_id in rows:
        try:
            Permission(permission_id)
        except ValueError:
            logger.warning(
                "Ignoring page permission %s (%s) with unknown permission id %s",
                page_name, page_url, permission_id,
            )
            continue
        grants.add(Grant(role_name, page_name, page_url, permission_id))
    return grants


def get_permission_page_names(db: Session, user_id: int) -> set[str]:
    """Names of the pages *user_id* holds at least one permission on."""
    rows = _active_grants(db, user_id, PagePermission.page_name).distinct().all()
    return {name for (name,) in rows}


def get_permissions_by_page(db: Session, user_id: int) -> dict[str, list[Permission]]:
    """``{page_url: [Permission, …]}`` for *user_id*, kinds sorted by value."""
    by_page: dict[str, set[Permission]] = {}
    for grant in get_user_grants(db, user_id):
        by_page.setdefault(grant.page_url, set()).add(grant.permission)
    return {url: sorted(kinds) for url, kinds in by_page.items()}


def has_grant(db: Session, user_id: int, page_url: str, permission: Permission) -> bool:
    """True if any active role of *user_id* allows *permission* on *page_url*."""
    row = (
        _active_grants(db, user_id, RolePermission.id)
        .filter(
            PagePermission.page_url == page_url,
            PagePermission.permission_id == int(permission),
        )
        .first()
    )
    return row is not None
