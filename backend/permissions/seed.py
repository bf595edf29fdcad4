# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Reference data: the two built-in roles, the page-permission catalogue and
the default grants.

Every function here only inserts what is missing, so running the seed
again after an upgrade adds new catalogue rows without touching grants an
administrator has edited since.  Nothing is committed; the caller owns the
transaction.
"""

from sqlalchemy.orm import Session

from core.logger import logger
from models.page_permission import PagePermission, RolePermission
from models.role import ADMIN_ROLE, Role, UserRole
from models.user import User
from permissions.enums import Permission
from permissions.policies import USER_ROLE_CONFIGURATION_PAGE

GENERAL_ROLE = "General"

DEFAULT_ROLES = {
    ADMIN_ROLE: "System Administrator with full access",
    GENERAL_ROLE: "General user with basic access",
}

# page_url -> page_name
ADMIN_PAGES = {
    "/users": "User Management",
    "/roles": "Role Management",
    "/user-roles": "User Role Management",
    USER_ROLE_CONFIGURATION_PAGE: "User Role Configuration",
}

TEMPLE_PAGES = {
    "/temples": "Temples",
    "/devotees": "Devotees",
    "/donations": "Donations",
    "/events": "Events",
    "/products": "Products",
    "/sales": "Sales",
    "/poojas": "Poojas",
    "/bookings": "Bookings",
    "/inventory": "Inventory",
    "/contributions": "Contributions",
}

# Beyond Read everywhere, General may create these
GENERAL_EXTRA_GRANTS = {
    ("/bookings", Permission.WRITE),
    ("/donations", Permission.WRITE),
}


def seed_roles(db: Session) -> dict[str, Role]:
    roles = {r.name: r for r in db.query(Role).filter(Role.name.in_(list(DEFAULT_ROLES))).all()}
    for name, description in DEFAULT_ROLES.items():
        if name not in roles:
            roles[name] = Role(name=name, description=description, is_active=True)
            db.add(roles[name])
            logger.info("Seeded role %s", name)
    db.flush()
    return roles


def seed_page_permissions(db: Session) -> list[PagePermission]:
    """One catalogue row per (page, permission kind); returns the full catalogue."""
    existing = {(pp.page_url, pp.permission_id): pp for pp in db.query(PagePermission).all()}
    added = 0
    for page_url, page_name in {**ADMIN_PAGES, **TEMPLE_PAGES}.items():
        for permission in Permission:
            if (page_url, int(permission)) in existing:
                continue
            pp = PagePermission(
                page_name=page_name,
                page_url=page_url,
                permission_id=int(permission),
                is_active=True,
            )
            db.add(pp)
            existing[(page_url, int(permission))] = pp
            added += 1
    db.flush()
    if added:
        logger.info("Seeded %d page permissions", added)
    return list(existing.values())


def _is_general_grant(pp: PagePermission) -> bool:
    if pp.page_url not in TEMPLE_PAGES:
        return False
    return pp.permission_id == Permission.READ or (pp.page_url, pp.permission_id) in GENERAL_EXTRA_GRANTS


def seed_role_permissions(db: Session, roles: dict[str, Role], catalogue: list[PagePermission]) -> None:
    """Admin gets the whole catalogue, General gets the temple pages it needs."""
    granted = {(rp.role_id, rp.page_permission_id) for rp in db.query(RolePermission).all()}

    wanted = [(roles[ADMIN_ROLE], pp) for pp in catalogue]
    wanted += [(roles[GENERAL_ROLE], pp) for pp in catalogue if _is_general_grant(pp)]

    for role, pp in wanted:
        if (role.id, pp.id) not in granted:
            db.add(RolePermission(role_id=role.id, page_permission_id=pp.id, is_active=True))
            granted.add((role.id, pp.id))
    db.flush()


def seed_reference_data(db: Session) -> dict[str, Role]:
    roles = seed_roles(db)
    catalogue = seed_page_permissions(db)
    seed_role_permissions(db, roles, catalogue)
    return roles


def grant_admin_role(db: Session, user: User) -> None:
    """Attach the Admin role to *user* (re-activating an old link)."""
    admin = db.query(Role).filter(Role.name == ADMIN_ROLE).one()
    link = (
        db.query(UserRole)
        .filter(UserRole.user_id == user.id, UserRole.role_id == admin.id)
        .first()
    )
    if link is None:
        db.add(UserRole(user_id=user.id, role_id=admin.id, is_active=True))
    else:
        link.is_active = True
    db.flush()
