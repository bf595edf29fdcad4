"""Tests for reference-data seeding."""

from models.page_permission import PagePermission, RolePermission
from models.role import Role
from permissions.enums import Permission
from permissions.grants import get_active_role_names, has_grant
from permissions.policies import USER_ROLE_CONFIGURATION_PAGE
from permissions.seed import (
    ADMIN_PAGES,
    TEMPLE_PAGES,
    grant_admin_role,
    seed_reference_data,
)


def _counts(db):
    return (
        db.query(Role).count(),
        db.query(PagePermission).count(),
        db.query(RolePermission).count(),
    )


class TestSeedReferenceData:
    def test_catalogue_and_grants(self, db):
        roles = seed_reference_data(db)
        db.commit()

        assert set(roles) == {"Admin", "General"}
        pages = len(ADMIN_PAGES) + len(TEMPLE_PAGES)
        assert db.query(PagePermission).count() == pages * len(Permission)

        admin_grants = db.query(RolePermission).filter(RolePermission.role_id == roles["Admin"].id).count()
        assert admin_grants == pages * len(Permission)

    def test_is_idempotent(self, db):
        seed_reference_data(db)
        db.commit()
        before = _counts(db)

        seed_reference_data(db)
        db.commit()
        assert _counts(db) == before

    def test_general_role(self, db, seed):
        roles = seed_reference_data(db)
        db.commit()
        user = seed.user("devotee")
        seed.assign(user, roles["General"])

        assert has_grant(db, user.id, "/events", Permission.READ)
        assert has_grant(db, user.id, "/donations", Permission.WRITE)
        assert not has_grant(db, user.id, "/events", Permission.DELETE)
        assert not has_grant(db, user.id, "/users", Permission.READ)

    def test_grant_admin_role(self, db, seed):
        seed_reference_data(db)
        db.commit()
        user = seed.user("boss")

        grant_admin_role(db, user)
        db.commit()

        assert get_active_role_names(db, user.id) == {"Admin"}
        assert has_grant(db, user.id, USER_ROLE_CONFIGURATION_PAGE, Permission.UPDATE)
