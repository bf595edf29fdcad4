"""Tests for the role → page-permission join."""

import pytest

from models.page_permission import PagePermission, RolePermission
from models.role import Role, UserRole
from permissions.enums import Permission
from permissions.grants import (
    get_active_role_names,
    get_permission_page_names,
    get_permissions_by_page,
    get_user_grants,
    has_grant,
)


@pytest.fixture()
def alice_reads_users(seed):
    """alice --(Admin)--> Read /users, every link active."""
    alice = seed.user("alice")
    role = seed.role("Admin")
    link = seed.assign(alice, role)
    rp = seed.grant(role, "/users", Permission.READ)
    return {
        "user": alice,
        UserRole: link.id,
        Role: role.id,
        RolePermission: rp.id,
        PagePermission: rp.page_permission_id,
    }


def _check(session_factory, user_id, page_url="/users", permission=Permission.READ):
    with session_factory() as db:
        return has_grant(db, user_id, page_url, permission)


class TestHasGrant:
    """Test grant lookup and monotonicity under deactivation."""

    def test_active_chain_grants(self, session_factory, alice_reads_users):
        assert _check(session_factory, alice_reads_users["user"].id)

    def test_other_kind_or_page_is_not_granted(self, session_factory, alice_reads_users):
        user_id = alice_reads_users["user"].id
        assert not _check(session_factory, user_id, permission=Permission.WRITE)
        assert not _check(session_factory, user_id, page_url="/donations")

    @pytest.mark.parametrize("model", [UserRole, Role, RolePermission, PagePermission])
    def test_deactivating_any_link_removes_the_grant(self, session_factory, seed, alice_reads_users, model):
        user_id = alice_reads_users["user"].id
        seed.set_active(model, alice_reads_users[model], False)
        assert not _check(session_factory, user_id)

        seed.set_active(model, alice_reads_users[model], True)
        assert _check(session_factory, user_id)

    def test_user_without_roles(self, session_factory, seed):
        nobody = seed.user("nobody")
        assert not _check(session_factory, nobody.id)

    def test_any_role_suffices(self, session_factory, seed):
        alice = seed.user("alice")
        clerk, auditor = seed.role("Clerk"), seed.role("Auditor")
        seed.assign(alice, clerk)
        seed.assign(alice, auditor)
        seed.grant(auditor, "/donations", Permission.READ)
        assert _check(session_factory, alice.id, "/donations", Permission.READ)


class TestGrantQueries:
    """Test the read helpers used by the auth endpoints."""

    def test_roles_of_user_without_memberships(self, db, seed):
        assert get_active_role_names(db, seed.user("nobody").id) == set()

    def test_grants_by_page(self, db, seed):
        alice = seed.user("alice")
        role = seed.role("General")
        seed.assign(alice, role)
        seed.grant(role, "/donations", Permission.WRITE)
        seed.grant(role, "/donations", Permission.READ)
        seed.grant(role, "/events", Permission.READ)

        assert get_permissions_by_page(db, alice.id) == {
            "/donations": [Permission.READ, Permission.WRITE],
            "/events": [Permission.READ],
        }
        assert get_permission_page_names(db, alice.id) == {"Donations", "Events"}

    def test_unknown_permission_ids_are_skipped(self, db, seed):
        alice = seed.user("alice")
        role = seed.role("General")
        seed.assign(alice, role)
        seed.grant(role, "/events", Permission.READ)
        odd = seed._save(PagePermission(page_name="Odd", page_url="/odd", permission_id=99, is_active=True))
        seed._save(RolePermission(role_id=role.id, page_permission_id=odd.id, is_active=True))

        grants = get_user_grants(db, alice.id)
        assert {(g.page_url, g.permission) for g in grants} == {("/events", Permission.READ)}
