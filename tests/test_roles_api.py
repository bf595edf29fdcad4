"""Tests for role administration behind the UserRoleConfiguration policy."""

import pytest

from helpers import DEFAULT_PASSWORD, basic_auth
from models.page_permission import PagePermission
from permissions.enums import Permission


@pytest.fixture()
def clerk(seed):
    return seed.role("Clerk")


@pytest.fixture()
def catalogue(seed):
    """Three page permissions; returns their ids."""
    return [
        seed.page_permission("/donations", Permission.READ).id,
        seed.page_permission("/donations", Permission.WRITE).id,
        seed.page_permission("/events", Permission.READ).id,
    ]


class TestRolePermissions:
    def test_replace_and_read_back(self, client, admin_auth, clerk, catalogue):
        body = {"role_id": clerk.id, "page_permission_ids": catalogue[:2]}
        resp = client.post(f"/api/roles/{clerk.id}/permissions", json=body, headers=admin_auth)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Role permissions updated"}

        resp = client.get(f"/api/roles/{clerk.id}/permissions", headers=admin_auth)
        assert resp.json() == {"role_id": clerk.id, "page_permission_ids": sorted(catalogue[:2])}

        # Replacement, not merge
        body = {"role_id": clerk.id, "page_permission_ids": [catalogue[2]]}
        client.post(f"/api/roles/{clerk.id}/permissions", json=body, headers=admin_auth)
        resp = client.get(f"/api/roles/{clerk.id}/permissions", headers=admin_auth)
        assert resp.json()["page_permission_ids"] == [catalogue[2]]

    def test_unknown_ids_are_ignored(self, client, admin_auth, clerk, catalogue):
        body = {"role_id": clerk.id, "page_permission_ids": [catalogue[0], 98765]}
        assert client.post(f"/api/roles/{clerk.id}/permissions", json=body, headers=admin_auth).status_code == 200
        resp = client.get(f"/api/roles/{clerk.id}/permissions", headers=admin_auth)
        assert resp.json()["page_permission_ids"] == [catalogue[0]]

    def test_role_id_mismatch(self, client, admin_auth, clerk):
        body = {"role_id": clerk.id + 1, "page_permission_ids": []}
        resp = client.post(f"/api/roles/{clerk.id}/permissions", json=body, headers=admin_auth)
        assert resp.status_code == 400

    def test_unknown_role(self, client, admin_auth):
        body = {"role_id": 4242, "page_permission_ids": []}
        assert client.post("/api/roles/4242/permissions", json=body, headers=admin_auth).status_code == 404

    def test_admin_role_is_immutable(self, client, admin_auth, session_factory):
        from models.role import Role

        with session_factory() as db:
            admin_role_id = db.query(Role).filter(Role.name == "Admin").one().id
        body = {"role_id": admin_role_id, "page_permission_ids": []}
        resp = client.post(f"/api/roles/{admin_role_id}/permissions", json=body, headers=admin_auth)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Admin role permissions cannot be modified."

    def test_new_grant_takes_effect_on_next_request(self, client, admin_auth, seed, clerk, catalogue):
        dave = seed.user("dave")
        seed.assign(dave, clerk)
        dave_auth = basic_auth("dave", DEFAULT_PASSWORD)
        assert client.get("/api/auth/permissions/by-page", headers=dave_auth).json() == {"pages": {}}

        body = {"role_id": clerk.id, "page_permission_ids": [catalogue[0]]}
        client.post(f"/api/roles/{clerk.id}/permissions", json=body, headers=admin_auth)
        assert client.get("/api/auth/permissions/by-page", headers=dave_auth).json() == {
            "pages": {"/donations": ["Read"]}
        }


class TestRoles:
    def test_crud(self, client, admin_auth):
        resp = client.post("/api/roles", json={"name": "Priest", "description": "Temple priest"}, headers=admin_auth)
        assert resp.status_code == 201
        role_id = resp.json()["id"]

        assert client.post("/api/roles", json={"name": "priest"}, headers=admin_auth).status_code == 409

        resp = client.put(
            f"/api/roles/{role_id}",
            json={"id": role_id, "name": "Head Priest", "description": None, "is_active": True},
            headers=admin_auth,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Head Priest"

        assert client.delete(f"/api/roles/{role_id}", headers=admin_auth).status_code == 204
        assert client.get(f"/api/roles/{role_id}", headers=admin_auth).json()["is_active"] is False

    def test_update_id_mismatch(self, client, admin_auth, clerk):
        resp = client.put(
            f"/api/roles/{clerk.id}",
            json={"id": clerk.id + 1, "name": "Clerk"},
            headers=admin_auth,
        )
        assert resp.status_code == 400

    def test_list(self, client, admin_auth, clerk):
        names = [r["name"] for r in client.get("/api/roles", headers=admin_auth).json()]
        assert sorted(names) == ["Admin", "Clerk"]


class TestUserRoles:
    def test_assign_and_toggle(self, client, admin_auth, seed, clerk):
        dave = seed.user("dave")
        resp = client.post("/api/user-roles", json={"user_id": dave.id, "role_id": clerk.id}, headers=admin_auth)
        assert resp.status_code == 201
        link_id = resp.json()["id"]
        assert client.get("/api/auth/roles", headers=basic_auth("dave", DEFAULT_PASSWORD)).json() == ["Clerk"]

        resp = client.put(f"/api/user-roles/{link_id}", json={"id": link_id, "is_active": False}, headers=admin_auth)
        assert resp.status_code == 200
        assert client.get("/api/auth/roles", headers=basic_auth("dave", DEFAULT_PASSWORD)).json() == []

        # Re-assigning re-activates the same link
        resp = client.post("/api/user-roles", json={"user_id": dave.id, "role_id": clerk.id}, headers=admin_auth)
        assert resp.json()["id"] == link_id
        assert resp.json()["is_active"] is True

    def test_unknown_user(self, client, admin_auth, clerk):
        resp = client.post("/api/user-roles", json={"user_id": 999, "role_id": clerk.id}, headers=admin_auth)
        assert resp.status_code == 404


class TestPagePermissions:
    def test_create_and_list(self, client, admin_auth, session_factory):
        body = {"page_name": "Poojas", "page_url": "/poojas", "permission_id": 2}
        resp = client.post("/api/page-permissions", json=body, headers=admin_auth)
        assert resp.status_code == 201
        assert resp.json()["permission"] == "Write"

        assert client.post("/api/page-permissions", json=body, headers=admin_auth).status_code == 409

        urls = {(p["page_url"], p["permission"]) for p in client.get("/api/page-permissions", headers=admin_auth).json()}
        assert ("/poojas", "Write") in urls

        with session_factory() as db:
            assert db.query(PagePermission).filter(PagePermission.page_url == "/poojas").count() == 1

    def test_stored_unknown_kind_is_listed_by_id(self, client, admin_auth, seed):
        seed.page_permission("/legacy", 9)
        resp = client.get("/api/page-permissions", headers=admin_auth)
        assert resp.status_code == 200
        legacy = [p for p in resp.json() if p["page_url"] == "/legacy"]
        assert legacy == [
            {
                "id": legacy[0]["id"],
                "page_name": "Legacy",
                "page_url": "/legacy",
                "permission_id": 9,
                "permission": "9",
                "is_active": True,
            }
        ]

    def test_unknown_permission_kind(self, client, admin_auth):
        body = {"page_name": "Poojas", "page_url": "/poojas", "permission_id": 9}
        assert client.post("/api/page-permissions", json=body, headers=admin_auth).status_code == 422


class TestPolicyGuard:
    @pytest.mark.parametrize("path", ["/api/roles", "/api/user-roles", "/api/page-permissions", "/api/admin/audit-logs"])
    def test_requires_user_role_configuration(self, client, seed, path):
        seed.user("plain")
        assert client.get(path, headers=basic_auth("plain", DEFAULT_PASSWORD)).status_code == 403
        assert client.get(path).status_code == 401
