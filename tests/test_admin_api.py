"""Tests for /api/admin: own grants, matrix export and the audit trail."""

import io

from openpyxl import load_workbook

from helpers import DEFAULT_PASSWORD, basic_auth
from permissions.enums import Permission


class TestMyRolePermissions:
    def test_any_authenticated_caller(self, client, seed):
        dave = seed.user("dave")
        role = seed.role("Clerk")
        seed.assign(dave, role)
        seed.grant(role, "/donations", Permission.WRITE)

        resp = client.get("/api/admin/role-permissions", headers=basic_auth("dave", DEFAULT_PASSWORD))
        assert resp.status_code == 200
        assert resp.json() == {
            "roles": ["Clerk"],
            "grants": [
                {"role_name": "Clerk", "page_name": "Donations", "page_url": "/donations", "permission": "Write"}
            ],
        }

    def test_anonymous(self, client):
        assert client.get("/api/admin/role-permissions").status_code == 401


class TestExport:
    def test_matrix(self, client, admin_auth, seed):
        clerk = seed.role("Clerk")
        seed.grant(clerk, "/users", Permission.READ)

        resp = client.get("/api/admin/role-permissions/export", headers=admin_auth)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )

        ws = load_workbook(io.BytesIO(resp.content)).active
        rows = list(ws.iter_rows(values_only=True))
        assert rows[0] == ("Page", "Page URL", "Permission", "Admin", "Clerk")

        by_key = {(r[1], r[2]): r[3:] for r in rows[1:]}
        assert by_key[("/users", "Read")] == ("Y", "Y")
        assert by_key[("/users", "Write")] == ("Y", None)

    def test_requires_policy(self, client, seed):
        seed.user("plain")
        resp = client.get("/api/admin/role-permissions/export", headers=basic_auth("plain", DEFAULT_PASSWORD))
        assert resp.status_code == 403


class TestAuditLogs:
    def test_login_is_recorded(self, client, admin_auth):
        client.post("/api/auth/login", headers=admin_auth)
        resp = client.get("/api/admin/audit-logs", headers=admin_auth)
        assert resp.status_code == 200
        logs = resp.json()["logs"]
        assert logs[0]["action"] == "user_login"
        assert logs[0]["actor_email"] == "root@temple.test"

    def test_email_filter(self, client, admin_auth, seed):
        seed.user("dave")
        client.post("/api/auth/login", headers=admin_auth)
        client.post("/api/auth/login", headers=basic_auth("dave", DEFAULT_PASSWORD))

        resp = client.get(
            "/api/admin/audit-logs",
            params={"emails": ["dave@temple.test"]},
            headers=admin_auth,
        )
        logs = resp.json()["logs"]
        assert len(logs) == 1
        assert logs[0]["target_email"] == "dave@temple.test"

    def test_limit(self, client, admin_auth):
        for _ in range(3):
            client.post("/api/auth/login", headers=admin_auth)
        resp = client.get("/api/admin/audit-logs", params={"limit": 2}, headers=admin_auth)
        assert len(resp.json()["logs"]) == 2
