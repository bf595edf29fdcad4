"""Tests for configuration-driven authorization applied before routing."""

import pytest
from fastapi.testclient import TestClient

from core.config import AuthorizationSettings
from helpers import DEFAULT_PASSWORD, basic_auth
from main import create_app
from permissions.enums import Permission


def _client(session_factory, **overrides):
    return TestClient(create_app(session_factory=session_factory, authorization=AuthorizationSettings(**overrides)))


@pytest.fixture()
def dave(seed):
    dave = seed.user("dave")
    role = seed.role("Clerk")
    seed.assign(dave, role)
    return dave, role


class TestConfiguredEndpointPermissions:
    ENDPOINTS = {"/api/auth/me": {"GET": "Read"}}

    def test_unguarded_route_needs_configured_permission(self, session_factory, seed, dave):
        _, role = dave
        headers = basic_auth("dave", DEFAULT_PASSWORD)
        with _client(session_factory, endpoint_permissions=self.ENDPOINTS) as client:
            resp = client.get("/api/auth/me", headers=headers)
            assert resp.status_code == 403
            assert resp.json() == {"detail": "Forbidden"}

            seed.grant(role, "/auth/me", Permission.READ)
            assert client.get("/api/auth/me", headers=headers).status_code == 200

    def test_other_methods_are_unaffected(self, session_factory, dave):
        headers = basic_auth("dave", DEFAULT_PASSWORD)
        with _client(session_factory, endpoint_permissions=self.ENDPOINTS) as client:
            assert client.get("/api/auth/roles", headers=headers).status_code == 200

    def test_disabled_authorization_skips_the_check(self, session_factory, dave):
        headers = basic_auth("dave", DEFAULT_PASSWORD)
        with _client(session_factory, endpoint_permissions=self.ENDPOINTS, enable_permission_based_auth=False) as client:
            assert client.get("/api/auth/me", headers=headers).status_code == 200


class TestDefaultRequireAuthentication:
    def test_anonymous_call_to_unknown_path(self, session_factory):
        with _client(session_factory) as client:
            resp = client.get("/api/nowhere")
            assert resp.status_code == 401
            assert resp.headers["WWW-Authenticate"] == "Basic"

    def test_switched_off(self, session_factory):
        with _client(session_factory, default_require_authentication=False) as client:
            assert client.get("/api/nowhere").status_code == 404
            # Guards still demand an identity
            assert client.get("/api/auth/me").status_code == 401

    def test_public_paths_stay_open(self, session_factory):
        with _client(session_factory) as client:
            assert client.get("/health").status_code == 200
