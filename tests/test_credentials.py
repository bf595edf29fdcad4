"""Tests for password hashing and Basic credential extraction."""

import base64

import pytest

from core.security import (
    BasicCredentials,
    MalformedCredentialsError,
    hash_password,
    is_legacy_hash,
    parse_basic_authorization,
    verify_password,
)
from helpers import encode


class TestParseBasicAuthorization:
    """Test the Authorization header parser."""

    def test_missing_header_is_anonymous(self):
        assert parse_basic_authorization(None) is None
        assert parse_basic_authorization("") is None
        assert parse_basic_authorization("   ") is None

    def test_other_scheme_is_anonymous(self):
        assert parse_basic_authorization("Bearer abc.def.ghi") is None

    def test_valid_credentials(self):
        creds = parse_basic_authorization(f"Basic {encode('alice:s3cret')}")
        assert creds == BasicCredentials(username="alice", password="s3cret")

    def test_scheme_is_case_insensitive(self):
        creds = parse_basic_authorization(f"basic {encode('alice:s3cret')}")
        assert creds.username == "alice"

    def test_password_keeps_extra_colons(self):
        creds = parse_basic_authorization(f"Basic {encode('alice:a:b:c')}")
        assert creds.password == "a:b:c"

    def test_username_is_trimmed(self):
        creds = parse_basic_authorization(f"Basic {encode('  alice :pw')}")
        assert creds.username == "alice"

    def test_invalid_base64(self):
        with pytest.raises(MalformedCredentialsError) as exc:
            parse_basic_authorization("Basic not*base64!")
        assert str(exc.value) == "Invalid Base64 encoding for Basic authentication."

    def test_missing_separator(self):
        with pytest.raises(MalformedCredentialsError) as exc:
            parse_basic_authorization(f"Basic {encode('alice')}")
        assert str(exc.value) == "Invalid Basic authentication credentials format."

    def test_non_utf8_payload(self):
        payload = base64.b64encode(b"\xff\xfe:pw").decode("ascii")
        with pytest.raises(MalformedCredentialsError):
            parse_basic_authorization(f"Basic {payload}")


class TestPasswords:
    """Test hashing and verification, including legacy rows."""

    def test_hash_verifies(self):
        stored = hash_password("Passw0rd!")
        assert stored.startswith("$pbkdf2-sha256$")
        assert verify_password("Passw0rd!", stored)
        assert not verify_password("passw0rd!", stored)

    def test_hash_is_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_legacy_base64_row_still_verifies(self):
        legacy = base64.b64encode(b"pw123").decode("ascii")
        assert is_legacy_hash(legacy)
        assert verify_password("pw123", legacy)
        assert not verify_password("pw1234", legacy)

    def test_garbage_never_verifies(self):
        assert not verify_password("x", "")
        assert not verify_password("x", "%%%not-a-hash%%%")
