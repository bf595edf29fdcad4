# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  Password primitives and the HTTP Basic credential
parser live here.  No other module should touch raw password material.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Basic ``Authorization`` header parsing   (RFC 7617)
3. Client IP extraction for audit rows
"""

import base64
import binascii
import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps

from core.config import settings

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# Accounts imported from the previous system store base64(password) instead of
# a hash.  Those rows still verify so nobody is locked out, but nothing in this
# code base ever writes that format; the next password change or reset
# replaces it with a real hash.
# ---------------------------------------------------------------------------

_PBKDF2_PREFIX = "$pbkdf2-sha256$"


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (salt embedded in the string)."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def is_legacy_hash(stored_hash: str) -> bool:
    return not stored_hash.startswith(_PBKDF2_PREFIX)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of *plain* against *stored_hash*.

    Accepts passlib pbkdf2_sha256 strings and legacy base64-encoded rows.
    A value that is neither never verifies.
    """
    if not stored_hash:
        return False

    if not is_legacy_hash(stored_hash):
        try:
            return _pbkdf2.verify(plain, stored_hash)
        except ValueError:
            return False

    try:
        decoded = base64.b64decode(stored_hash, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    return hmac.compare_digest(decoded.encode("utf-8"), plain.encode("utf-8"))


# ---------------------------------------------------------------------------
# 2.  HTTP Basic credentials
# ---------------------------------------------------------------------------


class MalformedCredentialsError(ValueError):
    """The header announced Basic auth but its payload cannot be used."""


@dataclass(frozen=True)
class BasicCredentials:
    username: str  # username or email, trimmed
    password: str  # verbatim, may contain ':'


def parse_basic_authorization(header: Optional[str]) -> Optional[BasicCredentials]:
    """
    Parse an ``Authorization`` header value.

    Returns ``None`` when the header is absent, blank, or uses another scheme
    (anonymous access stays possible).  Raises
    :class:`MalformedCredentialsError` when the scheme is ``Basic`` but the
    payload is not base64 / UTF-8 or lacks the ``user:password`` separator.
    """
    if header is None or not header.strip():
        return None

    value = header.strip()
    scheme, _, encoded = value.partition(" ")
    if scheme.lower() != "basic":
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise MalformedCredentialsError(
            "Invalid Base64 encoding for Basic authentication."
        ) from exc

    # Split on the first colon only – the password may contain more.
    parts = decoded.split(":", 1)
    if len(parts) != 2:
        raise MalformedCredentialsError(
            "Invalid Basic authentication credentials format."
        )

    return BasicCredentials(username=parts[0].strip(), password=parts[1])


# ---------------------------------------------------------------------------
# 3.  IP Address extraction
# ---------------------------------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
