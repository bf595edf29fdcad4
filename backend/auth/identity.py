# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Identity resolution for HTTP Basic authentication.

Security notes
--------------
* "No such user" and "wrong password" produce the *same* message, so the
  login surface cannot be used to enumerate accounts.
* The verification and deactivation messages are only shown once a matching
  account exists; they tell the owner what to do next and reveal nothing an
  attacker could not already guess.
* Resolution is read-only.  Nothing is cached: every request authenticates
  from scratch against the current database state.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.logger import logger
from core.security import MalformedCredentialsError, parse_basic_authorization, verify_password
from models.user import User
from permissions.grants import get_active_role_names

# Generic message used for both "no such user" and "wrong password"
INVALID_CREDENTIALS = "Invalid username or password."
EMAIL_NOT_VERIFIED = "Email not verified. Please check your email for the verification link."
ACCOUNT_DEACTIVATED = "Account is deactivated."
AUTHENTICATION_ERROR = "Authentication error."

# Claim keys, read back by resolve_user_id()
CLAIM_NAME_IDENTIFIER = "nameidentifier"
CLAIM_USER_ID = "userid"
CLAIM_NAME = "name"
CLAIM_EMAIL = "email"
CLAIM_FULL_NAME = "fullname"
CLAIM_ROLE = "role"


class AuthenticationError(Exception):
    """Raised by :func:`resolve_identity`; ``message`` is safe to show the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    email: str
    full_name: str
    roles: frozenset = field(default_factory=frozenset)
    is_authenticated: bool = True

    @property
    def claims(self) -> dict:
        return {
            CLAIM_NAME_IDENTIFIER: str(self.user_id),
            CLAIM_USER_ID: str(self.user_id),
            CLAIM_NAME: self.username,
            CLAIM_EMAIL: self.email,
            CLAIM_FULL_NAME: self.full_name,
            CLAIM_ROLE: sorted(self.roles),
        }

    def has_role(self, role_name: str) -> bool:
        return any(r.lower() == role_name.lower() for r in self.roles)


def resolve_user_id(identity: Optional[Identity]) -> Optional[int]:
    """
    User id from the identity's claims: ``userid`` first, then
    ``nameidentifier``.  ``None`` when neither parses as an integer.
    """
    if identity is None:
        return None
    claims = identity.claims
    for key in (CLAIM_USER_ID, CLAIM_NAME_IDENTIFIER):
        value = claims.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def find_user(db: Session, username_or_email: str) -> Optional[User]:
    """Case-insensitive lookup on username OR email."""
    key = username_or_email.strip().lower()
    if not key:
        return None
    return (
        db.query(User)
        .filter(or_(func.lower(User.username) == key, func.lower(User.email) == key))
        .order_by(User.id)
        .first()
    )


def build_identity(db: Session, user: User) -> Identity:
    return Identity(
        user_id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name or "",
        roles=frozenset(get_active_role_names(db, user.id)),
    )


def resolve_identity(db: Session, username_or_email: str, password: str) -> Identity:
    """
    Authenticate (*username_or_email*, *password*).

    Checks, in order: account exists, verified, active, password matches.
    Raises :class:`AuthenticationError` with the client-facing message of the
    first check that fails.
    """
    user = find_user(db, username_or_email)

    # Unified failure path – no information leaks about whether the account exists
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not user.is_verified:
        raise AuthenticationError(EMAIL_NOT_VERIFIED)

    if not user.is_active:
        raise AuthenticationError(ACCOUNT_DEACTIVATED)

    if not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    return build_identity(db, user)


# ---------------------------------------------------------------------------
# Per-request outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthenticationResult:
    """
    What the authentication middleware learned about a request.

    ``attempted`` is False when no Basic credentials were sent at all.
    Exactly one of ``identity`` / ``failure`` is set when ``attempted``.
    """

    attempted: bool = False
    identity: Optional[Identity] = None
    failure: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.identity is not None


NO_CREDENTIALS = AuthenticationResult()


def authenticate_header(
    session_factory: Callable[[], Session],
    authorization: Optional[str],
) -> AuthenticationResult:
    """
    Extract Basic credentials from *authorization* and resolve them using a
    session of its own.  Never raises: every problem becomes a failure result.
    """
    try:
        credentials = parse_basic_authorization(authorization)
    except MalformedCredentialsError as exc:
        return AuthenticationResult(attempted=True, failure=str(exc))

    if credentials is None:
        return NO_CREDENTIALS

    try:
        db = session_factory()
    except Exception:
        logger.exception("Could not open a session to authenticate %r", credentials.username)
        return AuthenticationResult(attempted=True, failure=AUTHENTICATION_ERROR)

    try:
        identity = resolve_identity(db, credentials.username, credentials.password)
        return AuthenticationResult(attempted=True, identity=identity)
    except AuthenticationError as exc:
        logger.info("Basic authentication failed for %r: %s", credentials.username, exc.message)
        return AuthenticationResult(attempted=True, failure=exc.message)
    except Exception:
        logger.exception("Basic authentication failed with an unexpected error")
        return AuthenticationResult(attempted=True, failure=AUTHENTICATION_ERROR)
    finally:
        db.close()
