# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – login, registration, email verification, password change
and "who am I" reads.

Security notes
--------------
* Credentials travel as HTTP Basic on every request; the authentication
  middleware has already resolved them by the time a handler runs.  Login
  additionally accepts a JSON body for clients that cannot set the header.
* Login returns the *same* message whether the account doesn't exist or the
  password is wrong.  Unverified / deactivated accounts get their own
  message in the response body so the owner knows what to do.
* change-password verifies the old password before accepting the new one.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth.identity import (
    NO_CREDENTIALS,
    AuthenticationError,
    Identity,
    resolve_identity,
)
from auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    PermissionsByPageResponse,
    RegisterRequest,
    UserInfoResponse,
)
from auth.service import (
    AccountConflictError,
    assign_roles,
    create_account,
    user_info,
    validate_new_password,
    verify_account,
)
from core.config import settings
from core.logger import logger
from core.security import get_client_ip, hash_password, verify_password
from database import get_db
from models.audit_log import AuditLog
from models.user import User
from permissions.dependencies import get_current_identity
from permissions.grants import (
    get_active_role_names,
    get_permission_page_names,
    get_permissions_by_page,
    get_user_grants,
)
from permissions.policies import policy_name

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _login_failure(message: str) -> JSONResponse:
    body = AuthResponse(success=False, message=message)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=body.model_dump(),
        headers={"WWW-Authenticate": "Basic"},
    )


def _load_user(db: Session, identity: Identity) -> User:
    user = db.get(User, identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ---------------------------------------------------------------------------
# POST /api/auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(
    request: Request,
    body: Optional[LoginRequest] = None,
    db: Session = Depends(get_db),
):
    """Check credentials and return the caller's profile, roles and grants."""
    outcome = getattr(request.state, "authentication", NO_CREDENTIALS)

    if outcome.attempted:
        if not outcome.succeeded:
            return _login_failure(outcome.failure)
        identity = outcome.identity
    elif body is not None:
        try:
            identity = resolve_identity(db, body.username, body.password)
        except AuthenticationError as exc:
            return _login_failure(exc.message)
    else:
        return _login_failure("Authentication required")

    user = _load_user(db, identity)
    grants = get_user_grants(db, user.id)

    # Record login timestamp and audit event
    user.last_login = datetime.now(timezone.utc)
    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="user_login",
        request_ip=get_client_ip(request),
    ))
    db.commit()
    db.refresh(user)

    return AuthResponse(
        success=True,
        message="Login successful",
        user=user_info(db, user),
        roles=sorted(identity.roles),
        permissions=sorted({policy_name(g.permission, g.page_url) for g in grants}),
    )


# ---------------------------------------------------------------------------
# POST /api/auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """
    Create an unverified, inactive account and issue a verification code.
    The account can log in once the code has been used on /verify.
    """
    err = validate_new_password(body.password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    try:
        user = create_account(
            db,
            username=body.username,
            email=body.email,
            full_name=body.full_name,
            password=body.password,
            verified=False,
        )
    except AccountConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    assign_roles(db, user, [settings.default_role])
    db.add(AuditLog(
        actor_id=None,
        target_user_id=user.id,
        action="register",
        request_ip=get_client_ip(request),
    ))
    db.commit()
    db.refresh(user)

    # Mail delivery is handled outside this service; the link is logged.
    logger.info(
        "Verification link for %s: %s?code=%s",
        user.email,
        settings.verification_base_url,
        user.verification_code,
    )

    return AuthResponse(
        success=True,
        message="Registration successful. Please check your email to verify your account.",
        user=user_info(db, user),
    )


# ---------------------------------------------------------------------------
# GET /api/auth/verify?code=
# ---------------------------------------------------------------------------


@router.get("/verify", response_model=MessageResponse)
def verify(request: Request, code: str = Query(""), db: Session = Depends(get_db)):
    """Consume a one-time verification code; activates the account."""
    user = verify_account(db, code)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification code",
        )

    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="verify_account",
        request_ip=get_client_ip(request),
    ))
    db.commit()
    return MessageResponse(message="Account verified successfully")


# ---------------------------------------------------------------------------
# GET /api/auth/me, /roles, /permissions
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserInfoResponse)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    """Return the authenticated user's profile (no secrets)."""
    return user_info(db, _load_user(db, identity))


@router.get("/roles", response_model=list[str])
def my_roles(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return sorted(get_active_role_names(db, identity.user_id))


@router.get("/permissions", response_model=list[str])
def my_permissions(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    """Names of the pages the caller holds at least one permission on."""
    return sorted(get_permission_page_names(db, identity.user_id))


@router.get("/permissions/by-page", response_model=PermissionsByPageResponse)
def my_permissions_by_page(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    pages = get_permissions_by_page(db, identity.user_id)
    return PermissionsByPageResponse(
        pages={url: [p.label for p in kinds] for url, kinds in sorted(pages.items())}
    )


# ---------------------------------------------------------------------------
# PUT /api/auth/change-password
# ---------------------------------------------------------------------------


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Change the authenticated user's password."""
    user = _load_user(db, identity)

    if not verify_password(body.old_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Old password is incorrect",
        )

    err = validate_new_password(body.new_password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    user.password_hash = hash_password(body.new_password)
    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="change_password",
        request_ip=get_client_ip(request),
    ))
    db.commit()

    return MessageResponse(message="Password changed successfully")
