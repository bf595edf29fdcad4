# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS, request-logging, authentication and endpoint
  authorization middleware.
* Mount the feature routers (auth, users, roles, admin).
* Build the policy registry from the mounted routers, freeze it and attach
  it, together with the decision point, to ``app.state``.
* Expose a /health endpoint for container liveness checks.

Production note
---------------
CORS allow_origins is set to localhost only.  In a production deployment
this must be changed to the exact frontend origin.
"""

import time
from typing import Callable, Iterable, Optional

from fastapi import APIRouter, FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy.orm import Session

# Every mapped class must be imported before the first query configures
# the mappers (relationships are declared by class name).
from models import audit_log, page_permission, role, user  # noqa: F401
from admin.router import router as admin_router
from auth.middleware import AuthenticationMiddleware
from auth.router import router as auth_router
from core.config import AuthorizationSettings, settings
from core.logger import logger
from database import SessionLocal
from permissions.decision import PolicyDecisionPoint
from permissions.dependencies import register_route_policies
from permissions.enums import Permission
from permissions.middleware import EndpointAuthorizationMiddleware
from permissions.policies import (
    USER_ROLE_CONFIGURATION,
    USER_ROLE_CONFIGURATION_PAGE,
    PermissionRequirement,
    PolicyRegistry,
)
from roles.router import page_permissions_router, router as roles_router, user_roles_router
from users.router import router as users_router


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Credentials and request bodies are NOT echoed – only the URL and metadata
# are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


ROUTERS = (
    auth_router,
    users_router,
    roles_router,
    user_roles_router,
    page_permissions_router,
    admin_router,
)


def build_policy_registry(routers: Iterable[APIRouter] = ROUTERS) -> PolicyRegistry:
    """Named policies plus one entry per permission guard on *routers*."""
    registry = PolicyRegistry()
    registry.add(
        USER_ROLE_CONFIGURATION,
        PermissionRequirement(Permission.UPDATE, USER_ROLE_CONFIGURATION_PAGE),
    )
    guarded = register_route_policies(routers, registry)
    registry.freeze()
    logger.info("Policy registry built: %d policies, %d guarded routes", len(registry), guarded)
    return registry


def create_app(
    session_factory: Optional[Callable[[], Session]] = None,
    authorization: Optional[AuthorizationSettings] = None,
) -> FastAPI:
    """
    Build the application.  *session_factory* defaults to the configured
    database; *authorization* defaults to ``settings.authorization``.
    """
    authorization = authorization or settings.authorization

    app = FastAPI(title="Temple Management API", version="1.0.0")
    app.state.session_factory = session_factory or SessionLocal

    # -----------------------------------------------------------------------
    # Middleware (last added runs first)
    # -----------------------------------------------------------------------
    app.add_middleware(EndpointAuthorizationMiddleware)
    app.add_middleware(AuthenticationMiddleware)
    # In development we allow localhost:3000 (the admin frontend).
    # Tighten to your production domain before deploying.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # -----------------------------------------------------------------------
    # Authorization
    # -----------------------------------------------------------------------
    app.state.policy_registry = build_policy_registry(ROUTERS)
    app.state.decision_point = PolicyDecisionPoint(
        app.state.session_factory,
        public_endpoints=authorization.public_endpoints,
        enabled=authorization.enable_permission_based_auth,
        default_require_authentication=authorization.default_require_authentication,
        endpoint_permissions=authorization.endpoint_permissions,
    )
    if not authorization.enable_permission_based_auth:
        logger.warning("Permission-based authorization is DISABLED")

    @app.on_event("startup")
    async def _on_startup():
        logger.info("Temple Management service starting up")

    @app.on_event("shutdown")
    async def _on_shutdown():
        logger.info("Temple Management service shutting down")

    return app


app = create_app()
