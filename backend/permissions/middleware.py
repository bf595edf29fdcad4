# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Endpoint authorization middleware.

Runs after :class:`~auth.middleware.AuthenticationMiddleware` and asks the
decision point whether the request may reach routing at all
(``default_require_authentication`` and the configured
``endpoint_permissions``).  Route guards still apply on top of it.
"""

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from permissions.decision import DENY_UNAUTHENTICATED
from permissions.dependencies import get_request_identity


class EndpointAuthorizationMiddleware(BaseHTTPMiddleware):
    """Reject requests the configuration alone already denies."""

    async def dispatch(self, request: Request, call_next) -> Response:
        # Preflight requests carry no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        decision = await run_in_threadpool(
            request.app.state.decision_point.evaluate_request,
            request.url.path,
            request.method,
            get_request_identity(request),
        )
        if decision.allowed:
            return await call_next(request)

        if decision.reason == DENY_UNAUTHENTICATED:
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated"},
                headers={"WWW-Authenticate": "Basic"},
            )
        return JSONResponse(status_code=403, content={"detail": "Forbidden"})
