# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Authentication middleware.

Resolves the Basic ``Authorization`` header once per request and stores the
:class:`~auth.identity.AuthenticationResult` on ``request.state.authentication``.
It never rejects anything itself: public routes must stay reachable and the
login endpoint wants the failure message.  Route guards decide.
"""

from fastapi import Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from auth.identity import NO_CREDENTIALS, authenticate_header


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Attach the request's authentication outcome to ``request.state``."""

    async def dispatch(self, request: Request, call_next) -> Response:
        header = request.headers.get("Authorization")
        if header:
            # Blocking DB work – keep it off the event loop.
            request.state.authentication = await run_in_threadpool(
                authenticate_header,
                request.app.state.session_factory,
                header,
            )
        else:
            request.state.authentication = NO_CREDENTIALS

        return await call_next(request)
