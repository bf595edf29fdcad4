# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI dependency guards.

    @router.get("/users")
    def list_users(caller=Depends(require_permission(Permission.READ, "/users"))):
        ...

Every guard hands its requirements to the application's
:class:`~permissions.decision.PolicyDecisionPoint` and turns a denial into
401 (nobody authenticated) or 403 (authenticated, missing permission).
Neither response says which permission was missing.

Guards return the caller's :class:`~auth.identity.Identity`, or ``None`` when
a public-endpoint or disabled-authorization bypass let an anonymous call
through.
"""

from typing import Iterable, Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.dependencies.models import Dependant
from fastapi.routing import APIRoute

from auth.identity import Identity
from core.logger import logger
from permissions.decision import DENY_UNAUTHENTICATED
from permissions.enums import Permission
from permissions.policies import (
    AUTHENTICATED,
    PermissionRequirement,
    PolicyRegistry,
    UnregisteredPolicy,
    policy_name,
)


def get_request_identity(request: Request) -> Optional[Identity]:
    """Identity stored by the authentication middleware, if any."""
    result = getattr(request.state, "authentication", None)
    return result.identity if result is not None else None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Basic"},
    )


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


class PolicyGuard:
    """
    Route dependency enforcing "authenticated" plus, optionally, one policy.

    *requirement* is set for guards built by :func:`require_permission`; the
    application copies it into its registry when it assembles its routers,
    and the guard falls back to it if the registry has no entry.  Guards
    built by :func:`require_policy` only carry the name and look the
    requirement up at request time.
    """

    def __init__(self, name: Optional[str] = None, requirement: Optional[PermissionRequirement] = None):
        self.policy_name = name
        self.requirement = requirement

    def __repr__(self) -> str:
        return f"PolicyGuard({self.policy_name!r})"

    def _requirements(self, registry: PolicyRegistry) -> list:
        requirements = [AUTHENTICATED]
        if self.policy_name is None:
            return requirements
        requirement = registry.get(self.policy_name) or self.requirement
        if requirement is None:
            logger.error("Policy %r is not registered; denying", self.policy_name)
            requirements.append(UnregisteredPolicy(self.policy_name))
        else:
            requirements.append(requirement)
        return requirements

    def __call__(self, request: Request) -> Optional[Identity]:
        identity = get_request_identity(request)
        decision = request.app.state.decision_point.evaluate(
            request.url.path,
            request.method,
            identity,
            self._requirements(request.app.state.policy_registry),
        )
        if decision.allowed:
            return identity
        if decision.reason == DENY_UNAUTHENTICATED:
            raise _unauthorized()
        raise _forbidden()


require_authenticated = PolicyGuard()


def require_permission(permission: Permission, page_url: str) -> PolicyGuard:
    """Guard for "caller holds *permission* on *page_url*"."""
    requirement = PermissionRequirement(permission, page_url)
    return PolicyGuard(policy_name(permission, page_url), requirement)


def require_policy(name: str) -> PolicyGuard:
    """Guard for a named policy registered directly in the registry."""
    return PolicyGuard(name)


def get_current_identity(identity: Optional[Identity] = Depends(require_authenticated)) -> Identity:
    """Like :data:`require_authenticated` but insists on a concrete identity."""
    if identity is None:
        raise _unauthorized()
    return identity


# ---------------------------------------------------------------------------
# Route registration
# ---------------------------------------------------------------------------


def _walk(dependant: Dependant) -> Iterator[Dependant]:
    for sub in dependant.dependencies:
        yield sub
        yield from _walk(sub)


def _api_routes(routes: Iterable) -> Iterator[APIRoute]:
    for route in routes:
        if isinstance(route, APIRoute):
            yield route
        elif isinstance(getattr(route, "routes", None), list):
            yield from _api_routes(route.routes)
        elif isinstance(getattr(route, "router", None), APIRouter):
            yield from _api_routes(route.router.routes)


def register_route_policies(routers: Iterable[APIRouter], registry: PolicyRegistry) -> int:
    """
    Copy the requirement of every ``require_permission`` guard declared on
    *routers* into *registry*.  Returns the number of guarded routes.

    Walks the routers the application is assembled from, not ``app.routes``:
    how an app stores included routers differs between FastAPI releases.
    """
    guarded = 0
    for router in routers:
        for route in _api_routes(router.routes):
            guards = [d.call for d in _walk(route.dependant) if isinstance(d.call, PolicyGuard)]
            for guard in guards:
                if guard.requirement is not None:
                    registry.add(guard.policy_name, guard.requirement)
            if any(g.policy_name for g in guards):
                guarded += 1
    return guarded
