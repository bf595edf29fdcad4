# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Policy decision point.

Evaluation of one request
-------------------------
1. Permission-based authorization switched off   → every requirement met.
2. Path starts with a public endpoint prefix     → every requirement met,
   whoever is (or is not) calling.
3. ``AuthenticatedRequirement``                  → met if an authenticated
   identity is present.
4. ``PermissionRequirement``                     → met if the join engine
   finds a grant for (page URL, permission) for the caller's user id.

:meth:`PolicyDecisionPoint.evaluate_request` runs the same evaluation for
every request, before routing, with the requirements the configuration
implies: "authenticated" when ``default_require_authentication`` is on, and
the ``endpoint_permissions`` entry for the longest matching path prefix and
the request method.

Requirements are only ever *marked as met*.  Whatever is still pending at the
end denies the request.  Missing claims, unregistered policies and database
errors therefore all deny; an exception never escapes :meth:`evaluate`.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth.identity import Identity, resolve_user_id
from core.logger import logger
from permissions.enums import Permission
from permissions.grants import has_grant
from permissions.policies import AUTHENTICATED, AuthenticatedRequirement, PermissionRequirement, Requirement

DENY_UNAUTHENTICATED = "unauthenticated"
DENY_FORBIDDEN = "forbidden"


class _Evaluation:
    """Pending / met bookkeeping for one decision."""

    def __init__(self, requirements: Iterable[Requirement]):
        self.pending: list[Requirement] = list(dict.fromkeys(requirements))
        self.met: list[Requirement] = []

    def succeed(self, requirement: Requirement) -> None:
        if requirement in self.pending:
            self.pending.remove(requirement)
            self.met.append(requirement)

    def succeed_all(self) -> None:
        for requirement in list(self.pending):
            self.succeed(requirement)

    def pending_of(self, kind: type) -> list:
        return [r for r in self.pending if isinstance(r, kind)]


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: Optional[str] = None
    unsatisfied: tuple = field(default_factory=tuple)
    bypassed: bool = False


def page_url_for(endpoint: str) -> str:
    """``/api/donations`` → ``/donations``; other prefixes are kept as they are."""
    if endpoint == "/api":
        return "/"
    if endpoint.startswith("/api/"):
        return endpoint[len("/api"):]
    return endpoint


class PolicyDecisionPoint:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        public_endpoints: Iterable[str] = (),
        enabled: bool = True,
        default_require_authentication: bool = True,
        endpoint_permissions: Optional[Mapping[str, Mapping[str, str]]] = None,
    ):
        self._session_factory = session_factory
        self._public_prefixes = tuple(p.lower() for p in public_endpoints if p)
        self.enabled = enabled
        self.default_require_authentication = default_require_authentication
        # prefix → {METHOD: label}
        self._endpoint_permissions = {
            prefix.lower(): {m.upper(): label for m, label in methods.items()}
            for prefix, methods in (endpoint_permissions or {}).items()
            if prefix
        }
        self._endpoint_prefixes = sorted(self._endpoint_permissions, key=len, reverse=True)

    def is_public(self, path: str) -> bool:
        return path.lower().startswith(self._public_prefixes) if self._public_prefixes else False

    # -- configured endpoint permissions -------------------------------------

    def match_endpoint(self, path: str) -> Optional[str]:
        """Longest configured prefix of *path* (case-insensitive), if any."""
        path = path.lower()
        for prefix in self._endpoint_prefixes:
            if path.startswith(prefix):
                return prefix
        return None

    def endpoint_requirement(self, path: str, method: str) -> Optional[PermissionRequirement]:
        """
        The requirement configured for *method* on the longest prefix matching
        *path*.  ``None`` when nothing matches, the matching prefix has no
        entry for *method*, or its label is not a permission kind.
        """
        prefix = self.match_endpoint(path)
        if prefix is None:
            return None
        label = self._endpoint_permissions[prefix].get(method.upper())
        if label is None:
            return None
        try:
            permission = Permission.from_label(label)
        except ValueError:
            logger.warning("Invalid permission configured for %s %s: %r", method, prefix, label)
            return None
        return PermissionRequirement(permission, page_url_for(prefix))

    def evaluate_request(self, path: str, method: str, identity: Optional[Identity]) -> AuthorizationDecision:
        """
        Application-wide check run for every request before routing.

        Anonymous callers need only pass ``default_require_authentication``;
        authenticated callers must also hold the permission configured for
        the path and method.
        """
        requirements: list[Requirement] = []
        if self.default_require_authentication:
            requirements.append(AUTHENTICATED)
        if identity is not None and identity.is_authenticated:
            requirement = self.endpoint_requirement(path, method)
            if requirement is not None:
                requirements.append(requirement)
        return self.evaluate(path, method, identity, requirements)

    def evaluate(
        self,
        path: str,
        method: str,
        identity: Optional[Identity],
        requirements: Iterable[Requirement],
    ) -> AuthorizationDecision:
        evaluation = _Evaluation(requirements)

        if not self.enabled:
            evaluation.succeed_all()
            return AuthorizationDecision(allowed=True, bypassed=True)

        if self.is_public(path):
            evaluation.succeed_all()
            return AuthorizationDecision(allowed=True, bypassed=True)

        authenticated = identity is not None and identity.is_authenticated

        if authenticated:
            for requirement in evaluation.pending_of(AuthenticatedRequirement):
                evaluation.succeed(requirement)

        permission_requirements = evaluation.pending_of(PermissionRequirement)
        if permission_requirements and authenticated:
            self._evaluate_permissions(evaluation, identity, permission_requirements)

        if not evaluation.pending:
            return AuthorizationDecision(allowed=True)

        reason = DENY_FORBIDDEN if authenticated else DENY_UNAUTHENTICATED
        logger.warning(
            "%s %s denied (%s): unmet %s",
            method,
            path,
            reason,
            ", ".join(str(r) for r in evaluation.pending),
        )
        return AuthorizationDecision(
            allowed=False,
            reason=reason,
            unsatisfied=tuple(evaluation.pending),
        )

    def _evaluate_permissions(
        self,
        evaluation: _Evaluation,
        identity: Identity,
        requirements: list[PermissionRequirement],
    ) -> None:
        user_id = resolve_user_id(identity)
        if user_id is None:
            logger.warning("User ID not found in claims of %r", identity.username)
            return

        # Own short-lived session: never share one with the request handler.
        try:
            db = self._session_factory()
        except Exception:
            logger.exception("Error opening a session to check permissions for user %s", user_id)
            return

        try:
            for requirement in requirements:
                try:
                    granted = has_grant(db, user_id, requirement.page_url, requirement.permission)
                except Exception:
                    logger.exception("Error checking %s for user %s", requirement, user_id)
                    try:
                        db.rollback()
                    except SQLAlchemyError:
                        logger.exception("Rollback failed after checking %s for user %s", requirement, user_id)
                    continue

                if granted:
                    evaluation.succeed(requirement)
                    logger.info("User %s granted %s", user_id, requirement)
                else:
                    logger.warning("User %s denied %s", user_id, requirement)
        finally:
            db.close()
