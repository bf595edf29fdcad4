# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Authorization requirements and the policy registry.

A *policy* is a named requirement.  Routes guarded with
``require_permission(Permission.READ, "/users")`` get the policy
``Read__users``; the name is derived by :func:`policy_name` and the pair is
written into the application's :class:`PolicyRegistry` while the routes are
assembled.  After startup the registry is frozen and only read.
"""

import threading
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from permissions.enums import Permission

# Named policy guarding the user / role / permission administration endpoints
USER_ROLE_CONFIGURATION = "UserRoleConfiguration"
USER_ROLE_CONFIGURATION_PAGE = "/user-role-configuration"


@dataclass(frozen=True)
class AuthenticatedRequirement:
    """Satisfied by any authenticated identity."""


@dataclass(frozen=True)
class PermissionRequirement:
    """Satisfied when the caller holds *permission* on *page_url*."""

    permission: Permission
    page_url: str

    def __str__(self) -> str:
        return f"{self.permission.label} {self.page_url}"


@dataclass(frozen=True)
class UnregisteredPolicy:
    """Placeholder for a policy name missing from the registry; never satisfied."""

    name: str


Requirement = Union[AuthenticatedRequirement, PermissionRequirement, UnregisteredPolicy]

AUTHENTICATED = AuthenticatedRequirement()


def policy_name(permission: Permission, page_url: str) -> str:
    """
    Stable policy name for a (permission, page URL) pair.

    ``"{Permission}_{page_url}"`` with every ``/`` and every space replaced by
    ``_``.  ``(Permission.READ, "/users")`` → ``"Read__users"``.
    """
    raw = f"{permission.label}_{page_url}"
    return raw.replace("/", "_").replace(" ", "_")


class PolicyConflictError(ValueError):
    """A policy name is already bound to a different requirement."""


class PolicyRegistry:
    """
    Policy name → requirement table, one instance per application.

    Written during route registration (append-only, idempotent), then frozen.
    """

    def __init__(self) -> None:
        self._policies: dict[str, PermissionRequirement] = {}
        self._lock = threading.Lock()
        self._frozen = False

    # -- writes (startup only) ---------------------------------------------

    def add(self, name: str, requirement: PermissionRequirement) -> str:
        """
        Bind *name* to *requirement*.

        Re-adding the same pair is a no-op.  Binding an existing name to a
        different requirement raises :class:`PolicyConflictError`; the first
        binding is kept.
        """
        with self._lock:
            if self._frozen:
                raise RuntimeError("Policy registry is frozen; register policies at startup")
            existing = self._policies.get(name)
            if existing is None:
                self._policies[name] = requirement
            elif existing != requirement:
                raise PolicyConflictError(
                    f"Policy {name!r} already registered for {existing}, not {requirement}"
                )
        return name

    def register(self, permission: Permission, page_url: str) -> str:
        """Register the policy for (*permission*, *page_url*) and return its name."""
        return self.add(policy_name(permission, page_url), PermissionRequirement(permission, page_url))

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    # -- reads -------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[PermissionRequirement]:
        return self._policies.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._policies))
