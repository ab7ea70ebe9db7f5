"""
Authorization Decisions
=====================================
Pure evaluation of an authorization requirement against the typed claims of
an already-validated access token. No I/O and no state.

Requirements:
- RoleRequirement: caller holds at least one of the allowed roles
- OwnershipRequirement: caller owns the resource, or is an Admin
- PermissionRequirement: caller carries the named permission claim

Permissions are derived from roles when an access token is issued
(see ROLE_PERMISSIONS) and travel inside the token afterwards.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Union

from app.core.roles import Role


class Permission:
    manage_users = "manage_users"
    manage_roles = "manage_roles"


ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    Role.admin.value: frozenset({Permission.manage_users, Permission.manage_roles}),
    Role.user.value: frozenset(),
}


def permissions_for_roles(roles: Iterable[str]) -> FrozenSet[str]:
    granted = set()
    for role in roles:
        granted.update(ROLE_PERMISSIONS.get(getattr(role, "value", role), frozenset()))
    return frozenset(granted)


@dataclass(frozen=True)
class RoleRequirement:
    allowed_roles: FrozenSet[str]

    @classmethod
    def any_of(cls, *roles) -> "RoleRequirement":
        return cls(frozenset(getattr(role, "value", role) for role in roles))


@dataclass(frozen=True)
class OwnershipRequirement:
    owner_id: str


@dataclass(frozen=True)
class PermissionRequirement:
    permission: str


Requirement = Union[RoleRequirement, OwnershipRequirement, PermissionRequirement]


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def evaluate(claims, requirement: Requirement) -> Decision:
    """Decide a requirement against access-token claims.

    Args:
        claims: AccessClaims of the caller (subject, roles, permissions)
        requirement: one of the Requirement variants

    Returns:
        Decision with allowed flag and a short reason for server-side logs
    """
    if isinstance(requirement, RoleRequirement):
        if claims.roles & requirement.allowed_roles:
            return Decision(True, "role granted")
        return Decision(False, "missing required role")

    if isinstance(requirement, OwnershipRequirement):
        if claims.subject == requirement.owner_id:
            return Decision(True, "resource owner")
        if Role.admin.value in claims.roles:
            return Decision(True, "admin override")
        return Decision(False, "not the resource owner")

    if isinstance(requirement, PermissionRequirement):
        if requirement.permission in claims.permissions:
            return Decision(True, "permission granted")
        return Decision(False, f"missing permission '{requirement.permission}'")

    raise TypeError(f"Unsupported requirement type: {type(requirement).__name__}")
