"""Role → capability resolution.

Capabilities are opaque ``resource:action`` strings. A user's set is the
union of the base set for their global role and one set per *active*
organization membership. ``*`` grants everything.
"""

from collections.abc import Iterable, Mapping
from typing import Any

WILDCARD = "*"

GLOBAL_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "SUPER_ADMIN": frozenset({WILDCARD}),
    "ADMIN": frozenset({
        "users:read", "users:write",
        "projects:read", "projects:write",
        "organizations:read", "organizations:write",
    }),
    "PROJECT_MANAGER": frozenset({"projects:read", "projects:write", "users:read"}),
    "ENGINEER": frozenset({
        "projects:read",
        "technologies:read", "technologies:write",
        "calculations:read", "calculations:write",
    }),
    "TECHNICIAN": frozenset({"projects:read", "maintenance:read", "maintenance:write"}),
    "USER": frozenset({"projects:read", "profile:read", "profile:write"}),
    "VIEWER": frozenset({"projects:read"}),
}

ORGANIZATION_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "OWNER": frozenset({"organization:admin", "organization:billing", "organization:members"}),
    "ADMIN": frozenset({"organization:manage", "organization:members"}),
    "MANAGER": frozenset({"organization:projects", "organization:reports"}),
    "MEMBER": frozenset({"organization:view"}),
    "VIEWER": frozenset({"organization:view-limited"}),
}


def _field(membership: Any, name: str, camel: str) -> Any:
    if isinstance(membership, Mapping):
        return membership.get(name, membership.get(camel))
    return getattr(membership, name)


def permissions_for(global_role: str, memberships: Iterable[Any] = ()) -> set[str]:
    """Derive the permission set for a role plus organization memberships.

    Memberships may be dicts (token payload shape, camelCase keys accepted)
    or objects exposing ``role`` and ``is_active``. Unknown roles contribute
    nothing.
    """
    permissions: set[str] = set(GLOBAL_ROLE_PERMISSIONS.get(str(global_role), ()))
    for membership in memberships:
        if not _field(membership, "is_active", "isActive"):
            continue
        role = str(_field(membership, "role", "role"))
        permissions |= ORGANIZATION_ROLE_PERMISSIONS.get(role, frozenset())
    return permissions


def has_permission(granted: Iterable[str], required: Iterable[str]) -> bool:
    """OR semantics: any one required permission is enough."""
    granted = set(granted)
    if WILDCARD in granted:
        return True
    return not granted.isdisjoint(required)


def has_role(user_role: str, allowed_roles: Iterable[str]) -> bool:
    return str(user_role) in {str(r) for r in allowed_roles}
