"""Permission resolution from global role + organization memberships."""

from types import SimpleNamespace

from app.core.permissions import (
    GLOBAL_ROLE_PERMISSIONS,
    ORGANIZATION_ROLE_PERMISSIONS,
    has_permission,
    has_role,
    permissions_for,
)
from app.models.organization import OrganizationRole
from app.models.user import UserRole


def _membership(role: str, active: bool = True) -> dict:
    return {
        "organizationId": "org-1",
        "organizationSlug": "acme",
        "organizationName": "Acme",
        "role": role,
        "isActive": active,
    }


def test_every_global_role_has_a_table_entry():
    assert set(GLOBAL_ROLE_PERMISSIONS) == {r.value for r in UserRole}
    assert set(ORGANIZATION_ROLE_PERMISSIONS) == {r.value for r in OrganizationRole}


def test_super_admin_is_wildcard():
    assert permissions_for("SUPER_ADMIN") == {"*"}


def test_engineer_with_owner_membership():
    perms = permissions_for("ENGINEER", [_membership("OWNER")])
    assert perms == {
        "projects:read",
        "technologies:read", "technologies:write",
        "calculations:read", "calculations:write",
        "organization:admin", "organization:billing", "organization:members",
    }


def test_viewer_with_inactive_member_membership():
    assert permissions_for("VIEWER", [_membership("MEMBER", active=False)]) == {"projects:read"}


def test_memberships_union():
    perms = permissions_for("USER", [_membership("MANAGER"), _membership("VIEWER")])
    assert {"organization:projects", "organization:reports", "organization:view-limited"} <= perms


def test_adding_an_active_membership_never_removes_permissions():
    base = permissions_for("TECHNICIAN")
    for role in ORGANIZATION_ROLE_PERMISSIONS:
        assert base <= permissions_for("TECHNICIAN", [_membership(role)])


def test_unknown_roles_contribute_nothing():
    assert permissions_for("JANITOR", [_membership("INTERN")]) == set()


def test_accepts_snake_case_and_objects():
    snake = {"role": "ADMIN", "is_active": True}
    obj = SimpleNamespace(role=OrganizationRole.MEMBER, is_active=True)
    perms = permissions_for(UserRole.VIEWER, [snake, obj])
    assert {"organization:manage", "organization:members", "organization:view"} <= perms


def test_has_permission_any_of():
    granted = {"projects:read", "organization:view"}
    assert has_permission(granted, ["projects:write", "projects:read"])
    assert not has_permission(granted, ["projects:write"])


def test_has_permission_wildcard():
    assert has_permission({"*"}, ["anything:at-all"])
    assert has_permission({"*"}, [])


def test_has_permission_empty_requirement_is_denied():
    assert not has_permission({"projects:read"}, [])


def test_has_role():
    assert has_role(UserRole.ADMIN, ["SUPER_ADMIN", "ADMIN"])
    assert has_role("ADMIN", [UserRole.ADMIN])
    assert not has_role("USER", ["ADMIN"])
