"""Import all models so SQLModel.metadata picks them up."""

from app.models.organization import (
    MemberRead,
    Organization,
    OrganizationMember,
    OrganizationRead,
    OrganizationRole,
)
from app.models.project import (
    EnergySource,
    Project,
    ProjectCreate,
    ProjectRead,
    ProjectStatus,
    ProjectType,
    ProjectUpdate,
)
from app.models.refresh_token import RefreshToken
from app.models.user import User, UserRead, UserRole, UserRoleUpdate

__all__ = [
    "EnergySource",
    "MemberRead",
    "Organization",
    "OrganizationMember",
    "OrganizationRead",
    "OrganizationRole",
    "Project",
    "ProjectCreate",
    "ProjectRead",
    "ProjectStatus",
    "ProjectType",
    "ProjectUpdate",
    "RefreshToken",
    "User",
    "UserRead",
    "UserRole",
    "UserRoleUpdate",
]
