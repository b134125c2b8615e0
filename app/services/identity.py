"""Resolve a user id to a full identity: user, memberships, permissions."""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.permissions import permissions_for
from app.models.organization import Organization, OrganizationMember
from app.models.user import User


@dataclass
class AuthenticatedUser:
    """Identity attached to a request (or socket) after authentication."""

    id: uuid.UUID
    email: str
    username: str
    first_name: str
    last_name: str
    role: str
    email_verified: bool
    organization_memberships: list[dict[str, Any]] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)
    preferences: dict[str, Any] = field(default_factory=dict)

    def active_membership(
        self,
        *,
        slug: str | None = None,
        organization_id: str | uuid.UUID | None = None,
    ) -> dict[str, Any] | None:
        for membership in self.organization_memberships:
            if not membership["isActive"]:
                continue
            if slug is not None and membership["organizationSlug"] == slug:
                return membership
            if organization_id is not None and membership["organizationId"] == str(organization_id):
                return membership
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "email": self.email,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "email_verified": self.email_verified,
            # Same camelCase snapshot shape as the token claims
            "organization_memberships": self.organization_memberships,
            "permissions": sorted(self.permissions),
            "preferences": self.preferences,
        }


async def load_memberships(session: AsyncSession, user_id: uuid.UUID) -> list[dict[str, Any]]:
    stmt = (
        select(OrganizationMember, Organization)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(OrganizationMember.joined_at)
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "organizationId": str(org.id),
            "organizationSlug": org.slug,
            "organizationName": org.name,
            "role": str(member.role),
            "isActive": bool(member.is_active and org.is_active),
        }
        for member, org in rows
    ]


async def load_identity(session: AsyncSession, user_id: uuid.UUID | str) -> AuthenticatedUser | None:
    """Return the user with memberships and permissions, or None.

    Deactivated users resolve to None.
    """
    try:
        uid = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        return None

    user = await session.get(User, uid)
    if user is None or not user.is_active:
        return None

    memberships = await load_memberships(session, uid)
    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        role=str(user.role),
        email_verified=user.email_verified,
        organization_memberships=memberships,
        permissions=permissions_for(user.role, memberships),
        preferences=json.loads(user.preferences or "{}"),
    )
