"""Organizations — creation, joining, and org-scoped reads."""

import json

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import select

from app.api.deps import CurrentUser, OrgContext, Session, require_permissions
from app.core.errors import conflict, not_found
from app.models.organization import (
    MemberRead,
    Organization,
    OrganizationMember,
    OrganizationRead,
    OrganizationRole,
)
from app.models.user import User

router = APIRouter(prefix="/organizations", tags=["organizations"])


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=2, max_length=100, pattern=r"^[a-z0-9\-]+$")
    description: str = Field(default="", max_length=1000)


class OrganizationContextResponse(BaseModel):
    organization: OrganizationRead
    user_role: OrganizationRole


def _to_read(org: Organization) -> OrganizationRead:
    return OrganizationRead(
        id=org.id,
        name=org.name,
        slug=org.slug,
        description=org.description,
        settings=json.loads(org.settings or "{}"),
        is_active=org.is_active,
        created_at=org.created_at,
    )


@router.post("", response_model=OrganizationRead, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreateRequest,
    user: CurrentUser,
    session: Session,
) -> OrganizationRead:
    """Create an organization; the caller becomes its owner."""
    existing = await session.execute(select(Organization).where(Organization.slug == body.slug))
    if existing.scalar_one_or_none():
        raise conflict("Organization slug taken", f"Slug '{body.slug}' is already taken")

    org = Organization(name=body.name, slug=body.slug, description=body.description)
    session.add(org)
    await session.flush()
    session.add(OrganizationMember(
        user_id=user.id,
        organization_id=org.id,
        role=OrganizationRole.OWNER,
    ))
    await session.commit()
    await session.refresh(org)
    return _to_read(org)


@router.post("/{org_slug}/join", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
async def join_organization(org_slug: str, user: CurrentUser, session: Session) -> MemberRead:
    org = (await session.execute(
        select(Organization).where(Organization.slug == org_slug, Organization.is_active.is_(True))  # type: ignore[union-attr]
    )).scalar_one_or_none()
    if org is None:
        raise not_found("Organization")

    # One membership row per (user, organization)
    existing = (await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.user_id == user.id,
            OrganizationMember.organization_id == org.id,
        )
    )).scalar_one_or_none()
    if existing is not None:
        raise conflict("Already a member", "You already have a membership in this organization")

    member = OrganizationMember(user_id=user.id, organization_id=org.id, role=OrganizationRole.MEMBER)
    session.add(member)
    await session.commit()
    await session.refresh(member)
    return MemberRead(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=member.role,
        is_active=member.is_active,
        joined_at=member.joined_at,
    )


@router.get("/{org_slug}", response_model=OrganizationContextResponse)
async def get_organization(ctx: OrgContext, session: Session) -> OrganizationContextResponse:
    org = await session.get(Organization, ctx.organization_id)
    if org is None:
        raise not_found("Organization")
    return OrganizationContextResponse(
        organization=_to_read(org),
        user_role=OrganizationRole(ctx.user_role),
    )


@router.get(
    "/{org_slug}/members",
    response_model=list[MemberRead],
    dependencies=[Depends(require_permissions("organization:members", "organization:view"))],
)
async def list_members(ctx: OrgContext, session: Session) -> list[MemberRead]:
    stmt = (
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == ctx.organization_id)
        .order_by(OrganizationMember.joined_at)
    )
    rows = (await session.execute(stmt)).all()
    return [
        MemberRead(
            user_id=user.id,
            username=user.username,
            email=user.email,
            role=member.role,
            is_active=member.is_active,
            joined_at=member.joined_at,
        )
        for member, user in rows
    ]
