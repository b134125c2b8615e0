"""Organization + membership models — the multi-tenant boundary."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, UTCDateTime, json_text_column, new_uuid, utcnow


class OrganizationRole(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class Organization(TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    slug: str = Field(max_length=100, unique=True, nullable=False, index=True)
    description: str = Field(default="", max_length=1000)
    settings: str = Field(default="{}", sa_column=json_text_column())
    is_active: bool = Field(default=True)


class OrganizationMember(SQLModel, table=True):
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_member_user_org"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: OrganizationRole = Field(default=OrganizationRole.MEMBER)
    is_active: bool = Field(default=True)
    joined_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class OrganizationRead(SQLModel):
    id: uuid.UUID
    name: str
    slug: str
    description: str
    settings: dict
    is_active: bool
    created_at: datetime


class MemberRead(SQLModel):
    user_id: uuid.UUID
    username: str
    email: str
    role: OrganizationRole
    is_active: bool
    joined_at: datetime
