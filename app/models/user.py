"""User model — global identity, may belong to many organizations."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, UTCDateTime, json_text_column, new_uuid


class UserRole(StrEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    ENGINEER = "ENGINEER"
    TECHNICIAN = "TECHNICIAN"
    USER = "USER"
    VIEWER = "VIEWER"


DEFAULT_PREFERENCES = (
    '{"theme": "light", "notifications": {"email": true, "push": true, '
    '"marketing": false}, "language": "en", "timezone": "UTC"}'
)


class User(TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(max_length=320, nullable=False, unique=True, index=True)
    username: str = Field(max_length=30, nullable=False, unique=True, index=True)
    first_name: str = Field(default="", max_length=50)
    last_name: str = Field(default="", max_length=50)
    password_hash: str = Field(nullable=False)
    role: UserRole = Field(default=UserRole.USER)

    email_verified: bool = Field(default=False)
    email_verification_token: str | None = Field(default=None, max_length=64, index=True)
    email_verification_expires_at: datetime | None = Field(default=None, sa_type=UTCDateTime)

    # UI preferences stored as JSON text
    preferences: str = Field(
        default=DEFAULT_PREFERENCES,
        sa_column=json_text_column(),
    )

    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    last_login_ip: str | None = Field(default=None, max_length=64)


# ── Pydantic schemas ─────────────────────────────────────────

class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    username: str
    first_name: str
    last_name: str
    role: UserRole
    email_verified: bool
    is_active: bool
    last_login_at: datetime | None = None


class UserRoleUpdate(SQLModel):
    role: UserRole
