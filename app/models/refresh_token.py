"""Refresh token model — persisted so logout can revoke it."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from app.models.base import UTCDateTime, new_uuid, utcnow


class RefreshToken(SQLModel, table=True):
    __tablename__ = "refresh_tokens"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    # The signed JWT itself; looked up on refresh / logout
    token: str = Field(nullable=False, unique=True, index=True)

    expires_at: datetime = Field(sa_type=UTCDateTime, nullable=False)
    user_agent: str = Field(default="Unknown", max_length=512)
    ip_address: str = Field(default="Unknown", max_length=64)
    revoked_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)

    def is_usable(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.revoked_at is None and self.expires_at > now
