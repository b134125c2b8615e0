"""Column behaviour shared by the tables: UTC timestamps and JSON text."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.base import utcnow
from app.models.refresh_token import RefreshToken
from app.models.user import User


@pytest.mark.asyncio
async def test_timestamps_are_aware_utc(factory, test_session_factory):
    user = await factory.user("ada")
    assert user.created_at.tzinfo is not None

    async with test_session_factory() as fresh:
        loaded = await fresh.get(User, user.id)
        assert loaded.created_at.utcoffset() == timedelta(0)
        assert loaded.updated_at.utcoffset() == timedelta(0)
        assert abs(loaded.created_at - utcnow()) < timedelta(minutes=1)


@pytest.mark.asyncio
async def test_naive_datetimes_are_stored_as_utc(factory, session, test_session_factory):
    user = await factory.user("ada")
    naive = datetime(2030, 1, 1, 12, 0)
    token = RefreshToken(user_id=user.id, token="t-1", expires_at=naive)
    session.add(token)
    await session.commit()

    async with test_session_factory() as fresh:
        loaded = await fresh.get(RefreshToken, token.id)
        assert loaded.expires_at == naive.replace(tzinfo=timezone.utc)
        assert loaded.is_usable() is True
        assert loaded.is_usable(now=datetime(2031, 1, 1, tzinfo=timezone.utc)) is False
