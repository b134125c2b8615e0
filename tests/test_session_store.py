"""Redis-backed denylist and login lockout, plus graceful degradation."""

import pytest

from app.core.config import Settings
from app.core.session_store import SessionStore, connect_session_store


class BrokenRedis:
    """Every call fails, like a Redis that went away mid-flight."""

    def __getattr__(self, name):
        async def _fail(*args, **kwargs):
            raise ConnectionError("redis is down")

        return _fail


@pytest.fixture
def store(fake_redis) -> SessionStore:
    return SessionStore(fake_redis, max_login_attempts=3, lock_seconds=600)


async def test_counts_down_then_locks(store: SessionStore):
    status = await store.check_failed_attempts("ada@example.com")
    assert status.locked is False
    assert status.remaining_attempts == 3

    await store.record_failed_attempt("ada@example.com")
    await store.record_failed_attempt("ada@example.com")
    status = await store.check_failed_attempts("ada@example.com")
    assert status.locked is False
    assert status.remaining_attempts == 1

    await store.record_failed_attempt("ada@example.com")
    status = await store.check_failed_attempts("ada@example.com")
    assert status.locked is True
    assert status.remaining_attempts == 0


async def test_lock_expires_with_the_window(store: SessionStore, fake_redis):
    for _ in range(3):
        await store.record_failed_attempt("ada@example.com")
    assert (await store.check_failed_attempts("ada@example.com")).locked

    fake_redis.advance(601)
    status = await store.check_failed_attempts("ada@example.com")
    assert status.locked is False
    assert status.remaining_attempts == 3


async def test_window_is_not_extended_by_later_failures(store: SessionStore, fake_redis):
    await store.record_failed_attempt("ada@example.com")
    fake_redis.advance(500)
    await store.record_failed_attempt("ada@example.com")
    fake_redis.advance(101)
    assert (await store.check_failed_attempts("ada@example.com")).remaining_attempts == 3


async def test_email_key_is_case_insensitive(store: SessionStore):
    await store.record_failed_attempt("Ada@Example.com")
    assert (await store.check_failed_attempts("ada@example.com")).remaining_attempts == 2


async def test_clear_resets_counter(store: SessionStore):
    await store.record_failed_attempt("ada@example.com")
    await store.clear_failed_attempts("ada@example.com")
    assert (await store.check_failed_attempts("ada@example.com")).remaining_attempts == 3


async def test_blacklist_roundtrip(store: SessionStore, fake_redis):
    await store.blacklist_token("tok", 30)
    assert await store.is_blacklisted("tok") is True
    assert await store.is_blacklisted("other") is False
    assert await fake_redis.ttl("blacklist:tok") == 30


async def test_blacklist_ttl_floor(store: SessionStore, fake_redis):
    await store.blacklist_token("tok", 0)
    assert await fake_redis.ttl("blacklist:tok") == 1


async def test_outage_degrades_without_raising():
    store = SessionStore(BrokenRedis(), max_login_attempts=5)

    await store.blacklist_token("tok", 30)
    assert await store.is_blacklisted("tok") is False

    await store.record_failed_attempt("ada@example.com")
    status = await store.check_failed_attempts("ada@example.com")
    assert status.locked is False
    assert status.remaining_attempts == 5

    await store.clear_failed_attempts("ada@example.com")
    assert await store.ping() is False
    await store.close()


async def test_disabled_store_is_none():
    assert await connect_session_store(Settings(redis_enabled=False)) is None
