"""Optional Redis-backed session state: token denylist + failed-login counters.

Every method here is best-effort. A Redis outage degrades the feature
(no revocation, no lockout) and is logged; it never raises to the caller.
Callers that have no store at all hold ``None`` instead of a SessionStore.
"""

import logging
from dataclasses import dataclass
from typing import Any

from redis.asyncio import from_url

from app.core.config import Settings

logger = logging.getLogger(__name__)

BLACKLIST_PREFIX = "blacklist:"
FAILED_ATTEMPTS_PREFIX = "failed_attempts:"
BLACKLIST_MARKER = "blacklisted"


@dataclass(frozen=True)
class LockStatus:
    locked: bool
    remaining_attempts: int


class SessionStore:
    """Thin wrapper over an async Redis client."""

    def __init__(
        self,
        client: Any,
        *,
        max_login_attempts: int = 5,
        lock_seconds: int = 1800,
    ) -> None:
        self.client = client
        self.max_login_attempts = max_login_attempts
        self.lock_seconds = lock_seconds

    # ── Token denylist ───────────────────────────────────────

    async def blacklist_token(self, token: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(
                f"{BLACKLIST_PREFIX}{token}", BLACKLIST_MARKER, ex=max(int(ttl_seconds), 1)
            )
        except Exception:
            logger.exception("Failed to blacklist token")

    async def is_blacklisted(self, token: str) -> bool:
        try:
            value = await self.client.get(f"{BLACKLIST_PREFIX}{token}")
        except Exception:
            logger.exception("Failed to check token blacklist")
            return False
        return value == BLACKLIST_MARKER

    # ── Login lockout ────────────────────────────────────────

    @staticmethod
    def _attempts_key(email: str) -> str:
        return f"{FAILED_ATTEMPTS_PREFIX}{email.lower()}"

    async def check_failed_attempts(self, email: str) -> LockStatus:
        key = self._attempts_key(email)
        try:
            raw = await self.client.get(key)
            attempts = int(raw or 0)
            if attempts >= self.max_login_attempts:
                ttl = await self.client.ttl(key)
                return LockStatus(locked=ttl > 0, remaining_attempts=0)
        except Exception:
            logger.exception("Failed to read failed-login counter")
            return LockStatus(locked=False, remaining_attempts=self.max_login_attempts)
        return LockStatus(locked=False, remaining_attempts=self.max_login_attempts - attempts)

    async def record_failed_attempt(self, email: str) -> None:
        key = self._attempts_key(email)
        try:
            attempts = await self.client.incr(key)
            if attempts == 1:
                # Window starts at the first failure
                await self.client.expire(key, self.lock_seconds)
        except Exception:
            logger.exception("Failed to record failed login attempt")

    async def clear_failed_attempts(self, email: str) -> None:
        try:
            await self.client.delete(self._attempts_key(email))
        except Exception:
            logger.exception("Failed to clear failed-login counter")

    # ── Lifecycle ────────────────────────────────────────────

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except Exception:
            logger.warning("Error while closing session store connection")


async def connect_session_store(settings: Settings) -> SessionStore | None:
    """Connect to Redis if enabled; return None when disabled or unreachable."""
    if not settings.redis_enabled:
        logger.info("Session store disabled; running without token revocation or lockout")
        return None

    client = from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except Exception as exc:
        logger.warning("Session store unreachable, running without it: %s", exc)
        await client.aclose()
        return None

    logger.info("Session store connected")
    return SessionStore(
        client,
        max_login_attempts=settings.max_login_attempts,
        lock_seconds=settings.account_lock_seconds,
    )
