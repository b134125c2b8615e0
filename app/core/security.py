"""Security utilities: password hashing, secure tokens, and JWT handling."""

import secrets
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings, get_settings
from app.core.session_store import SessionStore

settings = get_settings()

ACCESS = "access"
REFRESH = "refresh"

# ── Password hashing (bcrypt) ────────────────────────────────

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # Malformed or unknown hash format
        return False


MIN_PASSWORD_LENGTH = 8


@dataclass
class PasswordCheck:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_password_strength(password: str, *, require_complexity: bool | None = None) -> PasswordCheck:
    """Check a candidate password.

    Length is always enforced. The composition rules only apply when
    ``PASSWORD_REQUIRE_COMPLEXITY`` is on (off by default).
    """
    if require_complexity is None:
        require_complexity = settings.password_require_complexity

    errors: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if require_complexity:
        if not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")
        if not any(c.islower() for c in password):
            errors.append("Password must contain at least one lowercase letter")
        if not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one number")
        if all(c.isalnum() for c in password):
            errors.append("Password must contain at least one special character")

    return PasswordCheck(valid=not errors, errors=errors)


# ── One-off secrets (email verification etc.) ───────────────

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_secure_token(length: int = 32) -> str:
    """Random alphanumeric string from the OS CSPRNG."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


# ── JWT ───────────────────────────────────────────────────────

def token_claims(user: Any) -> dict[str, Any]:
    """Denormalized identity snapshot carried in both token classes."""
    return {
        "id": str(user.id),
        "email": user.email,
        "username": user.username,
        "role": str(user.role),
        "organizationMemberships": list(getattr(user, "organization_memberships", []) or []),
    }


class TokenManager:
    """Issues and verifies access / refresh JWTs, plus denylist lookups.

    The session store is optional; without it revocation is a no-op and
    every token reads as not blacklisted.
    """

    def __init__(self, settings: Settings, store: SessionStore | None = None) -> None:
        self.settings = settings
        self.store = store

    def _encode(self, user: Any, token_type: str, secret: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **token_claims(user),
            "tokenType": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + lifetime,
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
        }
        return jwt.encode(payload, secret, algorithm=self.settings.jwt_algorithm)

    def _decode(self, token: str, secret: str, token_type: str) -> dict[str, Any] | None:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
            )
        except JWTError:
            return None
        if payload.get("tokenType") != token_type or "id" not in payload:
            return None
        return payload

    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.jwt_access_expire_minutes)

    def refresh_lifetime(self, remember: bool = False) -> timedelta:
        days = self.settings.jwt_remember_expire_days if remember else self.settings.jwt_refresh_expire_days
        return timedelta(days=days)

    def issue_access_token(self, user: Any) -> str:
        return self._encode(user, ACCESS, self.settings.access_secret, self.access_lifetime())

    def issue_refresh_token(self, user: Any, *, remember: bool = False) -> str:
        return self._encode(user, REFRESH, self.settings.refresh_secret, self.refresh_lifetime(remember))

    def verify_access_token(self, token: str) -> dict[str, Any] | None:
        """Return the payload, or None for any verification failure."""
        return self._decode(token, self.settings.access_secret, ACCESS)

    def verify_refresh_token(self, token: str) -> dict[str, Any] | None:
        return self._decode(token, self.settings.refresh_secret, REFRESH)

    # ── Denylist (best-effort) ───────────────────────────────

    @staticmethod
    def remaining_seconds(payload: dict[str, Any]) -> int:
        exp = payload.get("exp")
        if exp is None:
            return 0
        return max(int(exp - datetime.now(timezone.utc).timestamp()), 0)

    async def blacklist_token(self, token: str, ttl_seconds: int | None = None) -> None:
        if self.store is None:
            return
        if ttl_seconds is None:
            ttl_seconds = int(self.access_lifetime().total_seconds())
        await self.store.blacklist_token(token, ttl_seconds)

    async def is_token_blacklisted(self, token: str) -> bool:
        if self.store is None:
            return False
        return await self.store.is_blacklisted(token)
