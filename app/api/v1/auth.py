"""Authentication endpoints — register, verify, login, refresh, logout, profile."""

import logging
import uuid
from datetime import timedelta

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import or_
from sqlmodel import select

from app.api.deps import CurrentUser, ServicesDep, Session
from app.core.errors import ApiError, AuthenticationFailed, conflict
from app.core.security import generate_secure_token, hash_password, validate_password_strength, verify_password
from app.core.session_store import LockStatus
from app.models.base import utcnow
from app.models.organization import Organization, OrganizationMember, OrganizationRole
from app.models.refresh_token import RefreshToken
from app.models.user import User, UserRead, UserRole
from app.services.identity import load_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    # Length is checked by validate_password_strength so the caller gets its error list
    password: str = Field(min_length=1, max_length=128)
    username: str = Field(min_length=3, max_length=30)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    organization_name: str | None = Field(default=None, max_length=255)
    organization_slug: str | None = Field(default=None, max_length=100, pattern=r"^[a-z0-9\-]+$")


class RegisterResponse(BaseModel):
    message: str
    user: UserRead
    organization_id: uuid.UUID | None = None
    next_step: str


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=64)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    remember: bool = False


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(BaseModel):
    message: str = "Login successful"
    tokens: TokenPair
    user: dict


class RefreshRequest(BaseModel):
    refresh_token: str


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


# ── Routes ───────────────────────────────────────────────────

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, services: ServicesDep, session: Session) -> RegisterResponse:
    """Create an unverified account, optionally founding an organization."""
    check = validate_password_strength(
        body.password, require_complexity=services.settings.password_require_complexity
    )
    if not check.valid:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Weak password",
            "Password does not meet security requirements",
            details=check.errors,
        )

    email = body.email.lower()
    existing = (await session.execute(
        select(User).where(or_(User.email == email, User.username == body.username))
    )).scalars().first()
    if existing is not None:
        message = (
            "An account with this email already exists"
            if existing.email == email
            else "Username is already taken"
        )
        raise conflict("User already exists", message)

    organization: Organization | None = None
    if body.organization_name and body.organization_slug:
        taken = (await session.execute(
            select(Organization).where(Organization.slug == body.organization_slug)
        )).scalar_one_or_none()
        if taken is not None:
            raise conflict("Organization slug taken", "This organization slug is already in use")
        organization = Organization(
            name=body.organization_name,
            slug=body.organization_slug,
            description=f"{body.organization_name} - Created during user registration",
        )
        session.add(organization)
        await session.flush()

    user = User(
        email=email,
        username=body.username,
        first_name=body.first_name,
        last_name=body.last_name,
        password_hash=hash_password(body.password),
        role=UserRole.USER,
        email_verified=False,
        email_verification_token=generate_secure_token(),
        email_verification_expires_at=utcnow()
        + timedelta(hours=services.settings.email_verification_hours),
    )
    session.add(user)
    await session.flush()

    if organization is not None:
        # The founder owns the organization
        session.add(OrganizationMember(
            user_id=user.id,
            organization_id=organization.id,
            role=OrganizationRole.OWNER,
        ))

    await session.commit()
    await session.refresh(user)
    logger.info("Registered user %s; email verification pending", user.id)

    return RegisterResponse(
        message="Account created successfully",
        user=UserRead.model_validate(user),
        organization_id=organization.id if organization else None,
        next_step="Please check your email and verify your account before signing in",
    )


@router.post("/verify-email")
async def verify_email(body: VerifyEmailRequest, session: Session) -> dict:
    user = (await session.execute(
        select(User).where(User.email_verification_token == body.token)
    )).scalar_one_or_none()

    expired = (
        user is not None
        and user.email_verification_expires_at is not None
        and user.email_verification_expires_at < utcnow()
    )
    if user is None or expired:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid verification token",
            "The verification link is invalid or has expired",
            code="INVALID_VERIFICATION_TOKEN",
        )

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires_at = None
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    services: ServicesDep,
    session: Session,
) -> LoginResponse:
    """Authenticate with email + password, receive an access/refresh pair."""
    store = services.session_store
    email = body.email.lower()
    settings = services.settings

    if store is not None:
        lock = await store.check_failed_attempts(email)
    else:
        lock = LockStatus(locked=False, remaining_attempts=settings.max_login_attempts)

    if lock.locked:
        raise ApiError(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Account locked",
            "Account is temporarily locked due to multiple failed login attempts. "
            "Please try again later.",
            code="ACCOUNT_LOCKED",
        )

    user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None or not verify_password(body.password, user.password_hash):
        if store is not None:
            await store.record_failed_attempt(email)
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid credentials",
            "Email or password is incorrect",
            code="INVALID_CREDENTIALS",
            remainingAttempts=max(lock.remaining_attempts - 1, 0),
        )

    if store is not None:
        await store.clear_failed_attempts(email)

    if not user.is_active:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Account disabled", "Account is disabled")

    if not user.email_verified:
        raise AuthenticationFailed(
            "EMAIL_NOT_VERIFIED",
            "Please verify your email address before signing in",
            error="Email not verified",
        )

    identity = await load_identity(session, user.id)
    if identity is None:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Login failed",
            "Unable to retrieve user information",
        )

    tokens = services.tokens
    access_token = tokens.issue_access_token(identity)
    refresh_token = tokens.issue_refresh_token(identity, remember=body.remember)

    client_ip = request.client.host if request.client else "Unknown"
    session.add(RefreshToken(
        user_id=user.id,
        token=refresh_token,
        expires_at=utcnow() + tokens.refresh_lifetime(body.remember),
        user_agent=request.headers.get("user-agent", "Unknown")[:512],
        ip_address=client_ip,
    ))
    user.last_login_at = utcnow()
    user.last_login_ip = client_ip
    session.add(user)
    await session.commit()

    return LoginResponse(
        tokens=TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(tokens.access_lifetime().total_seconds()),
        ),
        user=identity.to_dict(),
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(body: RefreshRequest, services: ServicesDep, session: Session) -> AccessTokenResponse:
    """Exchange a persisted, unrevoked refresh token for a new access token."""
    payload = services.tokens.verify_refresh_token(body.refresh_token)
    if payload is None:
        raise AuthenticationFailed("INVALID_TOKEN", "Invalid or expired refresh token")

    # Revocation lives in the database, independent of the signature
    stored = (await session.execute(
        select(RefreshToken).where(RefreshToken.token == body.refresh_token)
    )).scalar_one_or_none()
    if stored is None or not stored.is_usable():
        raise AuthenticationFailed("TOKEN_REVOKED", "Refresh token has been revoked")

    identity = await load_identity(session, payload["id"])
    if identity is None:
        raise AuthenticationFailed("USER_NOT_FOUND", "User not found")
    if not identity.email_verified:
        raise AuthenticationFailed(
            "EMAIL_NOT_VERIFIED",
            "Please verify your email address before accessing the platform",
            error="Email verification required",
        )

    tokens = services.tokens
    return AccessTokenResponse(
        access_token=tokens.issue_access_token(identity),
        expires_in=int(tokens.access_lifetime().total_seconds()),
    )


@router.post("/logout")
async def logout(
    request: Request,
    user: CurrentUser,
    services: ServicesDep,
    session: Session,
    body: LogoutRequest | None = None,
) -> dict:
    """Denylist the access token and revoke the given refresh token."""
    token: str = request.state.token
    payload = services.tokens.verify_access_token(token) or {}
    await services.tokens.blacklist_token(token, services.tokens.remaining_seconds(payload))

    if body is not None and body.refresh_token:
        stored = (await session.execute(
            select(RefreshToken).where(
                RefreshToken.token == body.refresh_token,
                RefreshToken.user_id == user.id,
            )
        )).scalar_one_or_none()
        if stored is not None and stored.revoked_at is None:
            stored.revoked_at = utcnow()
            session.add(stored)
            await session.commit()

    return {"message": "Logout successful"}


@router.get("/profile")
async def profile(user: CurrentUser) -> dict:
    return {"user": user.to_dict()}
