"""FastAPI dependencies for authentication, authorization and org context.

Authentication pipeline (each failure is a terminal 401 with a code):

1. bearer token present            → NO_TOKEN
2. token not on the denylist       → TOKEN_BLACKLISTED
3. access-token signature / claims → INVALID_TOKEN
4. user exists and is active       → USER_NOT_FOUND
5. email verified                  → EMAIL_NOT_VERIFIED
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.container import Services
from app.core.database import get_session
from app.core.errors import ApiError, AuthenticationFailed, Forbidden
from app.core.permissions import has_permission, has_role
from app.services.identity import AuthenticatedUser, load_identity

bearer_scheme = HTTPBearer(auto_error=False)

ORG_SLUG_HEADER = "X-Organization-Slug"


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]
Session = Annotated[AsyncSession, Depends(get_session)]
Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


async def authenticate_token(
    token: str, services: Services, session: AsyncSession
) -> AuthenticatedUser:
    """Run steps 2–5 of the pipeline for an already-extracted token."""
    if await services.tokens.is_token_blacklisted(token):
        raise AuthenticationFailed("TOKEN_BLACKLISTED", "Token has been revoked")

    payload = services.tokens.verify_access_token(token)
    if payload is None:
        raise AuthenticationFailed("INVALID_TOKEN", "Invalid or expired token")

    user = await load_identity(session, payload["id"])
    if user is None:
        raise AuthenticationFailed("USER_NOT_FOUND", "User not found")

    if not user.email_verified:
        raise AuthenticationFailed(
            "EMAIL_NOT_VERIFIED",
            "Please verify your email address before accessing the platform",
            error="Email verification required",
        )
    return user


async def get_current_user(
    request: Request,
    credentials: Credentials,
    services: ServicesDep,
    session: Session,
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed(
            "NO_TOKEN",
            "No authentication token provided",
            error="Authentication required",
        )
    user = await authenticate_token(credentials.credentials, services, session)
    request.state.user = user
    request.state.token = credentials.credentials
    return user


async def get_optional_user(
    request: Request,
    credentials: Credentials,
    services: ServicesDep,
    session: Session,
) -> AuthenticatedUser | None:
    """Same pipeline, but any failure means 'anonymous' instead of 401."""
    try:
        return await get_current_user(request, credentials, services, session)
    except AuthenticationFailed:
        return None


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_optional_user)]


# ── Organization context ─────────────────────────────────────

@dataclass(frozen=True)
class OrganizationContext:
    organization_id: uuid.UUID
    organization_slug: str
    user_role: str


async def get_organization_context(request: Request, user: CurrentUser) -> OrganizationContext:
    """Resolve the caller's active membership for the org in the path or header."""
    slug = request.path_params.get("org_slug") or request.headers.get(ORG_SLUG_HEADER)
    if not slug:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Organization context required",
            f"Organization slug must be provided in the URL or the {ORG_SLUG_HEADER} header",
        )

    membership = user.active_membership(slug=slug)
    if membership is None:
        raise Forbidden(
            "Organization access denied",
            "You are not a member of this organization or your membership is inactive",
        )

    context = OrganizationContext(
        organization_id=uuid.UUID(membership["organizationId"]),
        organization_slug=membership["organizationSlug"],
        user_role=membership["role"],
    )
    request.state.organization = context
    return context


OrgContext = Annotated[OrganizationContext, Depends(get_organization_context)]


# ── Guards ───────────────────────────────────────────────────

def require_permissions(*permissions: str) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """Guard: the caller needs at least one of ``permissions``."""
    required = list(permissions)

    async def _guard(user: CurrentUser) -> AuthenticatedUser:
        if not has_permission(user.permissions, required):
            raise Forbidden(
                "Insufficient permissions",
                f"Requires one of the following permissions: {', '.join(required)}",
                required=required,
                userPermissions=sorted(user.permissions),
            )
        return user

    return _guard


def require_roles(*roles: str) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """Guard: the caller's global role must be one of ``roles``."""
    allowed = [str(r) for r in roles]

    async def _guard(user: CurrentUser) -> AuthenticatedUser:
        if not has_role(user.role, allowed):
            raise Forbidden(
                "Insufficient role",
                f"Requires one of the following roles: {', '.join(allowed)}",
                required=allowed,
                userRole=user.role,
            )
        return user

    return _guard
