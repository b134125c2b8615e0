"""User administration — listing and global role changes."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import select

from app.api.deps import Session, require_roles
from app.core.errors import not_found
from app.models.base import utcnow
from app.models.user import User, UserRead, UserRole, UserRoleUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "",
    response_model=list[UserRead],
    dependencies=[Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN))],
)
async def list_users(
    session: Session,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[UserRead]:
    stmt = (
        select(User)
        .order_by(User.created_at.desc())  # type: ignore[union-attr]
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return [UserRead.model_validate(u) for u in result.scalars().all()]


@router.patch(
    "/{user_id}/role",
    response_model=UserRead,
    dependencies=[Depends(require_roles(UserRole.SUPER_ADMIN))],
)
async def change_role(user_id: uuid.UUID, body: UserRoleUpdate, session: Session) -> UserRead:
    """Change a user's global role."""
    user = await session.get(User, user_id)
    if user is None:
        raise not_found("User")

    user.role = body.role
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return UserRead.model_validate(user)
