"""Availability checks used by the signup form."""

from fastapi import APIRouter
from sqlmodel import select

from app.api.deps import Session
from app.models.organization import Organization
from app.models.user import User

router = APIRouter(prefix="/validate", tags=["validate"])


@router.get("/org-slug/{slug}")
async def validate_org_slug(slug: str, session: Session) -> dict:
    taken = (await session.execute(
        select(Organization.id).where(Organization.slug == slug)
    )).first()
    return {"available": taken is None, "slug": slug}


@router.get("/username/{username}")
async def validate_username(username: str, session: Session) -> dict:
    taken = (await session.execute(select(User.id).where(User.username == username))).first()
    return {"available": taken is None, "username": username}


@router.get("/email/{email}")
async def validate_email(email: str, session: Session) -> dict:
    taken = (await session.execute(select(User.id).where(User.email == email.lower()))).first()
    return {"available": taken is None, "email": email}
