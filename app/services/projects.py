"""Project persistence helpers shared by the REST routes and the real-time channel."""

import json
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.project import Project, ProjectRead, ProjectStatus, ProjectUpdate


def to_read(project: Project) -> ProjectRead:
    location = json.loads(project.location) if isinstance(project.location, str) else project.location
    return ProjectRead(
        id=project.id,
        organization_id=project.organization_id,
        owner_id=project.owner_id,
        name=project.name,
        description=project.description,
        project_type=project.project_type,
        energy_source=project.energy_source,
        status=project.status,
        system_capacity=project.system_capacity,
        estimated_cost=project.estimated_cost,
        currency=project.currency,
        progress_percent=project.progress_percent,
        location=location or {},
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def apply_update(project: Project, update: ProjectUpdate) -> Project:
    """Copy the explicitly-set fields of ``update`` onto ``project``."""
    for key, value in update.model_dump(exclude_unset=True).items():
        if key == "location":
            value = json.dumps(value or {})
        setattr(project, key, value)
    project.updated_at = utcnow()
    return project


async def update_project(
    session: AsyncSession, project_id: uuid.UUID, update: ProjectUpdate
) -> Project | None:
    project = await session.get(Project, project_id)
    if project is None:
        return None
    apply_update(project, update)
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return project


async def find_projects(
    session: AsyncSession,
    *,
    organization_id: uuid.UUID | None = None,
    project_id: uuid.UUID | None = None,
    status: ProjectStatus | None = None,
) -> list[Project]:
    stmt = select(Project)
    if organization_id is not None:
        stmt = stmt.where(Project.organization_id == organization_id)
    if project_id is not None:
        stmt = stmt.where(Project.id == project_id)
    if status is not None:
        stmt = stmt.where(Project.status == status)
    stmt = stmt.order_by(Project.created_at.desc())  # type: ignore[union-attr]
    return list((await session.execute(stmt)).scalars().all())
