"""Energy projects — org-scoped CRUD plus aggregate stats."""

import json
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import OptionalUser, ServicesDep, Session, require_permissions
from app.core.errors import Forbidden, not_found
from app.core.permissions import WILDCARD
from app.models.project import Project, ProjectCreate, ProjectRead, ProjectStatus, ProjectUpdate
from app.services.identity import AuthenticatedUser
from app.services.projects import find_projects, to_read, update_project

router = APIRouter(prefix="/projects", tags=["projects"])

ProjectReader = Annotated[AuthenticatedUser, Depends(require_permissions("projects:read"))]
ProjectWriter = Annotated[AuthenticatedUser, Depends(require_permissions("projects:write"))]


def _ensure_org_access(user: AuthenticatedUser, organization_id: uuid.UUID) -> None:
    if WILDCARD in user.permissions:
        return
    if user.active_membership(organization_id=organization_id) is None:
        raise Forbidden(
            "Organization access denied",
            "You are not a member of this organization or your membership is inactive",
        )


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    user: OptionalUser,
    session: Session,
    organization_id: uuid.UUID | None = None,
    project_status: ProjectStatus | None = None,
) -> list[ProjectRead]:
    """Members see their organizations' projects; anonymous callers see operational ones."""
    if user is None:
        projects = await find_projects(
            session, organization_id=organization_id, status=ProjectStatus.OPERATIONAL
        )
        return [to_read(p) for p in projects]

    if organization_id is not None:
        _ensure_org_access(user, organization_id)

    projects = await find_projects(session, organization_id=organization_id, status=project_status)
    if WILDCARD not in user.permissions:
        allowed = {
            m["organizationId"] for m in user.organization_memberships if m["isActive"]
        }
        projects = [p for p in projects if str(p.organization_id) in allowed]
    return [to_read(p) for p in projects]


@router.get("/stats")
async def project_stats(
    user: ProjectReader,
    services: ServicesDep,
    organization_id: uuid.UUID | None = None,
    time_range: str = "24h",
) -> dict:
    if organization_id is None:
        if WILDCARD not in user.permissions:
            raise Forbidden(
                "Organization context required",
                "organization_id is required unless you can see every organization",
            )
    else:
        _ensure_org_access(user, organization_id)
    return await services.realtime.analytics(organization_id=organization_id, time_range=time_range)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(body: ProjectCreate, user: ProjectWriter, session: Session) -> ProjectRead:
    _ensure_org_access(user, body.organization_id)

    project = Project(
        organization_id=body.organization_id,
        owner_id=user.id,
        name=body.name,
        description=body.description,
        project_type=body.project_type,
        energy_source=body.energy_source,
        system_capacity=body.system_capacity,
        estimated_cost=body.estimated_cost,
        currency=body.currency.upper(),
        location=json.dumps(body.location),
    )
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return to_read(project)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: uuid.UUID, user: ProjectReader, session: Session) -> ProjectRead:
    project = await session.get(Project, project_id)
    if project is None:
        raise not_found("Project")
    _ensure_org_access(user, project.organization_id)
    return to_read(project)


@router.patch("/{project_id}", response_model=ProjectRead)
async def patch_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: ProjectWriter,
    services: ServicesDep,
    session: Session,
) -> ProjectRead:
    """Update a project and push the new state to its real-time rooms."""
    project = await session.get(Project, project_id)
    if project is None:
        raise not_found("Project")
    _ensure_org_access(user, project.organization_id)

    project = await update_project(session, project_id, body)
    result = to_read(project)
    await services.realtime.publish_project_updated(result)
    return result
