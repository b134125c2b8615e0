"""System health and operator notifications."""

import time
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.deps import ServicesDep, Session, require_roles
from app.core.database import ping
from app.core.session_store import SessionStore
from app.models.user import UserRole

router = APIRouter(prefix="/system", tags=["system"])

_admins = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN))


class ServiceHealth(BaseModel):
    status: str  # "ok", "error" or "disabled"
    detail: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    status: str
    database: ServiceHealth
    session_store: ServiceHealth
    realtime_connections: int


class NotificationRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)
    type: Literal["info", "warning", "error"] = "info"


@router.get("/health", response_model=HealthResponse)
async def system_health(session: Session, services: ServicesDep) -> HealthResponse:
    """Check the database and the optional session store.

    A disabled session store does not degrade the overall status.
    """
    db = await _check_database(session)
    store = await _check_session_store(services.session_store)
    overall = "ok" if db.status == "ok" and store.status != "error" else "degraded"
    return HealthResponse(
        status=overall,
        database=db,
        session_store=store,
        realtime_connections=len(services.realtime.manager.connections),
    )


@router.get("/notifications", dependencies=[_admins])
async def recent_notifications(services: ServicesDep) -> list[dict]:
    return list(services.realtime.recent_notifications)


@router.post("/notifications", dependencies=[_admins])
async def send_notification(body: NotificationRequest, services: ServicesDep) -> dict:
    """Broadcast a system notification to every real-time connection."""
    return await services.realtime.broadcast_system_notification(body.message, body.type)


async def _check_database(session) -> ServiceHealth:
    t0 = time.monotonic()
    ok = await ping(session)
    latency = int((time.monotonic() - t0) * 1000)
    if ok:
        return ServiceHealth(status="ok", latency_ms=latency)
    return ServiceHealth(status="error", detail="query failed", latency_ms=latency)


async def _check_session_store(store: SessionStore | None) -> ServiceHealth:
    if store is None:
        return ServiceHealth(status="disabled")
    t0 = time.monotonic()
    ok = await store.ping()
    latency = int((time.monotonic() - t0) * 1000)
    if ok:
        return ServiceHealth(status="ok", latency_ms=latency)
    return ServiceHealth(status="error", detail="ping failed", latency_ms=latency)
