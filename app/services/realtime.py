"""Real-time broadcast service — room-based fan-out over WebSockets.

Connections join organization rooms (``org-<id>``) and project rooms
(``project-<id>``). Every message in either direction is a JSON envelope
``{"event": <name>, "data": <payload>}``.

Two timers push data without being asked: system health to every
connection, and synthetic metrics for each operational project to its
project and organization rooms.
"""

import asyncio
import logging
import random
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, ValidationError

from app.core.database import ping
from app.core.permissions import WILDCARD, has_permission
from app.models.project import Project, ProjectStatus, ProjectUpdate
from app.services import metrics
from app.services.identity import AuthenticatedUser
from app.services.projects import find_projects, to_read, update_project

logger = logging.getLogger(__name__)


def org_room(organization_id: Any) -> str:
    return f"org-{organization_id}"


def project_room(project_id: Any) -> str:
    return f"project-{project_id}"


# ── Inbound event payloads ───────────────────────────────────

class ProjectUpdateEvent(BaseModel):
    projectId: uuid.UUID
    updates: ProjectUpdate


class AnalyticsRequest(BaseModel):
    organizationId: uuid.UUID | None = None
    projectId: uuid.UUID | None = None
    timeRange: str = Field(default="24h", max_length=16)


# ── Connections and rooms ────────────────────────────────────

class Connection:
    """One client socket plus the rooms it has joined."""

    def __init__(self, websocket: Any, identity: AuthenticatedUser | None = None) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.identity = identity
        self.rooms: set[str] = set()

    async def send(self, event: str, data: Any, timeout: float | None = None) -> bool:
        """Send one envelope. Returns False if the transport is gone or stalls past ``timeout``."""
        envelope = {"event": event, "data": jsonable_encoder(data)}
        try:
            await asyncio.wait_for(self.websocket.send_json(envelope), timeout)
        except Exception:
            return False
        return True


class ConnectionManager:
    def __init__(self, send_timeout: float | None = 5) -> None:
        self.send_timeout = send_timeout
        self.connections: dict[str, Connection] = {}
        self.rooms: dict[str, set[str]] = {}

    def connect(self, conn: Connection) -> None:
        self.connections[conn.id] = conn

    def disconnect(self, conn: Connection) -> None:
        self.connections.pop(conn.id, None)
        for room in conn.rooms:
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(conn.id)
            if not members:
                del self.rooms[room]
        conn.rooms.clear()

    def join(self, conn: Connection, room: str) -> None:
        self.rooms.setdefault(room, set()).add(conn.id)
        conn.rooms.add(room)

    def members(self, room: str) -> list[Connection]:
        ids = self.rooms.get(room, ())
        return [self.connections[cid] for cid in list(ids) if cid in self.connections]

    async def _deliver(self, targets: list[Connection], event: str, data: Any) -> None:
        # Sends run concurrently; a peer stalled past send_timeout is dropped
        results = await asyncio.gather(*(conn.send(event, data, self.send_timeout) for conn in targets))
        for conn, delivered in zip(targets, results):
            if not delivered:
                logger.debug("Dropping dead connection %s", conn.id)
                self.disconnect(conn)

    async def emit_to(self, room: str, event: str, data: Any) -> None:
        await self._deliver(self.members(room), event, data)

    async def broadcast(self, event: str, data: Any) -> None:
        await self._deliver(list(self.connections.values()), event, data)


# ── Service ──────────────────────────────────────────────────

Handler = Callable[[Connection, Any], Awaitable[None]]


class RealtimeService:
    def __init__(
        self,
        session_factory: Callable[[], Any],
        *,
        health_interval: float = 30,
        metrics_interval: float = 10,
        authorize_joins: bool = False,
        recent_capacity: int = 100,
        send_timeout: float | None = 5,
        rng: random.Random | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.health_interval = health_interval
        self.metrics_interval = metrics_interval
        self.authorize_joins = authorize_joins
        self.rng = rng or random.Random()
        self.manager = ConnectionManager(send_timeout)
        # Oldest entries fall off first
        self.recent_notifications: deque[dict[str, Any]] = deque(maxlen=recent_capacity)
        self.recent_metrics: deque[dict[str, Any]] = deque(maxlen=recent_capacity)
        self._tasks: list[asyncio.Task] = []
        self._handlers: dict[str, Handler] = {
            "join-organization": self.join_organization,
            "join-project": self.join_project,
            "project-update": self.on_project_update,
            "request-analytics": self.on_request_analytics,
            "request-system-health": self.on_request_system_health,
        }

    # ── Connection lifecycle ─────────────────────────────────

    def connect(self, websocket: Any, identity: AuthenticatedUser | None = None) -> Connection:
        conn = Connection(websocket, identity)
        self.manager.connect(conn)
        logger.info("Client connected: %s", conn.id)
        return conn

    def disconnect(self, conn: Connection) -> None:
        self.manager.disconnect(conn)
        logger.info("Client disconnected: %s", conn.id)

    async def handle_event(self, conn: Connection, event: Any, data: Any = None) -> None:
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            await conn.send("error", {"message": f"Unknown event: {event}"})
            return
        await handler(conn, data)

    # ── Room joins ───────────────────────────────────────────

    def _may_access_org(self, conn: Connection, organization_id: Any) -> bool:
        identity = conn.identity
        if identity is None:
            return False
        if WILDCARD in identity.permissions:
            return True
        return identity.active_membership(organization_id=str(organization_id)) is not None

    async def join_organization(self, conn: Connection, org_id: Any) -> None:
        if not org_id or not isinstance(org_id, str):
            await conn.send("error", {"message": "Organization id required"})
            return
        if self.authorize_joins and not self._may_access_org(conn, org_id):
            await conn.send("error", {"message": "Not a member of this organization"})
            return
        self.manager.join(conn, org_room(org_id))
        logger.info("Socket %s joined organization %s", conn.id, org_id)

    async def join_project(self, conn: Connection, project_id: Any) -> None:
        if not project_id or not isinstance(project_id, str):
            await conn.send("error", {"message": "Project id required"})
            return
        if self.authorize_joins and not await self._may_access_project(conn, project_id):
            await conn.send("error", {"message": "Not allowed to join this project"})
            return
        self.manager.join(conn, project_room(project_id))
        logger.info("Socket %s joined project %s", conn.id, project_id)

    async def _may_access_project(self, conn: Connection, project_id: str) -> bool:
        if conn.identity is None:
            return False
        try:
            pid = uuid.UUID(project_id)
        except ValueError:
            return False
        async with self.session_factory() as session:
            project = await session.get(Project, pid)
        if project is None:
            return False
        return self._may_access_org(conn, project.organization_id)

    # ── Client requests ──────────────────────────────────────

    async def on_project_update(self, conn: Connection, data: Any) -> None:
        try:
            request = ProjectUpdateEvent.model_validate(data)
        except ValidationError:
            await conn.send("error", {"message": "Invalid project update"})
            return

        if self.authorize_joins:
            identity = conn.identity
            if (
                identity is None
                or not has_permission(identity.permissions, ["projects:write"])
                or not await self._may_access_project(conn, str(request.projectId))
            ):
                await conn.send("error", {"message": "Not allowed to update projects"})
                return

        try:
            async with self.session_factory() as session:
                project = await update_project(session, request.projectId, request.updates)
                if project is None:
                    raise LookupError(f"project {request.projectId} not found")
                payload = to_read(project)
        except Exception:
            logger.exception("Error updating project %s", request.projectId)
            await conn.send("error", {"message": "Failed to update project"})
            return

        await self.publish_project_updated(payload)

    async def publish_project_updated(self, project: Any) -> None:
        """Fan an updated project out to its project and organization rooms."""
        data = jsonable_encoder(project)
        await self.manager.emit_to(project_room(data["id"]), "project-updated", data)
        await self.manager.emit_to(
            org_room(data["organization_id"]), "organization-project-updated", data
        )

    async def on_request_analytics(self, conn: Connection, data: Any) -> None:
        try:
            request = AnalyticsRequest.model_validate(data or {})
        except ValidationError:
            await conn.send("error", {"message": "Invalid analytics request"})
            return
        try:
            analytics = await self.analytics(
                organization_id=request.organizationId,
                project_id=request.projectId,
                time_range=request.timeRange,
            )
        except Exception:
            logger.exception("Error fetching analytics")
            await conn.send("error", {"message": "Failed to fetch analytics"})
            return
        await conn.send("analytics-data", analytics)

    async def on_request_system_health(self, conn: Connection, _data: Any = None) -> None:
        try:
            health = await self.system_health()
        except Exception:
            logger.exception("Error fetching system health")
            await conn.send("error", {"message": "Failed to fetch system health"})
            return
        await conn.send("system-health", health)

    # ── Computations ─────────────────────────────────────────

    async def analytics(
        self,
        *,
        organization_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
        time_range: str = "24h",
    ) -> dict[str, Any]:
        async with self.session_factory() as session:
            projects = await find_projects(
                session, organization_id=organization_id, project_id=project_id
            )
        return metrics.aggregate_analytics(projects, self.rng, time_range)

    async def system_health(self) -> dict[str, Any]:
        async with self.session_factory() as session:
            db_ok = await ping(session)
        return {
            **metrics.process_snapshot(),
            "database": "healthy" if db_ok else "unhealthy",
            "api": "healthy",
            "connections": len(self.manager.connections),
            "timestamp": metrics.now_iso(),
        }

    # ── Server-initiated broadcasts ──────────────────────────

    async def broadcast_project_metrics(self, project: Project) -> dict[str, Any]:
        data = metrics.project_metrics(project, self.rng)
        self.recent_metrics.append(data)
        await self.manager.emit_to(project_room(project.id), "real-time-metrics", data)
        await self.manager.emit_to(
            org_room(project.organization_id), "organization-metrics-update", data
        )
        return data

    async def broadcast_system_notification(self, message: str, type_: str = "info") -> dict[str, Any]:
        notification = {"message": message, "type": type_, "timestamp": metrics.now_iso()}
        self.recent_notifications.append(notification)
        await self.manager.broadcast("system-notification", notification)
        return notification

    async def broadcast_health_once(self) -> None:
        health = await self.system_health()
        await self.manager.broadcast("system-health-update", health)

    async def broadcast_metrics_once(self) -> int:
        """Push metrics for every operational project. Returns how many succeeded."""
        async with self.session_factory() as session:
            projects = await find_projects(session, status=ProjectStatus.OPERATIONAL)

        sent = 0
        for project in projects:
            try:
                await self.broadcast_project_metrics(project)
            except Exception:
                logger.exception("Error broadcasting metrics for project %s", project.id)
                continue
            sent += 1
        return sent

    # ── Timers ───────────────────────────────────────────────

    async def _every(self, interval: float, job: Callable[[], Awaitable[Any]], name: str) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception:
                logger.exception("Periodic %s broadcast failed", name)

    def start_periodic_updates(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self._every(self.health_interval, self.broadcast_health_once, "system-health")
            ),
            asyncio.create_task(
                self._every(self.metrics_interval, self.broadcast_metrics_once, "project-metrics")
            ),
        ]
        logger.info(
            "Periodic broadcasts started (health every %ss, metrics every %ss)",
            self.health_interval,
            self.metrics_interval,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
