"""FastAPI application entrypoint."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import v1_router
from app.core.config import get_settings
from app.core.container import build_services
from app.core.database import async_session_factory, init_db
from app.core.errors import register_error_handlers
from app.core.session_store import connect_session_store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    services = app.state.services
    # Startup: ensure tables exist
    await init_db()
    services.use_session_store(await connect_session_store(services.settings))
    services.realtime.start_periodic_updates()
    yield
    await services.realtime.stop()
    if services.session_store is not None:
        await services.session_store.close()
        services.use_session_store(None)


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(
        title="Renewable Energy Platform",
        version="0.1.0",
        description="Multi-tenant renewable-energy project management API",
        lifespan=lifespan,
    )
    application.state.services = build_services(settings, async_session_factory)

    # ── CORS ─────────────────────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.allowed_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)

    # ── API routes ───────────────────────────────────────────
    application.include_router(v1_router)

    @application.get("/health", tags=["system"])
    async def health_check() -> dict:
        return {"status": "ok"}

    return application


app = create_app()
