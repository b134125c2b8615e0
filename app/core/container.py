"""Per-app service container, built once and hung on ``app.state``."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.core.config import Settings
from app.core.security import TokenManager
from app.core.session_store import SessionStore
from app.services.realtime import RealtimeService


@dataclass
class Services:
    settings: Settings
    tokens: TokenManager
    realtime: RealtimeService
    session_store: SessionStore | None = None

    def use_session_store(self, store: SessionStore | None) -> None:
        """Attach (or detach, with None) the optional session store."""
        self.session_store = store
        self.tokens.store = store


def build_services(settings: Settings, session_factory: Callable[[], Any]) -> Services:
    return Services(
        settings=settings,
        tokens=TokenManager(settings),
        realtime=RealtimeService(
            session_factory,
            health_interval=settings.health_broadcast_seconds,
            metrics_interval=settings.metrics_broadcast_seconds,
            authorize_joins=settings.realtime_authorize_joins,
            recent_capacity=settings.recent_events_capacity,
            send_timeout=settings.realtime_send_timeout_seconds,
        ),
    )
