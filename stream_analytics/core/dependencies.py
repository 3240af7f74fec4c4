"""Dependency injection utilities for FastAPI

Process-wide singletons live here rather than in module-level maps in
the services, so tests can swap them through ``app.dependency_overrides``
and the app lifespan can tear them down.
"""

import logging

from fastapi import Depends, Header

from stream_analytics.core.config import get_settings
from stream_analytics.core.exceptions import ApiError
from stream_analytics.services import (
    AnalyticsService,
    ChannelMonitor,
    SessionStore,
    TokenStore,
    TwitchAPIClient,
)

logger = logging.getLogger(__name__)


# ============================================
# Service Dependencies
# ============================================

_twitch_api: TwitchAPIClient | None = None
_session_store: SessionStore | None = None
_token_store: TokenStore | None = None
_channel_monitor: ChannelMonitor | None = None


def get_twitch_api() -> TwitchAPIClient:
    """Get shared TwitchAPIClient singleton (connection reuse)."""
    global _twitch_api
    if _twitch_api is None:
        settings = get_settings()
        _twitch_api = TwitchAPIClient(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            timeout=settings.http_timeout_seconds,
        )
    return _twitch_api


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store


def get_token_store() -> TokenStore:
    global _token_store
    if _token_store is None:
        _token_store = TokenStore()
    return _token_store


def get_channel_monitor() -> ChannelMonitor:
    """Get the ChannelMonitor singleton wired to the shared stores."""
    global _channel_monitor
    if _channel_monitor is None:
        settings = get_settings()
        _channel_monitor = ChannelMonitor(
            get_twitch_api(),
            get_session_store(),
            get_token_store(),
            poll_interval=settings.poll_interval_seconds,
            max_consecutive_failures=settings.max_consecutive_failures,
        )
    return _channel_monitor


def get_analytics_service(
    sessions: SessionStore = Depends(get_session_store),
) -> AnalyticsService:
    """Get AnalyticsService instance (dependency injection)"""
    return AnalyticsService(sessions)


async def shutdown_services() -> None:
    """Stop all monitors and close the shared TwitchAPIClient. Call on app shutdown."""
    global _twitch_api, _channel_monitor
    if _channel_monitor is not None:
        await _channel_monitor.stop_all()
        _channel_monitor = None
    if _twitch_api is not None:
        await _twitch_api.close()
        _twitch_api = None


# ============================================
# Authentication Dependencies
# ============================================


def get_bearer_token(authorization: str | None = Header(None)) -> str:
    """Extract the bearer token from the Authorization header"""
    if not authorization:
        logger.warning("No authorization header provided")
        raise ApiError(401, "No authorization header")

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise ApiError(401, "Invalid token")
    return token
