"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from stream_analytics import __version__
from stream_analytics.core.config import get_settings
from stream_analytics.core.dependencies import (
    get_channel_monitor,
    get_session_store,
    get_token_store,
    shutdown_services,
)
from stream_analytics.core.exceptions import ApiError
from stream_analytics.core.logging import setup_logging
from stream_analytics.routers import analytics_router, auth_router
from stream_analytics.services import ChannelMonitor, SessionStore, TokenStore

logger = logging.getLogger(__name__)

# Track server start time
_start_time: float = 0.0
_heartbeat_task: asyncio.Task | None = None


async def _heartbeat(interval: int = 300) -> None:
    """Periodic heartbeat: log uptime and monitor status"""
    while True:
        await asyncio.sleep(interval)
        uptime = int(time.time() - _start_time)
        monitored = len(get_channel_monitor().monitored_channels)
        live = get_session_store().active_count
        logger.info(f"Heartbeat: uptime={uptime}s, monitored={monitored}, live={live}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time, _heartbeat_task
    _start_time = time.time()

    settings = get_settings()

    # Startup
    logger.info("Starting Stream Analytics server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"OAuth callback: {settings.redirect_uri}")
    logger.info(f"Poll interval: {settings.poll_interval_seconds}s")

    if settings.enable_keep_alive:
        _heartbeat_task = asyncio.create_task(_heartbeat(settings.keep_alive_interval))
        logger.info(f"Heartbeat started (interval={settings.keep_alive_interval}s)")

    yield

    # Shutdown
    logger.info("Shutting down Stream Analytics server")
    if _heartbeat_task:
        _heartbeat_task.cancel()
        _heartbeat_task = None
    try:
        await shutdown_services()
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render ApiError as ``{"error": ...}`` with its status code"""
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.error}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="Stream Analytics API",
        description="Tracks Twitch live sessions for the Stream Analytics browser extension",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]

    # Register routers
    app.include_router(auth_router.router)
    app.include_router(analytics_router.router)

    # Root endpoint
    @app.get("/")
    async def root(
        sessions: SessionStore = Depends(get_session_store),
        tokens: TokenStore = Depends(get_token_store),
        monitor: ChannelMonitor = Depends(get_channel_monitor),
    ):
        """Service status with tracking counts"""
        return {
            "status": "running",
            "activeChannels": sessions.active_count,
            "totalUsers": len(tokens),
            "monitoredChannels": len(monitor.monitored_channels),
        }

    # Liveness probe: always 200, no external dependency
    @app.get("/health")
    async def health():
        """Liveness check for Render / Docker / K8s"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    # Ping endpoint
    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        """Ping endpoint"""
        return "pong"

    logger.info("FastAPI application configured")

    return app
