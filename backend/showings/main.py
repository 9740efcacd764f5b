"""Park Showings: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from showings.api.v1.auth import router as auth_router
from showings.api.v1.calendar import router as calendar_router
from showings.api.v1.lots import availability_router
from showings.api.v1.lots import router as lots_router
from showings.api.v1.showings import router as showings_router
from showings.calendar.credentials import CalendarCredentialStore
from showings.calendar.google import GoogleCalendarProvider
from showings.calendar.sync import CalendarSyncWorker
from showings.config import settings
from showings.database import async_session_factory, engine
from showings.errors import register_error_handlers

# Configure root logger so all showings.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def build_calendar_sync() -> CalendarSyncWorker | None:
    """Construct the sync worker, or ``None`` when sync is disabled or unconfigured."""
    if not settings.calendar_sync_enabled:
        logger.info("Calendar sync disabled by configuration")
        return None
    if not settings.google_calendar_configured:
        logger.warning("Google OAuth client not configured; calendar sync disabled")
        return None

    credentials = CalendarCredentialStore(
        async_session_factory,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        token_url=settings.google_token_url,
    )
    return CalendarSyncWorker(
        GoogleCalendarProvider(time_zone=settings.calendar_timezone),
        credentials,
        async_session_factory,
        queue_size=settings.calendar_sync_queue_size,
        workers=settings.calendar_sync_workers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the calendar sync worker on startup; stop it and the engine on shutdown."""
    calendar_sync = build_calendar_sync()
    if calendar_sync is not None:
        await calendar_sync.start()
    app.state.calendar_sync = calendar_sync

    yield

    if calendar_sync is not None:
        await calendar_sync.stop()
    app.state.calendar_sync = None
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Showing scheduler for park lots, with Google Calendar sync for park managers.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Middleware is added in reverse execution order (last added runs first on request).
# SessionMiddleware is added BEFORE CORS so that CORS headers are always present.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.jwt_secret_key)

register_error_handlers(app)

# Routers
app.include_router(auth_router)
app.include_router(lots_router)
app.include_router(availability_router)
app.include_router(showings_router)
app.include_router(calendar_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
