"""
TeamBeat FastAPI Application.

Main API application for running retrospective boards.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teambeat import __version__
from teambeat.api.errors import register_exception_handlers
from teambeat.api.routes import (
    agreements,
    auth,
    boards,
    cards,
    columns,
    comments,
    health,
    scenes,
    series,
    sse,
    templates,
)
from teambeat.api.schemas import ServiceHealthResponse
from teambeat.auth.sessions import SessionStore
from teambeat.config import settings
from teambeat.logging_config import setup_logging
from teambeat.maintenance import MaintenanceManager
from teambeat.realtime.manager import SSEManager
from teambeat.startup import check_readiness, run_all_startup_checks
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore
from teambeat.stores.rate_limit import LoginRateLimiter

logger = logging.getLogger(__name__)


def install_stores(app: FastAPI) -> None:
    """Put fresh in-process stores on ``app.state``, replacing any existing ones."""
    app.state.sessions = SessionStore(ttl_days=settings.session_ttl_days)
    app.state.presence = PresenceStore(timeout_seconds=settings.presence_timeout_seconds)
    app.state.notes_locks = NotesLockStore(
        timeout_seconds=settings.notes_lock_timeout_seconds
    )
    app.state.login_limiter = LoginRateLimiter(
        max_attempts=settings.login_max_attempts,
        window_minutes=settings.login_window_minutes,
    )
    app.state.sse_manager = SSEManager(
        stale_timeout_seconds=settings.sse_stale_timeout_seconds,
        ping_interval_seconds=settings.presence_ping_interval_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Runs startup checks before the application starts serving requests and
    keeps the store maintenance tasks running while it does.
    """
    # Initialize logging first
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("✓ Startup checks passed")

    maintenance = MaintenanceManager.for_app_state(app.state, settings)
    app.state.maintenance = maintenance
    maintenance.start()
    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown initiated...")
    closed = app.state.sse_manager.close_all()
    logger.info(f"✓ Closed {closed} SSE stream(s)")
    try:
        await maintenance.shutdown()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="TeamBeat API",
    description="API for real-time team retrospective boards",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

install_stores(app)
register_exception_handlers(app)

# Configure CORS for frontend; the session cookie needs credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "TeamBeat API is running",
        "version": __version__,
    }


@app.get("/health", response_model=ServiceHealthResponse)
async def service_health() -> ServiceHealthResponse:
    """Health check endpoint."""
    from teambeat.db.connection import check_connection

    db_status = "healthy" if check_connection() else "unhealthy"

    return ServiceHealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
    )


@app.get("/ready")
async def ready():
    """
    Readiness probe endpoint for load balancers.

    Returns 200 OK if ready to serve requests, 503 Service Unavailable otherwise.
    """
    is_ready, details = check_readiness()
    if not is_ready:
        return JSONResponse(
            content=details,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return details


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(series.router, prefix="/api/series", tags=["series"])
app.include_router(boards.router, prefix="/api/boards", tags=["boards"])
app.include_router(columns.router, prefix="/api/boards", tags=["columns"])
app.include_router(scenes.router, prefix="/api/boards", tags=["scenes"])
app.include_router(cards.router, prefix="/api/cards", tags=["cards"])
app.include_router(comments.router, prefix="/api/comments", tags=["comments"])
app.include_router(agreements.router, prefix="/api", tags=["agreements"])
app.include_router(health.router, prefix="/api", tags=["health-checks"])
app.include_router(sse.router, prefix="/api/sse", tags=["sse"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
