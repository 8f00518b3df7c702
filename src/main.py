"""
Main FastAPI application entrypoint.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.logging_config import setup_logging
from src.infrastructure.database import Database
from src.infrastructure.events import EventBus, RoomConnectionManager
from src.api.errors import register_exception_handlers
from src.api.health import router as health_router
from src.api.auth import router as auth_router
from src.api.trips import router as trips_router
from src.api.itinerary import router as itinerary_router
from src.api.cities import router as cities_router
from src.api.activities import router as activities_router
from src.api.admin import router as admin_router
from src.api.realtime import router as realtime_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan event handler for startup and shutdown.
    """
    # Startup
    setup_logging(settings.log_level, settings.recent_log_capacity)
    print(f"Starting {settings.app_name} on {settings.host}:{settings.port}")
    print(f"Environment: {settings.environment}, debug mode: {settings.debug}")

    database = Database(
        settings.resolved_database_url,
        pool_size=settings.db_pool_size,
        statement_timeout=settings.db_statement_timeout_seconds,
        echo=settings.debug,
    )
    if not database.is_configured:
        logger.warning("No database configured; data endpoints will answer 503")

    connections = RoomConnectionManager(send_timeout=settings.event_publish_timeout_seconds)
    app.state.database = database
    app.state.connections = connections
    app.state.event_bus = EventBus(connections, timeout=settings.event_publish_timeout_seconds)

    yield

    # Shutdown
    await database.dispose()
    print(f"Shutting down {settings.app_name}")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Backend API for multi-user trip planning",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(trips_router, prefix="/api")
app.include_router(itinerary_router, prefix="/api")
app.include_router(cities_router, prefix="/api")
app.include_router(activities_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(realtime_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs",
    }


def run() -> None:
    uvicorn.run("src.main:app", host=settings.host, port=settings.port, reload=settings.debug)
