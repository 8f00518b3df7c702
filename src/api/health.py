"""
Health check endpoint.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from src.config import settings
from src.infrastructure.database import Database


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    environment: str
    database: str


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Always answers, even when the database is unconfigured or unreachable."
)
async def health(request: Request) -> HealthResponse:
    database: Optional[Database] = getattr(request.app.state, "database", None)

    if database is None or not database.is_configured:
        db_status = "not_configured"
    else:
        try:
            db_status = "connected" if await database.ping() else "unavailable"
        except Exception as e:
            logger.warning(f"Health check could not reach the database: {e}")
            db_status = "unavailable"

    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat() + "Z",
        version=settings.app_version,
        environment=settings.environment,
        database=db_status,
    )
