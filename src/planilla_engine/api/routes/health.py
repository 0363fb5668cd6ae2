"""Health check endpoints."""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from planilla_engine import __version__
from planilla_engine.api.dependencies import DbSession
from planilla_engine.config import get_settings
from planilla_engine.models import ContributionRateConfiguration

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service and database status."""

    status: str
    timestamp: datetime
    database: str
    version: str
    engine_version: str


class ReadinessResponse(BaseModel):
    """Whether runs can be calculated right now."""

    status: str
    contribution_rates_effective_from: date | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report API status and whether the database answers."""
    database = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        version=__version__,
        engine_version=get_settings().engine_version,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """Ready once contribution rates are effective for today's date.

    Without them every calculation would come back as missing configuration.
    """
    try:
        effective_from = (
            await db.execute(
                select(ContributionRateConfiguration.effective_from)
                .where(ContributionRateConfiguration.effective_from <= date.today())
                .order_by(ContributionRateConfiguration.effective_from.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.warning("Readiness check failed: %s", e)
        effective_from = None

    if effective_from is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready")
    return ReadinessResponse(status="ready", contribution_rates_effective_from=effective_from)


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe; never touches the database."""
    return {"status": "alive"}
