"""
Health check endpoint for the REST API.
Reports service status and database connectivity.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.logging import rest_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.utils.schemas import HealthOutput


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthOutput)
def health_check(db: Session = Depends(get_db)):
    """
    Health check. Returns 503 when the database cannot be reached.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database probe failed", error=str(e))
        body = HealthOutput(
            status="degraded",
            service="rest-api",
            environment=settings.environment,
            database="unavailable",
        )
        return JSONResponse(content=body.model_dump(), status_code=503)

    return HealthOutput(
        status="healthy",
        service="rest-api",
        environment=settings.environment,
        database="ok",
    )
