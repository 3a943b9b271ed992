"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.infrastructure.db import engine, get_db_context
from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from rest_api.models import Base
from rest_api.seed import seed
from rest_api.services.domain.tenant_directory import get_tenant_directory


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    # Validate production secrets before startup
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning(
                "Running with insecure defaults (acceptable for development only)"
            )

    # Startup
    logger.info(
        "Starting REST API",
        port=settings.rest_api_port,
        env=settings.environment,
        tenant_strategy=settings.tenant_identify_by,
    )

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    with get_db_context() as db:
        seed(db)

    yield

    # Shutdown
    logger.info("Shutting down REST API")
    get_tenant_directory().clear_cache()
    engine.dispose()
    logger.info("Database connections closed")
