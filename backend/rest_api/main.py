"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from rest_api.core.cors import configure_cors
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.admin import router as admin_router
from rest_api.routers.billing import router as billing_router
from rest_api.routers.public import health_router, qr_router
from shared.config.settings import settings


app = FastAPI(
    title="Mesa Core REST API",
    description="Multi-tenant restaurant core: tenancy, plans, tables and QR access",
    version="0.1.0",
    lifespan=lifespan,
)

configure_cors(app)
register_middlewares(app)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(qr_router)
app.include_router(admin_router)
app.include_router(billing_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
