"""
CORS for the management dashboard and the customer menu frontend.

Clients authenticate with bearer tokens, never cookies, so credentials
are not allowed cross-origin.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import settings

DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def get_cors_origins() -> list[str]:
    """
    ALLOWED_ORIGINS (comma-separated) when set. Otherwise the origin of
    BASE_URL, where printed QR links land, plus the local dashboard
    outside production.
    """
    if settings.allowed_origins:
        return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

    origins = [settings.base_url.rstrip("/")]
    if settings.environment != "production":
        origins += [o for o in DEV_ORIGINS if o not in origins]
    return origins


def configure_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
