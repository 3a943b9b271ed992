"""
Management API router - combines all tenant-scoped sub-routers.

- tenant: Resolved tenant, entitlements and subscription
- areas: Area CRUD
- tables: Table CRUD, status changes, layout, statistics and history
- qr_codes: QR access token issuing and deactivation

All routes are prefixed with /api and require a bearer token issued for
the resolved tenant.
"""

from fastapi import APIRouter

from .tenant import router as tenant_router
from .areas import router as areas_router
from .tables import router as tables_router
from .qr_codes import router as qr_codes_router


router = APIRouter(prefix="/api")

router.include_router(tenant_router)
router.include_router(areas_router)
router.include_router(tables_router)
router.include_router(qr_codes_router)


__all__ = ["router"]
