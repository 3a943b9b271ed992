"""
Domain Services - Application Layer.

Services contain the business logic and orchestrate operations. They use
Repositories for data access.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import TableService

    # In router
    service = TableService(db)
    tables = service.list_tables(tenant_id, area_id=area_id)
"""

from .tenant_directory import TenantDirectory, TenantIdentity, get_tenant_directory
from .entitlement_service import EntitlementService, PlanEntitlements
from .subscription_service import SubscriptionService
from .area_service import AreaService
from .table_service import TableService
from .qr_service import QRCodeService, QRValidationResult

__all__ = [
    # Tenancy
    "TenantDirectory",
    "TenantIdentity",
    "get_tenant_directory",
    # Plans and billing
    "EntitlementService",
    "PlanEntitlements",
    "SubscriptionService",
    # Floor plan
    "AreaService",
    "TableService",
    # QR access tokens
    "QRCodeService",
    "QRValidationResult",
]
