"""
Services module for business logic.

ARCHITECTURE:
- domain/: Application services (business logic) - USE THESE
- crud/: Repository pattern with tenant isolation

Usage:
    from rest_api.services.domain import AreaService
    service = AreaService(db)
    areas = service.list_areas(tenant_id)
"""
