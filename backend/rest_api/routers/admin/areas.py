"""
Area management endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.routers._common import (
    current_tenant,
    get_user_email,
    get_user_id,
    require_management,
    tenant_user,
)
from rest_api.services.domain import AreaService, TenantIdentity
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import AreaCreate, AreaDeleteResult, AreaOutput, AreaUpdate


router = APIRouter(tags=["areas"])


@router.get("/areas", response_model=list[AreaOutput])
def list_areas(
    include_deleted: bool = False,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> list[AreaOutput]:
    return AreaService(db).list_areas(tenant.id, include_inactive=include_deleted)


@router.get("/areas/{area_id}", response_model=AreaOutput)
def get_area(
    area_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> AreaOutput:
    return AreaService(db).get_area(tenant.id, area_id)


@router.post("/areas", response_model=AreaOutput, status_code=status.HTTP_201_CREATED)
def create_area(
    body: AreaCreate,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> AreaOutput:
    """Create an area. Requires ADMIN or MANAGER role."""
    return AreaService(db).create_area(
        tenant.id, body, get_user_id(user), get_user_email(user)
    )


@router.patch("/areas/{area_id}", response_model=AreaOutput)
def update_area(
    area_id: int,
    body: AreaUpdate,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> AreaOutput:
    return AreaService(db).update_area(
        tenant.id, area_id, body, get_user_id(user), get_user_email(user)
    )


@router.delete("/areas/{area_id}", response_model=AreaDeleteResult)
def delete_area(
    area_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> AreaDeleteResult:
    """
    Delete an area. Areas still used by tables are deactivated instead and
    the response says which happened.
    """
    return AreaService(db).delete_area(
        tenant.id, area_id, get_user_id(user), get_user_email(user)
    )
