"""
Table management endpoints: CRUD, status changes, floor plan layout,
statistics and occupancy history.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from rest_api.routers._common import (
    current_tenant,
    get_user_email,
    get_user_id,
    require_management,
    tenant_user,
)
from rest_api.services.domain import TableService, TenantIdentity
from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import (
    OccupancyRecordOutput,
    PositionSaveResult,
    StatusChangeResult,
    TableCreate,
    TableOutput,
    TablePositionsUpdate,
    TableStatistics,
    TableStatusChange,
    TableUpdate,
)


router = APIRouter(tags=["tables"])


@router.get("/tables", response_model=list[TableOutput])
def list_tables(
    area_id: int | None = None,
    table_status: str | None = Query(default=None, alias="status"),
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> list[TableOutput]:
    """List tables ordered by number, optionally filtered by area and status."""
    return TableService(db).list_tables(tenant.id, area_id=area_id, status=table_status)


# Registered before /tables/{table_id} routes
@router.put("/tables/positions", response_model=PositionSaveResult)
def save_positions(
    body: TablePositionsUpdate,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> PositionSaveResult:
    """Save the floor plan layout. Unknown table ids are skipped."""
    return TableService(db).save_positions(tenant.id, body.positions)


@router.get("/tables/{table_id}", response_model=TableOutput)
def get_table(
    table_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> TableOutput:
    return TableService(db).get_table(tenant.id, table_id)


@router.post("/tables", response_model=TableOutput, status_code=status.HTTP_201_CREATED)
def create_table(
    body: TableCreate,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> TableOutput:
    """
    Create a table. Requires ADMIN or MANAGER role.

    402 when the plan lacks table management or max_tables is reached.
    """
    return TableService(db).create_table(
        tenant.id, body, get_user_id(user), get_user_email(user)
    )


@router.patch("/tables/{table_id}", response_model=TableOutput)
def update_table(
    table_id: int,
    body: TableUpdate,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> TableOutput:
    return TableService(db).update_table(
        tenant.id, table_id, body, get_user_id(user), get_user_email(user)
    )


@router.delete("/tables/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_table(
    table_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> Response:
    """Delete a table that is not occupied. Its history is kept."""
    TableService(db).delete_table(tenant.id, table_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/tables/{table_id}/status", response_model=StatusChangeResult)
def change_table_status(
    table_id: int,
    body: TableStatusChange,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> StatusChangeResult:
    """Change a table's status. Any staff member of the tenant may do this."""
    return TableService(db).change_status(
        tenant.id,
        table_id,
        body.status,
        number_of_customers=body.number_of_customers,
        order_id=body.order_id,
        total_spent_cents=body.total_spent_cents,
    )


@router.get("/tables/{table_id}/statistics", response_model=TableStatistics)
def get_table_statistics(
    table_id: int,
    window_days: int = Query(
        default=Limits.DEFAULT_STATISTICS_WINDOW_DAYS,
        ge=1,
        le=Limits.MAX_STATISTICS_WINDOW_DAYS,
    ),
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> TableStatistics:
    return TableService(db).get_table_statistics(tenant.id, table_id, window_days)


@router.get("/tables/{table_id}/history", response_model=list[OccupancyRecordOutput])
def get_occupancy_history(
    table_id: int,
    limit: int = Query(default=Limits.DEFAULT_HISTORY_LIMIT, ge=1, le=Limits.MAX_HISTORY_LIMIT),
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> list[OccupancyRecordOutput]:
    """Occupancy records of the table, newest first."""
    return TableService(db).get_occupancy_history(tenant.id, table_id, limit)
