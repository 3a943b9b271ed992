"""
Pydantic schemas for the management API (areas, tables, QR codes,
plans and subscriptions).

Kept under shared/ so domain services can return them without importing
from the routers.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from shared.config.constants import Limits


# =============================================================================
# Tenant Schemas
# =============================================================================


class TenantOutput(BaseModel):
    id: int
    slug: str
    name: str
    domain: str | None = None

    class Config:
        from_attributes = True


# =============================================================================
# Area Schemas
# =============================================================================


class AreaOutput(BaseModel):
    id: int
    tenant_id: int
    name: str
    description: str | None = None
    is_active: bool

    class Config:
        from_attributes = True


class AreaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str | None = None


class AreaUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str | None = None
    is_active: bool | None = None


class AreaDeleteResult(BaseModel):
    """Outcome of deleting an area: removed, or kept and deactivated."""
    area_id: int
    deleted: bool
    deactivated: bool


# =============================================================================
# Table Schemas
# =============================================================================


class TableOutput(BaseModel):
    id: int
    tenant_id: int
    number: str
    name: str | None = None
    capacity: int
    position_x: int
    position_y: int
    status: str
    occupied_since: datetime | None = None
    area_id: int | None = None
    qr_code_id: int | None = None

    class Config:
        from_attributes = True


class TableCreate(BaseModel):
    number: str = Field(min_length=1, max_length=Limits.MAX_TABLE_NUMBER_LENGTH)
    name: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    capacity: int = Field(default=4, ge=1, le=Limits.MAX_TABLE_CAPACITY)
    area_id: int | None = None
    position_x: int = Field(default=0, ge=0, le=Limits.MAX_POSITION)
    position_y: int = Field(default=0, ge=0, le=Limits.MAX_POSITION)


class TableUpdate(BaseModel):
    """Partial update. Only fields present in the request are written."""
    number: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_TABLE_NUMBER_LENGTH)
    name: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    capacity: int | None = Field(default=None, ge=1, le=Limits.MAX_TABLE_CAPACITY)
    area_id: int | None = None
    position_x: int | None = Field(default=None, ge=0, le=Limits.MAX_POSITION)
    position_y: int | None = Field(default=None, ge=0, le=Limits.MAX_POSITION)


class TableStatusChange(BaseModel):
    # Checked by the service so an unknown status is a 400, not a 422
    status: str
    number_of_customers: int | None = Field(default=None, ge=1, le=Limits.MAX_TABLE_CAPACITY)
    order_id: int | None = None
    total_spent_cents: int | None = Field(default=None, ge=0)


class StatusChangeResult(BaseModel):
    table: TableOutput
    previous_status: str
    new_status: str
    occupancy_record_id: int | None = None


class TablePosition(BaseModel):
    id: int
    position_x: int = Field(ge=0, le=Limits.MAX_POSITION)
    position_y: int = Field(ge=0, le=Limits.MAX_POSITION)


class TablePositionsUpdate(BaseModel):
    positions: list[TablePosition] = Field(min_length=1, max_length=Limits.MAX_POSITIONS_BATCH)


class PositionSaveResult(BaseModel):
    submitted: int
    updated: int


class TableStatistics(BaseModel):
    """Aggregates over closed occupancies started inside the window."""
    table_id: int
    window_days: int
    total_occupancies: int = 0
    avg_duration_minutes: float = 0.0
    avg_duration_formatted: str = "0min"
    avg_spent_cents: int = 0
    total_spent_cents: int = 0
    max_spent_cents: int = 0
    avg_customers: float = 0.0


class OccupancyRecordOutput(BaseModel):
    id: int
    table_id: int | None = None
    table_number: str
    start_time: datetime
    end_time: datetime | None = None
    order_id: int | None = None
    total_spent_cents: int | None = None
    number_of_customers: int
    duration_minutes: int | None = None

    class Config:
        from_attributes = True


# =============================================================================
# QR Code Schemas
# =============================================================================


class QRIssueRequest(BaseModel):
    type: str
    resource_id: int | None = None
    payload: dict[str, Any] | None = None
    # Payment codes only; table and menu codes never expire
    expires_in_minutes: int | None = Field(default=None, ge=1, le=24 * 60)


class QRIssueResult(BaseModel):
    id: int
    code: str
    hash: str
    type: str
    resource_id: int | None = None
    url: str
    expires_at: datetime | None = None


class QRCodeOutput(BaseModel):
    id: int
    tenant_id: int
    code: str
    type: str
    resource_id: int | None = None
    payload: dict[str, Any] | None = None
    is_active: bool
    scan_count: int
    last_scanned_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


# =============================================================================
# Plan / Subscription Schemas
# =============================================================================


class SubscriptionOutput(BaseModel):
    id: int
    tenant_id: int
    plan_id: int
    status: str
    external_subscription_id: str | None = None
    trial_ends_at: datetime | None = None
    next_billing_at: datetime | None = None
    ends_at: datetime | None = None

    class Config:
        from_attributes = True


class InvoiceOutput(BaseModel):
    id: int
    tenant_id: int
    subscription_id: int | None = None
    external_invoice_id: str
    amount_cents: int
    status: str
    paid_at: datetime | None = None

    class Config:
        from_attributes = True


class EntitlementSummary(BaseModel):
    plan_code: str
    plan_name: str
    tier: int
    subscription_status: str
    subscription_active: bool
    trial_days_remaining: int
    features: list[str]
    limits: dict[str, int]
    usage: dict[str, int]
