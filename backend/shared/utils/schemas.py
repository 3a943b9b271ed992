"""
Shared Pydantic schemas for public and collaborator-facing endpoints.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


BillingEventType = Literal[
    "subscription_created",
    "subscription_status_changed",
    "subscription_canceled",
    "payment_succeeded",
    "payment_failed",
]


# =============================================================================
# Common
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    detail: str | dict[str, Any]


class HealthOutput(BaseModel):
    status: str
    service: str
    environment: str
    database: str | None = None


# =============================================================================
# Public QR Validation
# =============================================================================


class QRValidationOutput(BaseModel):
    """What a customer's device learns from a scanned code."""

    valid: bool
    type: str
    resource_id: int | None = None
    tenant_id: int
    payload: dict[str, Any] | None = None


# =============================================================================
# Billing Events
# =============================================================================


class BillingEvent(BaseModel):
    """
    Normalized event sent by the billing adapter once it has verified the
    payment processor's webhook signature. tenant_ref is the processor's
    customer reference stored on the tenant.
    """

    type: BillingEventType
    tenant_ref: str = Field(min_length=1)
    external_subscription_id: str | None = None
    plan_code: str | None = None
    status: str | None = None
    trial_ends_at: datetime | None = None
    next_billing_at: datetime | None = None
    external_invoice_id: str | None = None
    amount_cents: int = Field(default=0, ge=0)


class BillingEventResult(BaseModel):
    type: BillingEventType
    processed: bool
    subscription_id: int | None = None
    subscription_status: str | None = None
    invoice_id: int | None = None
