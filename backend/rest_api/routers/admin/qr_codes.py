"""
QR access token management endpoints.

Issuing table and menu codes needs the plan's basic QR feature; payment
codes need the advanced one.
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
from rest_api.services.domain import EntitlementService, QRCodeService, TenantIdentity
from shared.config.constants import Features, QRCodeType
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import QRCodeOutput, QRIssueRequest, QRIssueResult


router = APIRouter(tags=["qr-codes"])

_REQUIRED_FEATURE = {
    QRCodeType.TABLE: Features.QRCODE_BASIC,
    QRCodeType.MENU: Features.QRCODE_BASIC,
    QRCodeType.PAYMENT: Features.QRCODE_ADVANCED,
}


@router.post("/qr-codes", response_model=QRIssueResult, status_code=status.HTTP_201_CREATED)
def issue_qr_code(
    body: QRIssueRequest,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> QRIssueResult:
    """
    Issue a QR code. The response carries the URL to print; issuing a
    table code replaces the table's previous one.
    """
    feature = _REQUIRED_FEATURE.get(body.type)
    if feature is not None:
        EntitlementService(db, tenant.id).require_feature(feature)

    return QRCodeService(db).issue(
        tenant.id,
        body.type,
        body.resource_id,
        body.payload,
        expires_in_minutes=body.expires_in_minutes,
    )


@router.get("/qr-codes", response_model=list[QRCodeOutput])
def list_qr_codes(
    type: str = QRCodeType.TABLE,
    include_deleted: bool = False,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> list[QRCodeOutput]:
    return QRCodeService(db).list_by_type(tenant.id, type, include_inactive=include_deleted)


@router.get("/qr-codes/{qr_id}", response_model=QRCodeOutput)
def get_qr_code(
    qr_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> QRCodeOutput:
    return QRCodeService(db).get(tenant.id, qr_id)


@router.delete("/qr-codes/{qr_id}", response_model=QRCodeOutput)
def deactivate_qr_code(
    qr_id: int,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> QRCodeOutput:
    """Deactivate a QR code. Repeating the call is harmless."""
    return QRCodeService(db).deactivate(
        tenant.id, qr_id, get_user_id(user), get_user_email(user)
    )
