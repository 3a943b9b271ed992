"""
Public QR code validation.

Customer devices open the printed URL; the frontend calls this endpoint
with the code and its digest. Every failure answers the same 404 so a
caller cannot tell an unknown code from a wrong digest or an expired one.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rest_api.services.domain import QRCodeService
from rest_api.services.domain.qr_service import INVALID_QR_MESSAGE
from shared.config.logging import qr_logger as logger
from shared.config.logging import mask_code
from shared.infrastructure.db import get_db
from shared.utils.exceptions import AppException
from shared.utils.schemas import ErrorResponse, QRValidationOutput


router = APIRouter(prefix="/api/public", tags=["public-qr"])


@router.get(
    "/qr/{code}",
    response_model=QRValidationOutput,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def validate_qr_code(
    code: str,
    h: str = Query(default="", max_length=128),
    type: str | None = None,
    db: Session = Depends(get_db),
) -> QRValidationOutput:
    result = QRCodeService(db).validate(code, h, expected_type=type)
    if not result.valid:
        raise AppException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=INVALID_QR_MESSAGE,
            log_level="info",
            code=mask_code(code),
            reason=result.reason,
        )

    record = result.record
    logger.debug("QR code validated", qr_id=record.id, scans=record.scan_count)
    return QRValidationOutput(
        valid=True,
        type=record.type,
        resource_id=record.resource_id,
        tenant_id=record.tenant_id,
        payload=record.payload,
    )
