"""
QR Code Service - registry of QR access tokens.

A token is an opaque random code plus an HMAC digest of
"{tenant_id}:{resource_id}:{code}". The customer-facing URL carries both;
validation needs the pair, so a guessed code alone is useless.

Validation failures always report the same message to the caller. The
internal reason (invalid / expired) is kept on the result for logging and
tests only.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rest_api.models import Order, QRCode, Table
from rest_api.services.base_service import BaseService
from rest_api.services.crud.repository import BaseRepository, TenantRepository
from shared.config.constants import QR_URL_PATHS, Limits, QRCodeType
from shared.config.logging import mask_code, qr_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import utc_now
from shared.security.signing import QRCodeSigner, digests_match
from shared.utils.admin_schemas import QRCodeOutput, QRIssueResult
from shared.utils.exceptions import DatabaseError, NotFoundError, ValidationError

INVALID_QR_MESSAGE = "QR code invalid or expired"


class QRFailureReason:
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class QRValidationResult:
    valid: bool
    record: QRCode | None = None
    error: str | None = None
    reason: str | None = None

    @classmethod
    def rejected(cls, reason: str) -> "QRValidationResult":
        return cls(valid=False, error=INVALID_QR_MESSAGE, reason=reason)


def parse_expiry(payload: dict[str, Any] | None) -> datetime | None:
    """
    expires_at from a token payload, as an aware datetime.

    Missing or unreadable values give None.
    """
    raw = (payload or {}).get("expires_at")
    if not raw or not isinstance(raw, str):
        return None
    try:
        expires_at = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at


class QRCodeService(BaseService[QRCode]):
    """Issues, validates and deactivates QR access tokens."""

    def __init__(
        self,
        db: Session,
        *,
        secret: str | None = None,
        now: Callable[[], datetime] = utc_now,
        base_url: str | None = None,
    ):
        super().__init__(db, QRCode, now=now)
        self._signer = QRCodeSigner(secret or settings.qr_code_secret)
        self._base_url = (base_url or settings.base_url).rstrip("/")
        self._codes = BaseRepository(QRCode, db)

    def build_url(self, qr_type: str, code: str, digest: str) -> str:
        path = QR_URL_PATHS[qr_type].format(code=code)
        return f"{self._base_url}{path}?h={digest}"

    # =========================================================================
    # Issuing
    # =========================================================================

    def issue(
        self,
        tenant_id: int,
        qr_type: str,
        resource_id: int | None = None,
        payload: dict[str, Any] | None = None,
        *,
        expires_in_minutes: int | None = None,
    ) -> QRIssueResult:
        """
        Issue a new token.

        Table tokens replace the table's previous active token and re-point
        the table at the new one in the same transaction. Payment tokens
        embed the order id and their expiry in the payload; they are the
        only tokens that expire, so a caller-supplied expires_at is dropped.

        Raises:
            ValidationError: Unknown type or missing resource id.
            NotFoundError: The table / order is not the tenant's.
        """
        if qr_type not in QRCodeType.ALL:
            raise ValidationError(f"Invalid QR code type '{qr_type}'", field="type", value=qr_type)

        data = dict(payload or {})
        data.pop("expires_at", None)
        now = self._now()
        table: Table | None = None

        if qr_type == QRCodeType.TABLE:
            if resource_id is None:
                raise ValidationError("Table QR codes need a table id", field="resource_id")
            table = TenantRepository(Table, self._db).find_by_id(resource_id, tenant_id)
            if table is None:
                raise NotFoundError("Table", resource_id, tenant_id=tenant_id)
            data.setdefault("table_number", table.number)
            if table.name:
                data.setdefault("table_name", table.name)

        elif qr_type == QRCodeType.PAYMENT:
            if resource_id is None:
                raise ValidationError("Payment QR codes need an order id", field="resource_id")
            order = TenantRepository(Order, self._db).find_by_id(
                resource_id, tenant_id, include_inactive=True
            )
            if order is None:
                raise NotFoundError("Order", resource_id, tenant_id=tenant_id)
            data["order_id"] = resource_id
            expires_in_minutes = expires_in_minutes or settings.payment_qr_expire_minutes

        expires_at = None
        if qr_type == QRCodeType.PAYMENT:
            expires_at = now + timedelta(minutes=expires_in_minutes)
            data["expires_at"] = expires_at.isoformat()

        record = self._insert(tenant_id, qr_type, resource_id, data, table)

        logger.info(
            "QR code issued",
            tenant_id=tenant_id,
            qr_id=record.id,
            type=qr_type,
            resource_id=resource_id,
            code=mask_code(record.code),
        )
        return QRIssueResult(
            id=record.id,
            code=record.code,
            hash=record.hash,
            type=record.type,
            resource_id=record.resource_id,
            url=self.build_url(qr_type, record.code, record.hash),
            expires_at=expires_at,
        )

    def _insert(
        self,
        tenant_id: int,
        qr_type: str,
        resource_id: int | None,
        data: dict[str, Any],
        table: Table | None,
    ) -> QRCode:
        """Insert the token, retrying with a fresh code on a collision."""
        for attempt in range(1, Limits.QR_ISSUE_ATTEMPTS + 1):
            code = secrets.token_hex(Limits.QR_CODE_BYTES)
            try:
                if table is not None:
                    self._db.execute(
                        update(QRCode)
                        .where(
                            QRCode.tenant_id == tenant_id,
                            QRCode.type == QRCodeType.TABLE,
                            QRCode.resource_id == table.id,
                            QRCode.is_active.is_(True),
                        )
                        .values(is_active=False, deleted_at=self._now())
                    )

                record = QRCode(
                    tenant_id=tenant_id,
                    code=code,
                    hash=self._signer.sign(tenant_id, resource_id, code),
                    type=qr_type,
                    resource_id=resource_id,
                    payload=data or None,
                )
                self._db.add(record)
                self._db.flush()

                if table is not None:
                    self._db.execute(
                        update(Table)
                        .where(Table.id == table.id, Table.tenant_id == tenant_id)
                        .values(qr_code_id=record.id)
                    )

                self._db.commit()
            except IntegrityError as e:
                self._db.rollback()
                logger.warning(
                    "QR code collision, retrying",
                    tenant_id=tenant_id,
                    attempt=attempt,
                    error=str(e.orig),
                )
                continue
            except SQLAlchemyError as e:
                self._db.rollback()
                logger.error("Failed to issue QR code", tenant_id=tenant_id, error=str(e))
                raise DatabaseError("issue QR code", tenant_id=tenant_id) from e

            self._db.refresh(record)
            return record

        raise DatabaseError("issue QR code", tenant_id=tenant_id, attempts=Limits.QR_ISSUE_ATTEMPTS)

    def issue_table_code(self, tenant_id: int, table_id: int) -> QRIssueResult:
        return self.issue(tenant_id, QRCodeType.TABLE, table_id)

    def issue_menu_code(
        self,
        tenant_id: int,
        menu_id: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> QRIssueResult:
        return self.issue(tenant_id, QRCodeType.MENU, menu_id, payload)

    def issue_payment_code(
        self,
        tenant_id: int,
        order_id: int,
        amount_cents: int | None = None,
        *,
        expires_in_minutes: int | None = None,
    ) -> QRIssueResult:
        payload = {"amount_cents": amount_cents} if amount_cents is not None else None
        return self.issue(
            tenant_id,
            QRCodeType.PAYMENT,
            order_id,
            payload,
            expires_in_minutes=expires_in_minutes,
        )

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(
        self,
        code: str,
        hash: str | None,
        expected_type: str | None = None,
    ) -> QRValidationResult:
        """
        Check a scanned code and its digest.

        Valid tokens have their scan count bumped; validity never depends on
        the count.
        """
        record = self._codes.find_one_by(QRCode.code == code) if code else None
        if (
            record is None
            or not digests_match(record.hash, hash)
            or (expected_type is not None and record.type != expected_type)
        ):
            logger.info("QR code rejected", code=mask_code(code), reason=QRFailureReason.INVALID)
            return QRValidationResult.rejected(QRFailureReason.INVALID)

        # Only payment tokens expire; one without a readable expiry counts as expired
        expired = False
        if record.type == QRCodeType.PAYMENT:
            expires_at = parse_expiry(record.payload)
            expired = expires_at is None or self._now() > expires_at
        if expired:
            logger.info(
                "QR code rejected",
                code=mask_code(code),
                qr_id=record.id,
                reason=QRFailureReason.EXPIRED,
            )
            return QRValidationResult.rejected(QRFailureReason.EXPIRED)

        self._register_scan(record)
        return QRValidationResult(valid=True, record=record)

    def _register_scan(self, record: QRCode) -> None:
        """Atomic scan counter bump. A failure here never fails validation."""
        try:
            self._db.execute(
                update(QRCode)
                .where(QRCode.id == record.id)
                .values(scan_count=QRCode.scan_count + 1, last_scanned_at=self._now())
            )
            self._db.commit()
            self._db.refresh(record)
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error("Failed to register QR scan", qr_id=record.id, error=str(e))

    # =========================================================================
    # Management
    # =========================================================================

    def _get_record(self, tenant_id: int, token_id: int) -> QRCode:
        record = self._repo.find_by_id(token_id, tenant_id, include_inactive=True)
        if record is None:
            raise NotFoundError("QR code", token_id, tenant_id=tenant_id)
        return record

    def get(self, tenant_id: int, token_id: int) -> QRCodeOutput:
        return QRCodeOutput.model_validate(self._get_record(tenant_id, token_id))

    def list_by_type(
        self,
        tenant_id: int,
        qr_type: str,
        *,
        include_inactive: bool = False,
    ) -> list[QRCodeOutput]:
        if qr_type not in QRCodeType.ALL:
            raise ValidationError(f"Invalid QR code type '{qr_type}'", field="type", value=qr_type)
        records = self._repo.find_all(
            tenant_id,
            QRCode.type == qr_type,
            include_inactive=include_inactive,
            order_by=QRCode.id.desc(),
        )
        return [QRCodeOutput.model_validate(r) for r in records]

    def deactivate(
        self,
        tenant_id: int,
        token_id: int,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> QRCodeOutput:
        """Deactivate a token. Deactivating an inactive token is a no-op."""
        record = self._get_record(tenant_id, token_id)
        if not record.is_active:
            return QRCodeOutput.model_validate(record)

        record.soft_delete(user_id, user_email)
        if record.type == QRCodeType.TABLE and record.resource_id is not None:
            self._db.execute(
                update(Table)
                .where(
                    Table.id == record.resource_id,
                    Table.tenant_id == tenant_id,
                    Table.qr_code_id == record.id,
                )
                .values(qr_code_id=None)
            )
        self._commit("deactivate QR code", tenant_id=tenant_id, qr_id=token_id)
        self._db.refresh(record)

        logger.info("QR code deactivated", tenant_id=tenant_id, qr_id=token_id)
        return QRCodeOutput.model_validate(record)
