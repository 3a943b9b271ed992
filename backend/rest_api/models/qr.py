"""
QR Access Token Model: QRCode.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class QRCode(AuditMixin, Base):
    """
    An opaque access token printed as a QR code.

    code is globally unique so the public validation endpoint can look a
    token up without knowing its tenant; hash binds it to tenant and
    resource. Payment tokens carry expires_at inside payload.
    """

    __tablename__ = "qr_code"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)  # table, menu, payment
    resource_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_qr_tenant_type_resource", "tenant_id", "type", "resource_id"),
    )

    def __repr__(self) -> str:
        return f"<QRCode(id={self.id}, type={self.type}, resource={self.resource_id})>"
