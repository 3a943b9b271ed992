"""
Multi-Tenancy Model: Tenant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .billing import Subscription


class Tenant(AuditMixin, Base):
    """
    A restaurant account. Every other tenant-scoped row references it.

    Resolved per request by slug (path / subdomain strategies) or by its
    custom domain. billing_customer_id is the payment processor's customer
    reference and keys inbound billing events.
    """

    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    domain: Mapped[Optional[str]] = mapped_column(Text, unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text)
    billing_customer_id: Mapped[Optional[str]] = mapped_column(Text, unique=True, nullable=True)

    subscriptions: Mapped[list["Subscription"]] = relationship(back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}')>"
