"""
Plan and Subscription Models: Plan, Subscription, Invoice, ResourceUsage.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .tenant import Tenant


class Plan(AuditMixin, Base):
    """
    A commercial plan: the features it grants and its resource limits.

    features is a list of feature names; limits maps resource name to an
    integer ceiling where -1 means unlimited. Tier orders plans for
    upgrade / downgrade checks. Plans are managed outside this service.
    """

    __tablename__ = "plan"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)  # basic, professional...
    name: Mapped[str] = mapped_column(Text, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    limits: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, code='{self.code}', tier={self.tier})>"


class Subscription(AuditMixin, Base):
    """
    A tenant's subscription to a plan.

    A tenant has at most one subscription that is not canceled; canceled
    rows are kept as history.
    """

    __tablename__ = "subscription"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    plan_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("plan.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    external_subscription_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    next_billing_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    tenant: Mapped["Tenant"] = relationship(back_populates="subscriptions")
    plan: Mapped["Plan"] = relationship()

    __table_args__ = (
        Index(
            "uq_subscription_current_per_tenant",
            "tenant_id",
            unique=True,
            sqlite_where=text("status <> 'canceled'"),
            postgresql_where=text("status <> 'canceled'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, tenant={self.tenant_id}, plan={self.plan_id}, status={self.status})>"


class Invoice(Base):
    """Payment history for a subscription, one row per processor invoice."""

    __tablename__ = "invoice"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    subscription_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("subscription.id"), nullable=True, index=True
    )
    external_invoice_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False)  # paid, uncollectible
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ResourceUsage(Base):
    """
    Daily usage counter per tenant and resource type.

    Only ever incremented, through an atomic upsert.
    """

    __tablename__ = "resource_usage"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    resource_type: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    resource_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "resource_type", "year", "month", "day",
            name="uq_resource_usage_period",
        ),
    )
