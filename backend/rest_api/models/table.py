"""
Floor Plan Models: RestaurantArea, Table, TableOccupancyRecord.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableStatus

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .qr import QRCode


class RestaurantArea(AuditMixin, Base):
    """
    A named zone of the floor plan ("Terrace", "Main hall").
    Areas referenced by tables are deactivated instead of deleted.
    """

    __tablename__ = "restaurant_area"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    tables: Mapped[list["Table"]] = relationship(back_populates="area")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_area_tenant_name"),
    )


class Table(AuditMixin, Base):
    """
    Physical table on the floor plan.

    status is one of available, occupied, reserved, cleaning, inactive and
    occupied_since is set exactly while the table is occupied.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    number: Mapped[str] = mapped_column(Text, nullable=False)  # "12", "T-3"
    name: Mapped[Optional[str]] = mapped_column(Text)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    position_x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=TableStatus.AVAILABLE, index=True
    )
    occupied_since: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    area_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("restaurant_area.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    qr_code_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("qr_code.id", ondelete="SET NULL"), nullable=True
    )

    area: Mapped[Optional["RestaurantArea"]] = relationship(back_populates="tables")
    qr_code: Mapped[Optional["QRCode"]] = relationship()

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_table_tenant_number"),
        CheckConstraint(
            f"(status = '{TableStatus.OCCUPIED}' AND occupied_since IS NOT NULL)"
            f" OR (status <> '{TableStatus.OCCUPIED}' AND occupied_since IS NULL)",
            name="ck_table_occupied_since",
        ),
        Index("ix_table_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, number='{self.number}', status={self.status})>"


class TableOccupancyRecord(Base):
    """
    One seating of a table, from occupation to release.

    table_id is cleared when the table is deleted; table_number keeps the
    history readable afterwards. At most one open record (end_time NULL)
    exists per table.
    """

    __tablename__ = "table_occupancy_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    table_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("restaurant_table.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    table_number: Mapped[str] = mapped_column(Text, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    total_spent_cents: Mapped[Optional[int]] = mapped_column(Integer)
    number_of_customers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index(
            "uq_occupancy_open_per_table",
            "table_id",
            unique=True,
            sqlite_where=text("end_time IS NULL"),
            postgresql_where=text("end_time IS NULL"),
        ),
        Index("ix_occupancy_tenant_start", "tenant_id", "start_time"),
    )
