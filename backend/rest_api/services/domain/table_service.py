"""
Table Service - floor plan tables, status changes and occupancy history.

Status changes are a compare-and-swap on the status read by the caller, so
two staff members acting on the same table cannot both win. Every change
into or out of "occupied" opens or closes exactly one occupancy record.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rest_api.models import Order, QRCode, RestaurantArea, Table, TableOccupancyRecord
from rest_api.services.base_service import BaseCRUDService
from rest_api.services.crud.repository import TenantRepository
from rest_api.services.domain.entitlement_service import EntitlementService
from shared.config.constants import (
    Features,
    LimitedResource,
    Limits,
    QRCodeType,
    TableStatus,
)
from shared.config.logging import tables_logger as logger
from shared.infrastructure.db import as_utc, utc_now
from shared.utils.admin_schemas import (
    OccupancyRecordOutput,
    PositionSaveResult,
    StatusChangeResult,
    TableCreate,
    TableOutput,
    TablePosition,
    TableStatistics,
    TableUpdate,
)
from shared.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    ValidationError,
)

# Columns that accept an explicit null in a partial update
_NULLABLE_UPDATE_FIELDS = frozenset({"name", "area_id"})


def format_duration(minutes: float | int) -> str:
    """Human readable duration: 45 -> "45min", 65 -> "1h 5min", 120 -> "2h"."""
    minutes = int(minutes)
    if minutes < 60:
        return f"{minutes}min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}min" if mins else f"{hours}h"


def duration_minutes(start: datetime, end: datetime | None) -> int | None:
    """Whole minutes between start and end, None while still open."""
    if end is None:
        return None
    return int((as_utc(end) - as_utc(start)).total_seconds() // 60)


class TableService(BaseCRUDService[Table, TableOutput]):
    """Service for table management and occupancy tracking."""

    def __init__(self, db: Session, *, now: Callable[[], datetime] = utc_now):
        super().__init__(
            db=db,
            model=Table,
            output_schema=TableOutput,
            entity_name="Table",
            now=now,
        )
        self._history = TenantRepository(TableOccupancyRecord, db)
        self._areas = TenantRepository(RestaurantArea, db)

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_table(
        self,
        tenant_id: int,
        data: TableCreate,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> TableOutput:
        """
        Create a table.

        Raises:
            EntitlementDeniedError: Plan lacks table management or the
                max_tables limit is reached.
            ValidationError: area_id is not one of the tenant's areas.
            DuplicateEntityError: The number is already used by the tenant.
        """
        entitlements = EntitlementService(self._db, tenant_id, now=self._now)
        entitlements.require_feature(Features.TABLE_MANAGEMENT)
        entitlements.require_within_limit(LimitedResource.MAX_TABLES)

        payload = data.model_dump()
        payload["status"] = TableStatus.AVAILABLE
        table = self.create(payload, tenant_id, user_id, user_email)

        logger.info("Table created", tenant_id=tenant_id, table_id=table.id, number=table.number)
        return table

    def update_table(
        self,
        tenant_id: int,
        table_id: int,
        data: TableUpdate,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> TableOutput:
        """Write only the fields explicitly present in `data`."""
        fields = data.model_dump(exclude_unset=True)
        for name, value in fields.items():
            if value is None and name not in _NULLABLE_UPDATE_FIELDS:
                raise ValidationError(f"{name} cannot be null", field=name)
        if not fields:
            return self.get_table(tenant_id, table_id)
        return self.update(table_id, fields, tenant_id, user_id, user_email)

    def get_table(self, tenant_id: int, table_id: int) -> TableOutput:
        return self.get_by_id(table_id, tenant_id)

    def list_tables(
        self,
        tenant_id: int,
        area_id: int | None = None,
        status: str | None = None,
    ) -> list[TableOutput]:
        conditions = []
        if area_id is not None:
            conditions.append(Table.area_id == area_id)
        if status is not None:
            conditions.append(Table.status == status)
        return self.list_all(tenant_id, *conditions, order_by=Table.number)

    def _validate_create(self, data: dict[str, Any], tenant_id: int) -> None:
        data["number"] = data["number"].strip()
        if not data["number"]:
            raise ValidationError("Table number is required", field="number")
        self._check_area(tenant_id, data.get("area_id"))

    def _validate_update(self, entity: Table, data: dict[str, Any], tenant_id: int) -> None:
        if "number" in data:
            data["number"] = data["number"].strip()
            if not data["number"]:
                raise ValidationError("Table number is required", field="number")
        if "area_id" in data:
            self._check_area(tenant_id, data["area_id"])

    def _duplicate_key(self, data: dict[str, Any]) -> tuple[str, str] | None:
        if "number" in data:
            return ("Table", data["number"])
        return None

    def _check_area(self, tenant_id: int, area_id: int | None) -> None:
        if area_id is None:
            return
        if self._areas.find_by_id(area_id, tenant_id) is None:
            raise ValidationError("Invalid area_id", field="area_id", value=area_id)

    # =========================================================================
    # Status changes
    # =========================================================================

    def change_status(
        self,
        tenant_id: int,
        table_id: int,
        new_status: str,
        *,
        number_of_customers: int | None = None,
        order_id: int | None = None,
        total_spent_cents: int | None = None,
    ) -> StatusChangeResult:
        """
        Move a table to `new_status`.

        Entering "occupied" stamps occupied_since and opens an occupancy
        record; leaving it clears occupied_since and closes the open record
        with the order id and amount spent.

        Raises:
            ValidationError: Unknown status.
            NotFoundError: Table is not the tenant's.
            ConflictError: The status changed concurrently.
        """
        if new_status not in TableStatus.ALL:
            raise ValidationError(
                f"Invalid table status '{new_status}'",
                field="status",
                value=new_status,
            )

        table = self.get_entity(table_id, tenant_id)
        previous = table.status
        if previous == new_status:
            return StatusChangeResult(
                table=self.to_output(table),
                previous_status=previous,
                new_status=new_status,
            )

        now = self._now()
        values: dict[str, Any] = {"status": new_status}
        if new_status == TableStatus.OCCUPIED:
            values["occupied_since"] = now
        elif previous == TableStatus.OCCUPIED:
            values["occupied_since"] = None

        result = self._db.execute(
            update(Table)
            .where(
                Table.id == table_id,
                Table.tenant_id == tenant_id,
                Table.status == previous,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            self._db.rollback()
            raise ConflictError(
                "Table status changed concurrently, reload and retry",
                tenant_id=tenant_id,
                table_id=table_id,
                expected_status=previous,
            )

        record_id: int | None = None
        try:
            if new_status == TableStatus.OCCUPIED:
                record_id = self._open_occupancy(
                    table, now, number_of_customers=number_of_customers, order_id=order_id
                )
            elif previous == TableStatus.OCCUPIED:
                record_id = self._close_occupancy(
                    table, now, order_id=order_id, total_spent_cents=total_spent_cents
                )
            self._commit("change table status", tenant_id=tenant_id, table_id=table_id)
        except IntegrityError as e:
            self._db.rollback()
            raise ConflictError(
                "Table already has an open occupancy",
                tenant_id=tenant_id,
                table_id=table_id,
            ) from e

        self._db.refresh(table)
        logger.info(
            "Table status changed",
            tenant_id=tenant_id,
            table_id=table_id,
            previous=previous,
            status=new_status,
            occupancy_record_id=record_id,
        )
        return StatusChangeResult(
            table=self.to_output(table),
            previous_status=previous,
            new_status=new_status,
            occupancy_record_id=record_id,
        )

    def _open_occupancy(
        self,
        table: Table,
        now: datetime,
        *,
        number_of_customers: int | None,
        order_id: int | None,
    ) -> int:
        record = TableOccupancyRecord(
            tenant_id=table.tenant_id,
            table_id=table.id,
            table_number=table.number,
            start_time=now,
            number_of_customers=number_of_customers or 1,
            order_id=order_id,
        )
        self._db.add(record)
        # Flush inside the caller's try: the partial unique index may reject it
        self._db.flush()
        return record.id

    def _close_occupancy(
        self,
        table: Table,
        now: datetime,
        *,
        order_id: int | None,
        total_spent_cents: int | None,
    ) -> int | None:
        open_id = self._db.scalar(
            select(TableOccupancyRecord.id).where(
                TableOccupancyRecord.tenant_id == table.tenant_id,
                TableOccupancyRecord.table_id == table.id,
                TableOccupancyRecord.end_time.is_(None),
            )
        )
        if open_id is None:
            logger.warning(
                "Occupied table had no open occupancy record",
                tenant_id=table.tenant_id,
                table_id=table.id,
            )
            return None

        values: dict[str, Any] = {"end_time": now}
        if order_id is not None:
            values["order_id"] = order_id
        if total_spent_cents is not None:
            values["total_spent_cents"] = total_spent_cents

        closed = self._db.execute(
            update(TableOccupancyRecord)
            .where(
                TableOccupancyRecord.id == open_id,
                TableOccupancyRecord.end_time.is_(None),
            )
            .values(**values)
        )
        return open_id if closed.rowcount else None

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_table(self, tenant_id: int, table_id: int) -> None:
        """
        Hard-delete a table that is not occupied.

        Occupancy history is kept with table_id cleared; each record still
        carries the table number. Orders lose their table reference and the
        table's QR codes are deactivated.

        Raises:
            NotFoundError: Table is not the tenant's.
            InvalidStateError: Table is occupied.
        """
        table = self.get_entity(table_id, tenant_id)
        number = table.number
        if table.status == TableStatus.OCCUPIED:
            raise InvalidStateError(
                "Table",
                table.status,
                [s for s in TableStatus.ALL if s != TableStatus.OCCUPIED],
                tenant_id=tenant_id,
                table_id=table_id,
            )

        self._db.execute(
            update(TableOccupancyRecord)
            .where(
                TableOccupancyRecord.tenant_id == tenant_id,
                TableOccupancyRecord.table_id == table_id,
            )
            .values(table_id=None)
        )
        self._db.execute(
            update(Order)
            .where(Order.tenant_id == tenant_id, Order.table_id == table_id)
            .values(table_id=None)
        )
        self._db.execute(
            update(QRCode)
            .where(
                QRCode.tenant_id == tenant_id,
                QRCode.type == QRCodeType.TABLE,
                QRCode.resource_id == table_id,
                QRCode.is_active.is_(True),
            )
            .values(is_active=False, deleted_at=self._now())
        )
        deleted = self._db.execute(
            delete(Table).where(
                Table.id == table_id,
                Table.tenant_id == tenant_id,
                Table.status != TableStatus.OCCUPIED,
            )
        )
        if deleted.rowcount == 0:
            self._db.rollback()
            raise ConflictError(
                "Table became occupied while being deleted",
                tenant_id=tenant_id,
                table_id=table_id,
            )

        self._commit("delete table", tenant_id=tenant_id, table_id=table_id)
        logger.info("Table deleted", tenant_id=tenant_id, table_id=table_id, number=number)

    # =========================================================================
    # History and statistics
    # =========================================================================

    def get_occupancy_history(
        self,
        tenant_id: int,
        table_id: int,
        limit: int = Limits.DEFAULT_HISTORY_LIMIT,
    ) -> list[OccupancyRecordOutput]:
        """Most recent occupancies first."""
        self.get_entity(table_id, tenant_id)
        limit = max(1, min(limit, Limits.MAX_HISTORY_LIMIT))

        records = self._history.find_all(
            tenant_id,
            TableOccupancyRecord.table_id == table_id,
            order_by=TableOccupancyRecord.start_time.desc(),
            limit=limit,
        )
        return [
            OccupancyRecordOutput.model_validate(record).model_copy(
                update={"duration_minutes": duration_minutes(record.start_time, record.end_time)}
            )
            for record in records
        ]

    def get_table_statistics(
        self,
        tenant_id: int,
        table_id: int,
        window_days: int = Limits.DEFAULT_STATISTICS_WINDOW_DAYS,
    ) -> TableStatistics:
        """
        Aggregate closed occupancies that started in the last `window_days`.
        Returns an all-zero structure when there are none.
        """
        if not 1 <= window_days <= Limits.MAX_STATISTICS_WINDOW_DAYS:
            raise ValidationError(
                f"window_days must be between 1 and {Limits.MAX_STATISTICS_WINDOW_DAYS}",
                field="window_days",
            )
        self.get_entity(table_id, tenant_id)

        since = self._now() - timedelta(days=window_days)
        records: Sequence[TableOccupancyRecord] = self._history.find_all(
            tenant_id,
            TableOccupancyRecord.table_id == table_id,
            TableOccupancyRecord.end_time.is_not(None),
            TableOccupancyRecord.start_time >= since,
        )
        if not records:
            return TableStatistics(table_id=table_id, window_days=window_days)

        durations = [duration_minutes(r.start_time, r.end_time) for r in records]
        spent = [r.total_spent_cents for r in records if r.total_spent_cents is not None]
        avg_duration = sum(durations) / len(durations)

        return TableStatistics(
            table_id=table_id,
            window_days=window_days,
            total_occupancies=len(records),
            avg_duration_minutes=round(avg_duration, 1),
            avg_duration_formatted=format_duration(avg_duration),
            avg_spent_cents=round(sum(spent) / len(spent)) if spent else 0,
            total_spent_cents=sum(spent),
            max_spent_cents=max(spent, default=0),
            avg_customers=round(
                sum(r.number_of_customers for r in records) / len(records), 1
            ),
        )

    # =========================================================================
    # Floor plan layout
    # =========================================================================

    def save_positions(
        self,
        tenant_id: int,
        positions: Sequence[TablePosition],
    ) -> PositionSaveResult:
        """Move tables on the floor plan. Ids outside the tenant are skipped."""
        by_id = {p.id: p for p in positions}
        tables = self._repo.find_by_ids(list(by_id), tenant_id)

        for table in tables:
            position = by_id[table.id]
            table.position_x = position.position_x
            table.position_y = position.position_y

        if tables:
            self._commit("save table positions", tenant_id=tenant_id)

        skipped = len(by_id) - len(tables)
        if skipped:
            logger.warning("Skipped positions for unknown tables", tenant_id=tenant_id, skipped=skipped)

        return PositionSaveResult(submitted=len(positions), updated=len(tables))
