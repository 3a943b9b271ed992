"""
Area Service - named zones of the floor plan.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from rest_api.models import RestaurantArea, Table
from rest_api.services.base_service import BaseCRUDService
from rest_api.services.crud.repository import TenantRepository
from shared.config.logging import tables_logger as logger
from shared.infrastructure.db import utc_now
from shared.utils.admin_schemas import AreaCreate, AreaDeleteResult, AreaOutput, AreaUpdate
from shared.utils.exceptions import ValidationError


class AreaService(BaseCRUDService[RestaurantArea, AreaOutput]):
    """Service for area management."""

    def __init__(self, db: Session, *, now: Callable[[], datetime] = utc_now):
        super().__init__(
            db=db,
            model=RestaurantArea,
            output_schema=AreaOutput,
            entity_name="Area",
            now=now,
        )
        self._tables = TenantRepository(Table, db)

    def create_area(
        self,
        tenant_id: int,
        data: AreaCreate,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> AreaOutput:
        return self.create(data.model_dump(), tenant_id, user_id, user_email)

    def update_area(
        self,
        tenant_id: int,
        area_id: int,
        data: AreaUpdate,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> AreaOutput:
        fields = data.model_dump(exclude_unset=True)
        if "name" in fields and fields["name"] is None:
            raise ValidationError("name cannot be null", field="name")
        if "is_active" in fields and fields["is_active"] is None:
            fields.pop("is_active")
        if not fields:
            return self.get_area(tenant_id, area_id)
        return self.update(area_id, fields, tenant_id, user_id, user_email)

    def get_area(self, tenant_id: int, area_id: int) -> AreaOutput:
        return self.get_by_id(area_id, tenant_id, include_inactive=True)

    def list_areas(self, tenant_id: int, *, include_inactive: bool = False) -> list[AreaOutput]:
        return self.list_all(
            tenant_id,
            include_inactive=include_inactive,
            order_by=RestaurantArea.name,
        )

    def delete_area(
        self,
        tenant_id: int,
        area_id: int,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> AreaDeleteResult:
        """
        Remove an area.

        An area still referenced by tables is only deactivated and the tables
        keep pointing at it; an unused area is deleted.
        """
        area = self.get_entity(area_id, tenant_id, include_inactive=True)
        table_count = self._tables.count(
            tenant_id, Table.area_id == area_id, include_inactive=True
        )

        if table_count:
            area.soft_delete(user_id, user_email)
            self._commit("deactivate area", tenant_id=tenant_id, area_id=area_id)
            logger.info(
                "Area deactivated, still referenced by tables",
                tenant_id=tenant_id,
                area_id=area_id,
                tables=table_count,
            )
            return AreaDeleteResult(area_id=area_id, deleted=False, deactivated=True)

        self._db.delete(area)
        self._commit("delete area", tenant_id=tenant_id, area_id=area_id)
        logger.info("Area deleted", tenant_id=tenant_id, area_id=area_id)
        return AreaDeleteResult(area_id=area_id, deleted=True, deactivated=False)

    def _duplicate_key(self, data: dict[str, Any]) -> tuple[str, str] | None:
        if "name" in data:
            return ("Area", data["name"])
        return None
