"""
Repository Pattern for database access.

Provides a thin abstraction between business logic and data access, with
multi-tenant isolation built in: every TenantRepository call takes the
tenant id as a mandatory argument.

Usage:
    from rest_api.services.crud.repository import BaseRepository, TenantRepository

    table_repo = TenantRepository(Table, db)
    tables = table_repo.find_all(tenant_id=1, order_by=Table.number)
    table = table_repo.find_by_id(42, tenant_id=1)
    in_use = table_repo.count(1, Table.area_id == 3)

    plan_repo = BaseRepository(Plan, db)
    basic = plan_repo.find_one_by(Plan.code == "basic")
"""

from __future__ import annotations

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import select, func
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from rest_api.models import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Repository for entities without tenant isolation (plans, tenants).
    For tenant-scoped entities use TenantRepository.
    """

    def __init__(self, model: type[ModelT], session: Session):
        self._model = model
        self._session = session

    @property
    def model(self) -> type[ModelT]:
        """The SQLAlchemy model class."""
        return self._model

    @property
    def session(self) -> Session:
        """The database session."""
        return self._session

    def _base_query(self) -> Select:
        return select(self._model)

    def _apply_active_filter(self, query: Select, include_inactive: bool) -> Select:
        """Apply is_active filter if model has it."""
        if hasattr(self._model, "is_active") and not include_inactive:
            query = query.where(self._model.is_active.is_(True))
        return query

    @staticmethod
    def _apply_paging(
        query: Select,
        order_by: Any | None,
        limit: int | None,
        offset: int | None,
    ) -> Select:
        if order_by is not None:
            query = query.order_by(order_by)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query

    def find_by_id(
        self,
        entity_id: int,
        *,
        include_inactive: bool = False,
    ) -> ModelT | None:
        """Find entity by primary key."""
        query = self._base_query().where(self._model.id == entity_id)
        query = self._apply_active_filter(query, include_inactive)
        return self._session.scalar(query)

    def find_one_by(self, *conditions: Any, include_inactive: bool = False) -> ModelT | None:
        """Find the first entity matching all conditions."""
        query = self._base_query().where(*conditions)
        query = self._apply_active_filter(query, include_inactive)
        return self._session.scalars(query.limit(1)).first()

    def add(self, entity: ModelT) -> ModelT:
        """Add entity to session (not committed)."""
        self._session.add(entity)
        return entity

    def delete(self, entity: ModelT) -> None:
        """Delete entity from session (not committed)."""
        self._session.delete(entity)

    def refresh(self, entity: ModelT) -> ModelT:
        """Refresh entity from database."""
        self._session.refresh(entity)
        return entity


class TenantRepository(BaseRepository[ModelT]):
    """
    Repository with mandatory multi-tenant isolation.

    All queries are filtered by tenant_id. The model must have a
    `tenant_id` column.

    Usage:
        repo = TenantRepository(RestaurantArea, db)
        areas = repo.find_all(tenant_id=1)
    """

    def _tenant_query(self, tenant_id: int) -> Select:
        """Create tenant-filtered base query."""
        if not hasattr(self._model, "tenant_id"):
            raise AttributeError(
                f"Model {self._model.__name__} does not have tenant_id column. "
                "Use BaseRepository instead."
            )
        return self._base_query().where(self._model.tenant_id == tenant_id)

    def find_by_id(
        self,
        entity_id: int,
        tenant_id: int,
        *,
        include_inactive: bool = False,
    ) -> ModelT | None:
        """
        Find entity by ID within tenant scope.

        Returns:
            Entity or None if not found or owned by another tenant.
        """
        query = self._tenant_query(tenant_id).where(self._model.id == entity_id)
        query = self._apply_active_filter(query, include_inactive)
        return self._session.scalar(query)

    def find_one_by(
        self,
        tenant_id: int,
        *conditions: Any,
        include_inactive: bool = False,
    ) -> ModelT | None:
        """Find the first entity of the tenant matching all conditions."""
        query = self._tenant_query(tenant_id).where(*conditions)
        query = self._apply_active_filter(query, include_inactive)
        return self._session.scalars(query.limit(1)).first()

    def find_all(
        self,
        tenant_id: int,
        *conditions: Any,
        include_inactive: bool = False,
        limit: int | None = None,
        offset: int | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelT]:
        """
        Find all entities within tenant scope.

        Args:
            tenant_id: The tenant ID for isolation.
            conditions: Extra WHERE clauses.
            include_inactive: Include soft-deleted entities.
            limit: Maximum results.
            offset: Skip count.
            order_by: Order expression.
        """
        query = self._tenant_query(tenant_id).where(*conditions)
        query = self._apply_active_filter(query, include_inactive)
        query = self._apply_paging(query, order_by, limit, offset)
        return self._session.scalars(query).all()

    def find_by_ids(
        self,
        entity_ids: Sequence[int],
        tenant_id: int,
        *,
        include_inactive: bool = False,
    ) -> Sequence[ModelT]:
        """
        Find multiple entities by IDs within tenant scope.

        Returns:
            Sequence of found entities (may be less than requested).
        """
        if not entity_ids:
            return []

        query = self._tenant_query(tenant_id).where(self._model.id.in_(entity_ids))
        query = self._apply_active_filter(query, include_inactive)
        return self._session.scalars(query).all()

    def count(
        self,
        tenant_id: int,
        *conditions: Any,
        include_inactive: bool = False,
    ) -> int:
        """Count entities within tenant scope."""
        query = (
            select(func.count())
            .select_from(self._model)
            .where(self._model.tenant_id == tenant_id, *conditions)
        )
        if hasattr(self._model, "is_active") and not include_inactive:
            query = query.where(self._model.is_active.is_(True))
        return self._session.scalar(query) or 0
