"""
Base Service Classes.

Architecture:
    Router (thin) -> Service (business logic) -> Repository (data access) -> Model

Every service method takes the tenant id explicitly; nothing is read from
ambient request state.

Usage:
    from rest_api.services.base_service import BaseCRUDService

    class AreaService(BaseCRUDService[RestaurantArea, AreaOutput]):
        def __init__(self, db: Session):
            super().__init__(
                db=db,
                model=RestaurantArea,
                output_schema=AreaOutput,
                entity_name="Area",
            )
"""

from __future__ import annotations

from abc import ABC
from typing import Any, Callable, Generic, TypeVar, Type
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rest_api.models import Base
from rest_api.services.crud.repository import TenantRepository
from shared.infrastructure.db import safe_commit, utc_now
from shared.config.logging import get_logger
from shared.utils.exceptions import NotFoundError, DatabaseError, DuplicateEntityError

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
OutputT = TypeVar("OutputT", bound=BaseModel)


class BaseService(ABC, Generic[ModelT]):
    """
    Abstract base service for domain operations.

    Provides the repository, the session and the clock. The clock is
    injectable so time-dependent behaviour can be tested deterministically.
    """

    def __init__(
        self,
        db: Session,
        model: Type[ModelT],
        *,
        now: Callable[[], datetime] = utc_now,
    ):
        self._db = db
        self._model = model
        self._repo = TenantRepository(model, db)
        self._now = now

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    @property
    def repo(self) -> TenantRepository[ModelT]:
        """Repository for data access."""
        return self._repo

    def _commit(self, operation: str, *, duplicate: tuple[str, str] | None = None, **log_context: Any) -> None:
        """
        Commit the unit of work.

        Unique-constraint violations become DuplicateEntityError when the
        caller names the entity and identifier it was writing; any other
        storage failure is logged and raised as DatabaseError.
        """
        try:
            safe_commit(self._db)
        except IntegrityError as e:
            if duplicate is not None:
                entity, identifier = duplicate
                raise DuplicateEntityError(entity, identifier, **log_context) from e
            logger.error(f"Integrity error during {operation}", error=str(e.orig), **log_context)
            raise DatabaseError(operation, **log_context) from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to {operation}", error=str(e), **log_context)
            raise DatabaseError(operation, **log_context) from e


class BaseCRUDService(BaseService[ModelT], Generic[ModelT, OutputT]):
    """
    Base service for tenant-scoped entities with CRUD operations.

    Subclasses override the validation hooks for business rules.
    """

    def __init__(
        self,
        db: Session,
        model: Type[ModelT],
        output_schema: Type[OutputT],
        entity_name: str,
        *,
        now: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db, model, now=now)
        self._output_schema = output_schema
        self._entity_name = entity_name

    @property
    def entity_name(self) -> str:
        """Human-readable entity name for messages."""
        return self._entity_name

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_entity(
        self,
        entity_id: int,
        tenant_id: int,
        *,
        include_inactive: bool = False,
    ) -> ModelT:
        """
        Get raw entity (for internal use).

        Raises:
            NotFoundError: If the entity does not exist for this tenant.
        """
        entity = self._repo.find_by_id(entity_id, tenant_id, include_inactive=include_inactive)
        if entity is None:
            raise NotFoundError(self._entity_name, entity_id, tenant_id=tenant_id)
        return entity

    def get_by_id(
        self,
        entity_id: int,
        tenant_id: int,
        *,
        include_inactive: bool = False,
    ) -> OutputT:
        """Get entity by ID as an output DTO."""
        return self.to_output(
            self.get_entity(entity_id, tenant_id, include_inactive=include_inactive)
        )

    def list_all(
        self,
        tenant_id: int,
        *conditions: Any,
        include_inactive: bool = False,
        order_by: Any | None = None,
    ) -> list[OutputT]:
        """List all entities for the tenant."""
        entities = self._repo.find_all(
            tenant_id,
            *conditions,
            include_inactive=include_inactive,
            order_by=order_by,
        )
        return [self.to_output(e) for e in entities]

    def count(self, tenant_id: int, *, include_inactive: bool = False) -> int:
        """Count entities for tenant."""
        return self._repo.count(tenant_id, include_inactive=include_inactive)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(
        self,
        data: dict[str, Any],
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> OutputT:
        """
        Create new entity.

        Raises:
            ValidationError: If data is invalid.
            DuplicateEntityError: If a unique key is already taken.
            DatabaseError: If creation fails.
        """
        self._validate_create(data, tenant_id)

        data["tenant_id"] = tenant_id
        entity = self._model(**data)
        entity.set_created_by(user_id, user_email)
        self._db.add(entity)

        self._commit(
            f"create {self._entity_name.lower()}",
            duplicate=self._duplicate_key(data),
            tenant_id=tenant_id,
        )
        self._db.refresh(entity)

        self._after_create(entity, user_id, user_email)
        return self.to_output(entity)

    def update(
        self,
        entity_id: int,
        data: dict[str, Any],
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> OutputT:
        """
        Update an existing entity with the given fields only.

        Raises:
            NotFoundError: If entity not found.
            ValidationError: If data is invalid.
            DuplicateEntityError: If a unique key is already taken.
        """
        entity = self.get_entity(entity_id, tenant_id, include_inactive=True)

        self._validate_update(entity, data, tenant_id)

        for field_name, value in data.items():
            if hasattr(entity, field_name):
                setattr(entity, field_name, value)

        entity.set_updated_by(user_id, user_email)

        self._commit(
            f"update {self._entity_name.lower()}",
            duplicate=self._duplicate_key(data),
            tenant_id=tenant_id,
            entity_id=entity_id,
        )
        self._db.refresh(entity)
        return self.to_output(entity)

    # =========================================================================
    # Transformation
    # =========================================================================

    def to_output(self, entity: ModelT) -> OutputT:
        """Convert entity to output DTO."""
        return self._output_schema.model_validate(entity)

    # =========================================================================
    # Hooks (override in subclasses)
    # =========================================================================

    def _validate_create(self, data: dict[str, Any], tenant_id: int) -> None:
        """Validate data before create."""
        pass

    def _validate_update(
        self, entity: ModelT, data: dict[str, Any], tenant_id: int
    ) -> None:
        """Validate data before update."""
        pass

    def _duplicate_key(self, data: dict[str, Any]) -> tuple[str, str] | None:
        """Entity and identifier reported when a unique constraint fails."""
        return None

    def _after_create(self, entity: ModelT, user_id: int | None, user_email: str | None) -> None:
        """Hook called after entity creation."""
        pass
