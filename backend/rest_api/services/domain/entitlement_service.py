"""
Entitlement Service - plan features, resource limits and usage counters.

A tenant's entitlements come from the plan of its current subscription
while that subscription is active, in trial or past due (grace period).
Without one, the default plan applies: the plan row named by
settings.default_plan_code, or DEFAULT_PLAN when that row is missing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rest_api.models import MenuItem, Order, Plan, ResourceUsage, Subscription, Table, User
from rest_api.services.crud.repository import BaseRepository, TenantRepository
from shared.config.constants import (
    DEFAULT_PLAN,
    UNLIMITED,
    LimitedResource,
    SubscriptionStatus,
)
from shared.config.logging import billing_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import as_utc, safe_commit, utc_now
from shared.utils.admin_schemas import EntitlementSummary
from shared.utils.exceptions import DatabaseError, EntitlementDeniedError, InternalError

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class PlanEntitlements:
    """Features and limits of the plan in force for a tenant."""

    code: str
    name: str
    tier: int
    features: frozenset[str] = field(default_factory=frozenset)
    limits: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanEntitlements":
        return cls(
            code=plan.code,
            name=plan.name,
            tier=plan.tier,
            features=frozenset(plan.features or []),
            limits=dict(plan.limits or {}),
        )

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> "PlanEntitlements":
        return cls(
            code=definition["code"],
            name=definition["name"],
            tier=definition["tier"],
            features=frozenset(definition["features"]),
            limits=dict(definition["limits"]),
        )


def month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Start of the calendar month of `moment` and start of the next one."""
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class EntitlementService:
    """
    Answers "may this tenant do X" for one tenant.

    The subscription and plan are loaded lazily once per instance; create
    one service per request.

    Usage:
        entitlements = EntitlementService(db, tenant_id)
        entitlements.require_feature(Features.TABLE_MANAGEMENT)
        entitlements.require_within_limit(LimitedResource.MAX_TABLES)
    """

    def __init__(
        self,
        db: Session,
        tenant_id: int,
        *,
        now: Callable[[], datetime] = utc_now,
        fail_closed: bool | None = None,
    ):
        self._db = db
        self._tenant_id = tenant_id
        self._now = now
        self._fail_closed = (
            settings.entitlement_fail_closed if fail_closed is None else fail_closed
        )
        self._counters: dict[str, Callable[[], int]] = {
            LimitedResource.MAX_TABLES: self._count_tables,
            LimitedResource.MAX_USERS: self._count_users,
            LimitedResource.MAX_MENU_ITEMS: self._count_menu_items,
            LimitedResource.MAX_MONTHLY_ORDERS: self._count_monthly_orders,
        }
        self._loaded = False
        self._subscription: Subscription | None = None
        self._plan: PlanEntitlements | None = None

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    # =========================================================================
    # Plan loading
    # =========================================================================

    def _load(self) -> None:
        if self._loaded:
            return

        self._subscription = self._db.scalar(
            select(Subscription)
            .where(
                Subscription.tenant_id == self._tenant_id,
                Subscription.status != SubscriptionStatus.CANCELED,
            )
            .order_by(Subscription.id.desc())
            .limit(1)
        )

        if (
            self._subscription is not None
            and self._subscription.status in SubscriptionStatus.ENTITLED
        ):
            self._plan = PlanEntitlements.from_plan(self._subscription.plan)
        else:
            self._plan = self._default_plan()

        self._loaded = True

    def _default_plan(self) -> PlanEntitlements:
        plan = BaseRepository(Plan, self._db).find_one_by(
            Plan.code == settings.default_plan_code
        )
        if plan is not None:
            return PlanEntitlements.from_plan(plan)
        logger.debug(
            "Default plan row missing, using built-in definition",
            plan_code=settings.default_plan_code,
        )
        return PlanEntitlements.from_definition(DEFAULT_PLAN)

    @property
    def plan(self) -> PlanEntitlements:
        self._load()
        return self._plan

    # =========================================================================
    # Features and limits
    # =========================================================================

    def has_feature(self, feature: str) -> bool:
        return feature in self.plan.features

    def get_limit(self, resource: str) -> int | None:
        """Plan limit for the resource, -1 for unlimited, None when not limited."""
        value = self.plan.limits.get(resource)
        return int(value) if value is not None else None

    def has_reached_limit(self, resource: str, current_value: int | None = None) -> bool:
        """
        True when the tenant may not create another unit of `resource`.

        A supplied current_value is compared directly; otherwise the
        registered counter for the resource is queried.
        """
        limit = self.get_limit(resource)
        if limit is None:
            logger.warning(
                "Limit check for resource not in plan",
                tenant_id=self._tenant_id,
                resource=resource,
                plan=self.plan.code,
            )
            return False
        if limit == UNLIMITED:
            return False

        if current_value is None:
            counter = self._counters.get(resource)
            if counter is None:
                logger.warning(
                    "No usage counter registered for limited resource",
                    tenant_id=self._tenant_id,
                    resource=resource,
                    fail_closed=self._fail_closed,
                )
                return self._fail_closed
            current_value = counter()

        return current_value >= limit

    def get_current_usage(self, resource: str) -> int:
        counter = self._counters.get(resource)
        return counter() if counter is not None else 0

    def require_feature(self, feature: str) -> None:
        """
        Raises:
            EntitlementDeniedError: If the plan does not include the feature.
        """
        if not self.has_feature(feature):
            raise EntitlementDeniedError.for_feature(
                feature, tenant_id=self._tenant_id, plan=self.plan.code
            )

    def require_within_limit(self, resource: str, current_value: int | None = None) -> None:
        """
        Raises:
            EntitlementDeniedError: If the resource limit has been reached.
        """
        if self.has_reached_limit(resource, current_value):
            raise EntitlementDeniedError.for_limit(
                resource,
                self.get_limit(resource),
                tenant_id=self._tenant_id,
                plan=self.plan.code,
            )

    # =========================================================================
    # Usage counters
    # =========================================================================

    def _count_tables(self) -> int:
        return TenantRepository(Table, self._db).count(self._tenant_id)

    def _count_users(self) -> int:
        return TenantRepository(User, self._db).count(self._tenant_id)

    def _count_menu_items(self) -> int:
        return TenantRepository(MenuItem, self._db).count(self._tenant_id)

    def _count_monthly_orders(self) -> int:
        start, end = month_bounds(self._now())
        return TenantRepository(Order, self._db).count(
            self._tenant_id,
            Order.started_at >= start,
            Order.started_at < end,
            include_inactive=True,
        )

    def record_resource_usage(self, resource_type: str, count: int = 1) -> int:
        """
        Add `count` to today's counter for the resource and return the new
        daily total. A single INSERT ... ON CONFLICT DO UPDATE, so concurrent
        callers never lose increments.
        """
        if count < 1:
            raise ValueError("count must be positive")

        dialect = self._db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise InternalError(f"Usage counters are not supported on {dialect}")

        today = self._now()
        stmt = (
            insert(ResourceUsage)
            .values(
                tenant_id=self._tenant_id,
                resource_type=resource_type,
                year=today.year,
                month=today.month,
                day=today.day,
                resource_count=count,
            )
            .on_conflict_do_update(
                index_elements=["tenant_id", "resource_type", "year", "month", "day"],
                set_={"resource_count": ResourceUsage.resource_count + count},
            )
            .returning(ResourceUsage.resource_count)
        )

        try:
            total = self._db.execute(stmt).scalar_one()
            safe_commit(self._db)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to record resource usage",
                tenant_id=self._tenant_id,
                resource=resource_type,
                error=str(e),
            )
            raise DatabaseError("record resource usage", tenant_id=self._tenant_id) from e

        return total

    def get_period_usage(
        self,
        resource_type: str,
        year: int,
        month: int,
        day: int | None = None,
    ) -> int:
        """Recorded usage for a month, or for one day of it."""
        query = select(func.coalesce(func.sum(ResourceUsage.resource_count), 0)).where(
            ResourceUsage.tenant_id == self._tenant_id,
            ResourceUsage.resource_type == resource_type,
            ResourceUsage.year == year,
            ResourceUsage.month == month,
        )
        if day is not None:
            query = query.where(ResourceUsage.day == day)
        return int(self._db.scalar(query) or 0)

    # =========================================================================
    # Subscription state
    # =========================================================================

    def get_subscription_status(self) -> str:
        self._load()
        if self._subscription is None:
            return SubscriptionStatus.NONE
        return self._subscription.status

    def is_subscription_active(self) -> bool:
        return self.get_subscription_status() in SubscriptionStatus.ACTIVE_STATES

    def get_remaining_trial_days(self) -> int:
        """Whole days left in the trial, rounded up; 0 outside a trial."""
        self._load()
        subscription = self._subscription
        if (
            subscription is None
            or subscription.status != SubscriptionStatus.TRIAL
            or subscription.trial_ends_at is None
        ):
            return 0
        remaining = (as_utc(subscription.trial_ends_at) - self._now()).total_seconds()
        if remaining <= 0:
            return 0
        return math.ceil(remaining / 86400)

    def can_upgrade_to(self, plan_code: str) -> bool:
        target = BaseRepository(Plan, self._db).find_one_by(Plan.code == plan_code)
        return target is not None and target.tier > self.plan.tier

    def can_downgrade_to(self, plan_code: str) -> bool:
        target = BaseRepository(Plan, self._db).find_one_by(Plan.code == plan_code)
        return target is not None and target.tier < self.plan.tier

    def summary(self) -> EntitlementSummary:
        plan = self.plan
        return EntitlementSummary(
            plan_code=plan.code,
            plan_name=plan.name,
            tier=plan.tier,
            subscription_status=self.get_subscription_status(),
            subscription_active=self.is_subscription_active(),
            trial_days_remaining=self.get_remaining_trial_days(),
            features=sorted(plan.features),
            limits={name: int(value) for name, value in plan.limits.items()},
            usage={
                resource: self.get_current_usage(resource)
                for resource in LimitedResource.ALL
                if resource in plan.limits
            },
        )
