"""
Seed data for development and testing.
Creates the plan catalogue and, outside production, a demo tenant.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import Plan, Subscription, Tenant
from shared.config.constants import (
    DEFAULT_PLAN,
    UNLIMITED,
    Features,
    LimitedResource,
    SubscriptionStatus,
)
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit, utc_now

logger = get_logger(__name__)


PLAN_DEFINITIONS: list[dict[str, Any]] = [
    {**DEFAULT_PLAN, "price_cents": 4900},
    {
        "code": "professional",
        "name": "Professional",
        "tier": 2,
        "price_cents": 9900,
        "features": [
            Features.TABLE_MANAGEMENT,
            Features.QRCODE_BASIC,
            Features.QRCODE_ADVANCED,
            Features.BASIC_REPORTS,
            Features.FULL_REPORTS,
            Features.INVENTORY_MANAGEMENT,
        ],
        "limits": {
            LimitedResource.MAX_TABLES: 30,
            LimitedResource.MAX_USERS: 10,
            LimitedResource.MAX_MENU_ITEMS: 200,
            LimitedResource.MAX_MONTHLY_ORDERS: 3000,
        },
    },
    {
        "code": "enterprise",
        "name": "Enterprise",
        "tier": 3,
        "price_cents": 19900,
        "features": [
            Features.TABLE_MANAGEMENT,
            Features.QRCODE_BASIC,
            Features.QRCODE_ADVANCED,
            Features.BASIC_REPORTS,
            Features.FULL_REPORTS,
            Features.INVENTORY_MANAGEMENT,
            Features.MULTI_BRANCH,
            Features.API_ACCESS,
        ],
        "limits": {
            LimitedResource.MAX_TABLES: UNLIMITED,
            LimitedResource.MAX_USERS: UNLIMITED,
            LimitedResource.MAX_MENU_ITEMS: UNLIMITED,
            LimitedResource.MAX_MONTHLY_ORDERS: UNLIMITED,
        },
    },
]


def seed_plans(db: Session) -> int:
    """
    Insert missing plans. Existing rows are left untouched.
    Returns the number of plans created.
    """
    existing = set(db.scalars(select(Plan.code)).all())
    created = 0
    for definition in PLAN_DEFINITIONS:
        if definition["code"] in existing:
            continue
        db.add(
            Plan(
                code=definition["code"],
                name=definition["name"],
                tier=definition["tier"],
                price_cents=definition["price_cents"],
                features=list(definition["features"]),
                limits=dict(definition["limits"]),
            )
        )
        created += 1

    if created:
        safe_commit(db)
        logger.info("Plans seeded", created=created)
    return created


def seed_demo_tenant(db: Session) -> Tenant:
    """Demo tenant on a trial of the default plan. Idempotent."""
    slug = settings.tenant_default_slug or "demo"
    tenant = db.scalar(select(Tenant).where(Tenant.slug == slug))
    if tenant is not None:
        return tenant

    tenant = Tenant(name="Demo Restaurant", slug=slug, billing_customer_id=f"cus_{slug}")
    db.add(tenant)
    db.flush()

    plan = db.scalar(select(Plan).where(Plan.code == settings.default_plan_code))
    if plan is not None:
        db.add(
            Subscription(
                tenant_id=tenant.id,
                plan_id=plan.id,
                status=SubscriptionStatus.TRIAL,
                trial_ends_at=utc_now() + timedelta(days=settings.trial_period_days),
            )
        )

    safe_commit(db)
    db.refresh(tenant)
    logger.info("Demo tenant seeded", tenant_id=tenant.id, slug=slug)
    return tenant


def seed(db: Session) -> None:
    """Seed everything the running service needs."""
    seed_plans(db)
    if settings.environment != "production":
        seed_demo_tenant(db)
