"""
Tenant, entitlement and subscription endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.routers._common import current_tenant, require_management, tenant_user
from rest_api.services.domain import EntitlementService, SubscriptionService, TenantIdentity
from shared.infrastructure.db import get_db
from shared.utils.admin_schemas import EntitlementSummary, SubscriptionOutput, TenantOutput
from shared.utils.exceptions import NotFoundError


router = APIRouter(tags=["tenant"])


@router.get("/tenant", response_model=TenantOutput)
def get_tenant(
    tenant: TenantIdentity = Depends(current_tenant),
    user: dict = Depends(tenant_user),
) -> TenantOutput:
    """The tenant resolved for this request."""
    return TenantOutput.model_validate(tenant)


@router.get("/entitlements", response_model=EntitlementSummary)
def get_entitlements(
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(tenant_user),
) -> EntitlementSummary:
    """Plan in force, its features and limits, and current usage."""
    return EntitlementService(db, tenant.id).summary()


@router.get("/subscription", response_model=SubscriptionOutput)
def get_subscription(
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> SubscriptionOutput:
    subscription = SubscriptionService(db).get_current(tenant.id)
    if subscription is None:
        raise NotFoundError("Subscription", tenant_id=tenant.id)
    return subscription


@router.post(
    "/subscription/trial",
    response_model=SubscriptionOutput,
    status_code=status.HTTP_201_CREATED,
)
def start_trial(
    plan_code: str | None = None,
    tenant: TenantIdentity = Depends(current_tenant),
    db: Session = Depends(get_db),
    user: dict = Depends(require_management),
) -> SubscriptionOutput:
    """Start the onboarding trial. 409 if the tenant already subscribed."""
    return SubscriptionService(db).start_trial(tenant.id, plan_code)
