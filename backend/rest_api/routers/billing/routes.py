"""
Billing router.

Receives normalized subscription and payment events from the billing
adapter. The adapter verifies the payment processor's webhook itself and
authenticates to this endpoint with a shared token.
"""

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from rest_api.services.domain import SubscriptionService
from shared.config.constants import SubscriptionStatus
from shared.config.logging import billing_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.signing import verify_shared_token
from shared.utils.exceptions import AppException, ValidationError
from shared.utils.schemas import BillingEvent, BillingEventResult


router = APIRouter(prefix="/api/billing", tags=["billing"])


def require_billing_token(
    x_billing_token: str | None = Header(default=None, alias="X-Billing-Token"),
) -> None:
    if not verify_shared_token(x_billing_token, settings.billing_webhook_token):
        raise AppException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid billing token",
        )


def _require(event: BillingEvent, *fields: str) -> None:
    missing = [name for name in fields if getattr(event, name) is None]
    if missing:
        raise ValidationError(
            f"Event '{event.type}' requires: {', '.join(missing)}",
            event_type=event.type,
            missing=missing,
        )


@router.post("/events", response_model=BillingEventResult)
def receive_billing_event(
    event: BillingEvent,
    db: Session = Depends(get_db),
    _: None = Depends(require_billing_token),
) -> BillingEventResult:
    """
    Apply one billing event.

    Payment events are idempotent on external_invoice_id; replaying an
    event returns the stored result.
    """
    logger.info("Billing event received", type=event.type, tenant_ref=event.tenant_ref)
    service = SubscriptionService(db)

    if event.type == "subscription_created":
        _require(event, "external_subscription_id")
        subscription = service.subscription_created(
            event.tenant_ref,
            event.external_subscription_id,
            plan_code=event.plan_code,
            status=event.status or SubscriptionStatus.ACTIVE,
            trial_ends_at=event.trial_ends_at,
            next_billing_at=event.next_billing_at,
        )
    elif event.type == "subscription_status_changed":
        _require(event, "external_subscription_id", "status")
        subscription = service.subscription_status_changed(
            event.tenant_ref, event.external_subscription_id, event.status
        )
    elif event.type == "subscription_canceled":
        _require(event, "external_subscription_id")
        subscription = service.subscription_canceled(
            event.tenant_ref, event.external_subscription_id
        )
    elif event.type == "payment_succeeded":
        _require(event, "external_invoice_id")
        invoice = service.payment_succeeded(
            event.tenant_ref,
            event.external_invoice_id,
            event.amount_cents,
            next_billing_at=event.next_billing_at,
        )
        return BillingEventResult(
            type=event.type,
            processed=True,
            subscription_id=invoice.subscription_id,
            invoice_id=invoice.id,
        )
    else:
        _require(event, "external_invoice_id")
        invoice = service.payment_failed(
            event.tenant_ref, event.external_invoice_id, event.amount_cents
        )
        return BillingEventResult(
            type=event.type,
            processed=True,
            subscription_id=invoice.subscription_id,
            invoice_id=invoice.id,
        )

    return BillingEventResult(
        type=event.type,
        processed=True,
        subscription_id=subscription.id,
        subscription_status=subscription.status,
    )
