"""
Subscription Service - applies normalized billing events.

The billing adapter verifies the payment processor's webhook and forwards
a normalized event keyed by tenant_ref (the tenant's billing customer id).
Each handler runs in a single transaction.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import Invoice, Plan, Subscription, Tenant
from rest_api.services.base_service import BaseService
from rest_api.services.crud.repository import BaseRepository
from shared.config.constants import (
    PROVIDER_STATUS_MAP,
    InvoiceStatus,
    SubscriptionStatus,
)
from shared.config.logging import billing_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import utc_now
from shared.utils.admin_schemas import InvoiceOutput, SubscriptionOutput
from shared.utils.exceptions import ConflictError, NotFoundError


def map_provider_status(provider_status: str | None) -> str:
    """Processor subscription status to ours; anything unknown suspends."""
    if provider_status in SubscriptionStatus.ALL:
        return provider_status
    return PROVIDER_STATUS_MAP.get(provider_status or "", SubscriptionStatus.SUSPENDED)


class SubscriptionService(BaseService[Subscription]):
    """Billing event consumer and subscription lifecycle."""

    def __init__(self, db: Session, *, now: Callable[[], datetime] = utc_now):
        super().__init__(db, Subscription, now=now)
        self._plans = BaseRepository(Plan, db)
        self._tenants = BaseRepository(Tenant, db)

    # =========================================================================
    # Lookups
    # =========================================================================

    def _tenant_by_ref(self, tenant_ref: str) -> Tenant:
        tenant = self._tenants.find_one_by(
            Tenant.billing_customer_id == tenant_ref, include_inactive=True
        )
        if tenant is None:
            raise NotFoundError("Tenant", tenant_ref)
        return tenant

    def _plan(self, plan_code: str | None) -> Plan:
        code = plan_code or settings.default_plan_code
        plan = self._plans.find_one_by(Plan.code == code)
        if plan is None:
            raise NotFoundError("Plan", code)
        return plan

    def _current(self, tenant_id: int) -> Subscription | None:
        return self._repo.find_one_by(
            tenant_id,
            Subscription.status != SubscriptionStatus.CANCELED,
        )

    def _by_external_id(self, tenant_id: int, external_subscription_id: str) -> Subscription:
        subscription = self._repo.find_one_by(
            tenant_id,
            Subscription.external_subscription_id == external_subscription_id,
            include_inactive=True,
        )
        if subscription is None:
            raise NotFoundError(
                "Subscription", external_subscription_id, tenant_id=tenant_id
            )
        return subscription

    def get_current(self, tenant_id: int) -> SubscriptionOutput | None:
        subscription = self._current(tenant_id)
        return SubscriptionOutput.model_validate(subscription) if subscription else None

    # =========================================================================
    # Subscription events
    # =========================================================================

    def subscription_created(
        self,
        tenant_ref: str,
        external_subscription_id: str,
        plan_code: str | None = None,
        status: str = SubscriptionStatus.ACTIVE,
        trial_ends_at: datetime | None = None,
        next_billing_at: datetime | None = None,
    ) -> SubscriptionOutput:
        """
        Make the processor subscription the tenant's current one.

        Any other non-canceled subscription of the tenant is canceled first,
        in the same transaction. Replaying the event updates the same row.
        """
        tenant = self._tenant_by_ref(tenant_ref)
        plan = self._plan(plan_code)
        new_status = map_provider_status(status)
        now = self._now()

        existing = self._repo.find_one_by(
            tenant.id,
            Subscription.external_subscription_id == external_subscription_id,
            include_inactive=True,
        )

        for other in self._repo.find_all(
            tenant.id,
            Subscription.status != SubscriptionStatus.CANCELED,
            include_inactive=True,
        ):
            if existing is not None and other.id == existing.id:
                continue
            other.status = SubscriptionStatus.CANCELED
            other.ends_at = now
        # Cancellations must reach the database before the new current row
        self._db.flush()

        if existing is None:
            existing = Subscription(
                tenant_id=tenant.id,
                external_subscription_id=external_subscription_id,
            )
            self._db.add(existing)

        existing.plan_id = plan.id
        existing.status = new_status
        existing.trial_ends_at = trial_ends_at
        existing.next_billing_at = next_billing_at
        existing.ends_at = now if new_status == SubscriptionStatus.CANCELED else None

        self._commit("create subscription", tenant_id=tenant.id)
        self._db.refresh(existing)

        logger.info(
            "Subscription created",
            tenant_id=tenant.id,
            subscription_id=existing.id,
            plan=plan.code,
            status=new_status,
        )
        return SubscriptionOutput.model_validate(existing)

    def subscription_status_changed(
        self,
        tenant_ref: str,
        external_subscription_id: str,
        new_status: str,
    ) -> SubscriptionOutput:
        """
        Apply a processor status change.

        Canceled is terminal: a late or replayed event for a canceled
        subscription is logged and ignored.
        subscription_created is the way back in.
        """
        tenant = self._tenant_by_ref(tenant_ref)
        subscription = self._by_external_id(tenant.id, external_subscription_id)

        mapped = map_provider_status(new_status)
        previous = subscription.status
        if previous == SubscriptionStatus.CANCELED:
            if mapped != SubscriptionStatus.CANCELED:
                logger.warning(
                    "Ignoring status change for canceled subscription",
                    tenant_id=tenant.id,
                    subscription_id=subscription.id,
                    provider_status=new_status,
                )
            return SubscriptionOutput.model_validate(subscription)

        subscription.status = mapped
        if mapped == SubscriptionStatus.CANCELED:
            subscription.ends_at = self._now()

        self._commit(
            "update subscription status",
            tenant_id=tenant.id,
            subscription_id=subscription.id,
        )
        self._db.refresh(subscription)

        logger.info(
            "Subscription status changed",
            tenant_id=tenant.id,
            subscription_id=subscription.id,
            provider_status=new_status,
            previous=previous,
            status=mapped,
        )
        return SubscriptionOutput.model_validate(subscription)

    def subscription_canceled(
        self,
        tenant_ref: str,
        external_subscription_id: str,
    ) -> SubscriptionOutput:
        tenant = self._tenant_by_ref(tenant_ref)
        subscription = self._by_external_id(tenant.id, external_subscription_id)

        if subscription.status != SubscriptionStatus.CANCELED:
            subscription.status = SubscriptionStatus.CANCELED
            subscription.ends_at = self._now()
            self._commit(
                "cancel subscription",
                tenant_id=tenant.id,
                subscription_id=subscription.id,
            )
            self._db.refresh(subscription)
            logger.info(
                "Subscription canceled",
                tenant_id=tenant.id,
                subscription_id=subscription.id,
            )

        return SubscriptionOutput.model_validate(subscription)

    # =========================================================================
    # Payment events
    # =========================================================================

    def _existing_invoice(self, external_invoice_id: str) -> Invoice | None:
        return self._db.scalar(
            select(Invoice).where(Invoice.external_invoice_id == external_invoice_id)
        )

    def payment_succeeded(
        self,
        tenant_ref: str,
        external_invoice_id: str,
        amount_cents: int,
        next_billing_at: datetime | None = None,
    ) -> InvoiceOutput:
        """
        Record a paid invoice. Replays of the same invoice id are ignored.

        A past-due or suspended subscription becomes active again.
        """
        tenant = self._tenant_by_ref(tenant_ref)

        invoice = self._existing_invoice(external_invoice_id)
        if invoice is not None:
            logger.info(
                "Duplicate payment event ignored",
                tenant_id=tenant.id,
                invoice=external_invoice_id,
            )
            return InvoiceOutput.model_validate(invoice)

        now = self._now()
        subscription = self._current(tenant.id)
        invoice = Invoice(
            tenant_id=tenant.id,
            subscription_id=subscription.id if subscription else None,
            external_invoice_id=external_invoice_id,
            amount_cents=amount_cents,
            status=InvoiceStatus.PAID,
            paid_at=now,
        )
        self._db.add(invoice)

        if subscription is not None:
            if subscription.status in (SubscriptionStatus.PAST_DUE, SubscriptionStatus.SUSPENDED):
                subscription.status = SubscriptionStatus.ACTIVE
            if next_billing_at is not None:
                subscription.next_billing_at = next_billing_at

        self._commit("record payment", tenant_id=tenant.id, invoice=external_invoice_id)
        self._db.refresh(invoice)

        logger.info(
            "Payment recorded",
            tenant_id=tenant.id,
            invoice=external_invoice_id,
            amount_cents=amount_cents,
        )
        return InvoiceOutput.model_validate(invoice)

    def payment_failed(
        self,
        tenant_ref: str,
        external_invoice_id: str,
        amount_cents: int = 0,
    ) -> InvoiceOutput:
        """Record an uncollectible invoice and move the subscription to past_due."""
        tenant = self._tenant_by_ref(tenant_ref)

        invoice = self._existing_invoice(external_invoice_id)
        if invoice is not None:
            logger.info(
                "Duplicate payment failure ignored",
                tenant_id=tenant.id,
                invoice=external_invoice_id,
            )
            return InvoiceOutput.model_validate(invoice)

        subscription = self._current(tenant.id)
        invoice = Invoice(
            tenant_id=tenant.id,
            subscription_id=subscription.id if subscription else None,
            external_invoice_id=external_invoice_id,
            amount_cents=amount_cents,
            status=InvoiceStatus.UNCOLLECTIBLE,
        )
        self._db.add(invoice)

        if subscription is not None and subscription.status in SubscriptionStatus.ACTIVE_STATES:
            subscription.status = SubscriptionStatus.PAST_DUE

        self._commit("record failed payment", tenant_id=tenant.id, invoice=external_invoice_id)
        self._db.refresh(invoice)

        logger.warning(
            "Payment failed",
            tenant_id=tenant.id,
            invoice=external_invoice_id,
            subscription_id=subscription.id if subscription else None,
        )
        return InvoiceOutput.model_validate(invoice)

    # =========================================================================
    # Onboarding and plan changes
    # =========================================================================

    def start_trial(self, tenant_id: int, plan_code: str | None = None) -> SubscriptionOutput:
        """
        Start the onboarding trial.

        Raises:
            ConflictError: If the tenant already has a current subscription.
        """
        if self._current(tenant_id) is not None:
            raise ConflictError("Tenant already has a subscription", tenant_id=tenant_id)

        plan = self._plan(plan_code)
        subscription = Subscription(
            tenant_id=tenant_id,
            plan_id=plan.id,
            status=SubscriptionStatus.TRIAL,
            trial_ends_at=self._now() + timedelta(days=settings.trial_period_days),
        )
        self._db.add(subscription)
        self._commit("start trial", tenant_id=tenant_id)
        self._db.refresh(subscription)

        logger.info(
            "Trial started",
            tenant_id=tenant_id,
            plan=plan.code,
            days=settings.trial_period_days,
        )
        return SubscriptionOutput.model_validate(subscription)

    def change_plan(self, tenant_id: int, plan_code: str) -> SubscriptionOutput:
        subscription = self._current(tenant_id)
        if subscription is None:
            raise NotFoundError("Subscription", tenant_id=tenant_id)

        plan = self._plan(plan_code)
        previous_plan_id = subscription.plan_id
        subscription.plan_id = plan.id
        self._commit("change plan", tenant_id=tenant_id, subscription_id=subscription.id)
        self._db.refresh(subscription)

        logger.info(
            "Plan changed",
            tenant_id=tenant_id,
            subscription_id=subscription.id,
            previous_plan_id=previous_plan_id,
            plan=plan.code,
        )
        return SubscriptionOutput.model_validate(subscription)
