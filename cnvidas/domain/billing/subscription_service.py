"""Subscription service - Business logic for plan purchase and cancellation"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import SubscriptionPlan, User
from ..notifications.service import create_notification
from .plan_benefits import (
    PLAN_CYCLE_DAYS,
    emergency_allowance_for,
    format_plan_name,
    get_discount_percentage,
    has_unlimited_emergencies,
)
from .repository import BillingRepository
from .stripe_service import PaymentProviderError, StripePaymentService

logger = logging.getLogger(__name__)


def next_reset_date(subscription_start: datetime, current_time: datetime) -> datetime:
    """
    Next allowance reset, in 30-day cycles counted from the subscription start.
    """
    days_since_start = (current_time - subscription_start).days
    cycles_passed = max(0, days_since_start // PLAN_CYCLE_DAYS)
    return subscription_start + timedelta(days=(cycles_passed + 1) * PLAN_CYCLE_DAYS)


def activate_plan(
    db: Session, user: User, plan: SubscriptionPlan, payment_intent_id: Optional[str] = None, now: Optional[datetime] = None
) -> bool:
    """
    Put the user on `plan` for a 30-day cycle and refill the emergency allowance.

    Returns False when this payment already activated the plan, so webhook
    retries and confirm-payment can both call it.
    """
    if (
        payment_intent_id
        and user.stripe_subscription_id == payment_intent_id
        and user.subscription_status == "active"
        and user.subscription_plan == plan.name
    ):
        logger.info(f"ℹ️ Payment {payment_intent_id} already activated plan {plan.name} for user {user.id}")
        return False

    now = now or datetime.utcnow()
    allowance = emergency_allowance_for(plan.name)

    user.subscription_plan = plan.name
    user.subscription_plan_id = plan.id
    user.subscription_status = "active"
    user.subscription_start_date = now
    user.subscription_end_date = now + timedelta(days=PLAN_CYCLE_DAYS)
    user.emergency_consultations_left = allowance or 0
    user.allowance_reset_date = now + timedelta(days=PLAN_CYCLE_DAYS)
    if payment_intent_id:
        user.stripe_subscription_id = payment_intent_id

    create_notification(
        db,
        user_id=user.id,
        title="Assinatura ativada",
        message=f"Seu plano {format_plan_name(plan.name)} está ativo.",
        type="subscription",
        related_id=plan.id,
        link="/subscription",
    )
    db.commit()
    db.refresh(user)
    logger.info(f"✅ User {user.id} activated plan {plan.name} (allowance: {allowance if allowance is not None else 'unlimited'})")
    return True


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session, payments: StripePaymentService):
        self.db = db
        self.payments = payments
        self.repo = BillingRepository()

    def list_plans(self) -> list[SubscriptionPlan]:
        return self.repo.list_plans(self.db)

    def get_current(self, user: User) -> dict:
        unlimited = has_unlimited_emergencies(user.subscription_plan)
        return {
            "plan": user.subscription_plan,
            "plan_display_name": format_plan_name(user.subscription_plan),
            "subscription_status": user.subscription_status,
            "subscription_start_date": user.subscription_start_date,
            "subscription_end_date": user.subscription_end_date,
            "emergency_consultations_left": None if unlimited else user.emergency_consultations_left,
            "unlimited_emergencies": unlimited,
            "specialist_discount": get_discount_percentage(user.subscription_plan),
            "allowance_reset_date": user.allowance_reset_date,
        }

    async def create_session(self, plan_id: int, user: User) -> dict:
        """Create a PaymentIntent the client confirms with Stripe Elements"""
        plan = self.repo.get_plan(self.db, plan_id)
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        if plan.price <= 0:
            raise HTTPException(status_code=400, detail="The free plan does not require payment")

        if not self.payments.is_available():
            raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

        try:
            customer_id = await self.payments.ensure_customer(user)
            if customer_id != user.stripe_customer_id:
                user.stripe_customer_id = customer_id
                self.db.commit()

            intent = await self.payments.create_payment_intent(
                amount=plan.price,
                customer_id=customer_id,
                metadata={
                    "plan_id": plan.id,
                    "plan_name": plan.name,
                    "plan_type": "subscription",
                    "user_id": user.id,
                },
                description=f"Assinatura CN Vidas - {plan.display_name}",
            )
        except PaymentProviderError as e:
            raise HTTPException(status_code=502, detail="Failed to create payment session") from e

        logger.info(f"✅ Subscription payment intent {intent.id} created for user {user.id} (plan {plan.name})")
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount": plan.price,
            "currency": self.payments.currency,
            "plan_name": plan.name,
        }

    async def confirm_payment(self, payment_intent_id: str, user: User) -> dict:
        if not self.payments.is_available():
            raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

        try:
            intent = await self.payments.retrieve_payment_intent(payment_intent_id)
        except PaymentProviderError as e:
            raise HTTPException(status_code=502, detail="Could not verify the payment") from e

        metadata = intent.metadata or {}
        if str(metadata.get("user_id")) != str(user.id) or metadata.get("plan_type") != "subscription":
            logger.warning(f"⚠️ User {user.id} tried to confirm foreign payment {payment_intent_id}")
            raise HTTPException(status_code=403, detail="This payment does not belong to you")

        if intent.status != "succeeded":
            raise HTTPException(status_code=400, detail=f"Payment not completed (status: {intent.status})")

        plan = self.repo.get_plan(self.db, int(metadata.get("plan_id")))
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")

        activate_plan(self.db, user, plan, payment_intent_id)
        return self.get_current(user)

    def cancel(self, user: User) -> dict:
        if user.subscription_plan == "free" and user.subscription_status != "active":
            raise HTTPException(status_code=400, detail="No active subscription found")

        previous = user.subscription_plan
        free_plan = self.repo.get_plan_by_name(self.db, "free")

        user.subscription_plan = "free"
        user.subscription_plan_id = free_plan.id if free_plan else None
        user.subscription_status = "cancelled"
        user.emergency_consultations_left = 0
        user.allowance_reset_date = None
        user.last_subscription_cancellation = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"🛑 User {user.id} cancelled subscription {previous}")
        return self.get_current(user)

    def reset_allowances(self, now: Optional[datetime] = None) -> dict:
        """Refill emergency allowances for counted plans whose cycle has rolled over"""
        now = now or datetime.utcnow()
        refreshed = 0

        for user in self.repo.get_users_due_for_reset(self.db, now):
            allowance = emergency_allowance_for(user.subscription_plan)
            if allowance is not None:
                user.emergency_consultations_left = allowance
            start = user.subscription_start_date or user.created_at or now
            user.allowance_reset_date = next_reset_date(start, now)
            refreshed += 1

        self.db.commit()
        if refreshed:
            logger.info(f"🔄 Refilled emergency allowance for {refreshed} users")
        return {"users_refreshed": refreshed, "checked_at": now.isoformat()}
