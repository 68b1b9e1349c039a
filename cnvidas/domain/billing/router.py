"""Billing router - subscriptions, consultation payments and Stripe webhooks"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from .payment_service import PaymentService
from .repository import BillingRepository
from .schemas import (
    ConfirmPaymentRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    CurrentSubscriptionResponse,
    PaymentStatusResponse,
    PlanResponse,
    PreauthorizeRequest,
)
from .stripe_service import StripePaymentService, get_stripe_service
from .subscription_service import SubscriptionService, activate_plan

logger = logging.getLogger(__name__)

subscription_router = APIRouter(prefix="/subscription", tags=["Subscription"])
payments_router = APIRouter(prefix="/payments", tags=["Payments"])
webhook_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_subscription_service(
    db: Session = Depends(get_db),
    payments: StripePaymentService = Depends(get_stripe_service),
) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db, payments)


def get_payment_service(
    db: Session = Depends(get_db),
    payments: StripePaymentService = Depends(get_stripe_service),
) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, payments)


# ============================================================================
# SUBSCRIPTION MANAGEMENT
# ============================================================================


@subscription_router.get("/plans", response_model=list[PlanResponse])
async def list_plans(service: SubscriptionService = Depends(get_subscription_service)):
    """Available subscription plans, cheapest first"""
    return service.list_plans()


@subscription_router.get("/current", response_model=CurrentSubscriptionResponse)
async def current_subscription(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.get_current(user)


@subscription_router.post("/create-session", response_model=CreateSessionResponse)
async def create_session(
    body: CreateSessionRequest,
    user: User = Depends(require_roles("patient")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Start a plan purchase; the client confirms the returned PaymentIntent"""
    return await service.create_session(body.plan_id, user)


@subscription_router.post("/confirm-payment", response_model=CurrentSubscriptionResponse)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    user: User = Depends(require_roles("patient")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.confirm_payment(body.payment_intent_id, user)


@subscription_router.post("/cancel", response_model=CurrentSubscriptionResponse)
async def cancel_subscription(
    user: User = Depends(require_roles("patient")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.cancel(user)


# ============================================================================
# CONSULTATION PAYMENTS
# ============================================================================


@payments_router.post("/preauthorize", response_model=PaymentStatusResponse)
async def preauthorize_payment(
    body: PreauthorizeRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Hold the consultation price until the doctor captures it"""
    return await service.preauthorize(body.appointment_id, user)


@payments_router.post("/capture/{appointment_id}", response_model=PaymentStatusResponse)
async def capture_payment(
    appointment_id: int,
    user: User = Depends(require_roles("doctor", "admin")),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.capture(appointment_id, user)


@payments_router.post("/cancel/{appointment_id}", response_model=PaymentStatusResponse)
async def cancel_payment(
    appointment_id: int,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.cancel(appointment_id, user)


# ============================================================================
# STRIPE WEBHOOK
# ============================================================================


@webhook_router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    payments: StripePaymentService = Depends(get_stripe_service),
):
    """Handle Stripe events. The signature is verified before anything is read"""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = payments.construct_webhook_event(payload, signature)
    except ValueError as e:
        logger.warning(f"⚠️ Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook signature") from e

    event_type = event["type"]
    intent = event["data"]["object"]
    metadata = intent.get("metadata") or {}
    logger.info(f"📨 Stripe webhook received: {event_type} ({intent.get('id')})")

    repo = BillingRepository()

    if event_type == "payment_intent.succeeded" and metadata.get("plan_type") == "subscription":
        user = repo.get_user_by_id(db, int(metadata.get("user_id", 0)))
        plan = repo.get_plan(db, int(metadata.get("plan_id", 0)))
        if not user or not plan:
            logger.error(f"❌ Webhook references unknown user/plan: {metadata}")
            return {"received": True, "handled": False}
        activated = activate_plan(db, user, plan, intent.get("id"))
        return {"received": True, "handled": True, "activated": activated}

    if event_type == "payment_intent.canceled":
        appointment = repo.get_appointment_by_payment_intent(db, intent.get("id"))
        if appointment and appointment.payment_status != "cancelled":
            appointment.payment_status = "cancelled"
            db.commit()
            logger.info(f"🛑 Payment for appointment {appointment.id} cancelled at Stripe")
        return {"received": True, "handled": appointment is not None}

    return {"received": True, "handled": False}
