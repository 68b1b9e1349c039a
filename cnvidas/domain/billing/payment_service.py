"""Consultation payment service - pre-authorization, capture and release"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment, User
from ..appointments.lifecycle import CANCELLED, ensure_transition, is_terminal
from ..appointments.service import AppointmentService, get_appointment_for_participant
from .plan_benefits import should_charge_for_emergency
from .stripe_service import PaymentProviderError, StripePaymentService

logger = logging.getLogger(__name__)


def _response(appointment: Appointment, **extra) -> dict:
    return {
        "appointment_id": appointment.id,
        "payment_status": appointment.payment_status,
        "payment_amount": appointment.payment_amount,
        "payment_intent_id": appointment.payment_intent_id,
        **extra,
    }


class PaymentService:
    """Manual-capture payments for consultations"""

    def __init__(self, db: Session, payments: StripePaymentService):
        self.db = db
        self.payments = payments

    def _require_stripe(self) -> None:
        if not self.payments.is_available():
            raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

    async def preauthorize(self, appointment_id: int, user: User) -> dict:
        """Hold the consultation price on the patient's card, or mark it as covered by the plan"""
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if appointment.user_id != user.id:
            raise HTTPException(status_code=403, detail="Only the patient can authorize this payment")
        if is_terminal(appointment.status):
            raise HTTPException(status_code=409, detail=f"Appointment is {appointment.status}")

        if appointment.payment_status == "included_in_plan":
            return _response(appointment, is_plan_included=True, message="Consultation included in your plan")

        if appointment.is_emergency and not should_charge_for_emergency(
            user.subscription_plan, user.emergency_consultations_left
        ):
            appointment.payment_status = "included_in_plan"
            self.db.commit()
            logger.info(f"ℹ️ Emergency {appointment.id} included in plan {user.subscription_plan}")
            return _response(appointment, is_plan_included=True, message="Consultation included in your plan")

        if appointment.payment_status == "authorized":
            raise HTTPException(status_code=409, detail="Payment already authorized")
        if not appointment.payment_amount:
            raise HTTPException(status_code=400, detail="Appointment has no amount to charge")

        self._require_stripe()
        try:
            customer_id = await self.payments.ensure_customer(user)
            if customer_id != user.stripe_customer_id:
                user.stripe_customer_id = customer_id
            intent = await self.payments.create_payment_intent(
                amount=appointment.payment_amount,
                customer_id=customer_id,
                capture_method="manual",
                metadata={
                    "appointment_id": appointment.id,
                    "doctor_id": appointment.doctor_id or "",
                    "user_id": user.id,
                    "plan_type": "consultation",
                },
                description=f"Consulta CN Vidas #{appointment.id}",
            )
        except PaymentProviderError as e:
            self.db.rollback()
            raise HTTPException(status_code=502, detail="Failed to authorize payment") from e

        appointment.payment_intent_id = intent.id
        appointment.payment_status = "authorized"
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"💳 Payment {intent.id} pre-authorized for appointment {appointment.id}")
        return _response(appointment, client_secret=intent.client_secret)

    async def capture(self, appointment_id: int, user: User) -> dict:
        """Capture the held amount once the consultation happened"""
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if user.role != "admin" and (not appointment.doctor or appointment.doctor.user_id != user.id):
            raise HTTPException(status_code=403, detail="Only the assigned doctor or an admin can capture")

        if appointment.payment_status == "included_in_plan":
            return _response(appointment, is_plan_included=True, message="Consultation included in plan, nothing to capture")
        if appointment.payment_status == "completed":
            return _response(appointment, message="Payment already captured")
        if appointment.payment_status != "authorized" or not appointment.payment_intent_id:
            raise HTTPException(status_code=400, detail="No authorized payment to capture")

        self._require_stripe()
        try:
            await self.payments.capture_payment_intent(appointment.payment_intent_id)
        except PaymentProviderError as e:
            raise HTTPException(status_code=502, detail="Failed to capture payment") from e

        appointment.payment_status = "completed"
        appointment.payment_captured_at = datetime.utcnow()
        AppointmentService(self.db, self.payments).finish_if_open(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Payment captured for appointment {appointment.id}")
        return _response(appointment)

    async def cancel(self, appointment_id: int, user: User) -> dict:
        """Release the authorization and cancel the appointment"""
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if appointment.is_emergency:
            raise HTTPException(status_code=400, detail="Use the emergency endpoints to cancel emergency consultations")
        if appointment.payment_status == "completed":
            raise HTTPException(status_code=409, detail="Payment already captured")
        if appointment.status != CANCELLED:
            ensure_transition(appointment, CANCELLED)

        if appointment.payment_intent_id and appointment.payment_status == "authorized":
            self._require_stripe()
            try:
                await self.payments.cancel_payment_intent(appointment.payment_intent_id)
            except PaymentProviderError as e:
                raise HTTPException(status_code=502, detail="Failed to release payment") from e

        appointment.payment_status = "cancelled"
        appointment.status = CANCELLED
        appointment.cancellation_reason = appointment.cancellation_reason or "payment_cancelled"
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🛑 Payment cancelled for appointment {appointment.id}")
        return _response(appointment)
