"""Appointment service - Business logic for regular consultations"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment, Doctor, User
from ..billing.plan_benefits import calculate_price_with_discount
from ..billing.stripe_service import PaymentProviderError, StripePaymentService
from ..notifications.service import create_notification
from ..telemedicine.daily_service import room_url, sanitize_room_name
from .lifecycle import CANCELLED, COMPLETED, IN_PROGRESS, SCHEDULED, ensure_transition, is_terminal
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentUpdate

logger = logging.getLogger(__name__)


def doctor_profile_id(db: Session, user: User) -> Optional[int]:
    if user.role != "doctor":
        return None
    doctor = db.query(Doctor).filter(Doctor.user_id == user.id).first()
    return doctor.id if doctor else None


def get_appointment_for_participant(db: Session, appointment_id: int, user: User) -> Appointment:
    """Load an appointment visible to its patient, its assigned doctor or an admin"""
    appointment = AppointmentRepository.get_by_id(db, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    if user.role == "admin" or appointment.user_id == user.id:
        return appointment
    if appointment.doctor and appointment.doctor.user_id == user.id:
        return appointment

    logger.warning(f"⚠️ User {user.id} denied access to appointment {appointment_id}")
    raise HTTPException(status_code=403, detail="You do not have access to this appointment")


class AppointmentService:
    """Service layer for regular appointment business logic"""

    def __init__(self, db: Session, payments: StripePaymentService):
        self.db = db
        self.payments = payments
        self.repo = AppointmentRepository()

    def create_appointment(self, data: AppointmentCreate, patient: User) -> Appointment:
        """Book a consultation with an approved doctor at the plan-discounted price"""
        logger.info(f"📥 Booking appointment for patient {patient.id} with doctor {data.doctor_id}")

        doctor = self.repo.get_approved_doctor(self.db, data.doctor_id)
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found or not approved")

        if data.date <= datetime.utcnow():
            raise HTTPException(status_code=400, detail="Appointment date must be in the future")

        price = calculate_price_with_discount(doctor.consultation_fee or 0, patient.subscription_plan)

        try:
            appointment = self.repo.create(
                self.db,
                user_id=patient.id,
                doctor_id=doctor.id,
                is_emergency=False,
                status=SCHEDULED,
                type=data.type,
                date=data.date,
                duration=data.duration,
                notes=data.notes,
                specialization=data.specialization or doctor.specialization,
                payment_status="pending",
                payment_amount=price["final_price"],
            )

            if data.type == "telemedicine":
                room_name = sanitize_room_name(f"appointment-{appointment.id}")
                appointment.telemed_provider = "daily"
                appointment.telemed_room_name = room_name
                appointment.telemed_link = room_url(room_name)

            create_notification(
                self.db,
                user_id=doctor.user_id,
                title="Nova consulta agendada",
                message=f"{patient.full_name} agendou uma consulta para {data.date:%d/%m/%Y %H:%M}.",
                type="appointment",
                related_id=appointment.id,
                link=f"/appointments/{appointment.id}",
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to book appointment for patient {patient.id}: {e}")
            raise

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} booked "
            f"(price {price['final_price']} after {price['discount_percentage']}% discount)"
        )
        return appointment

    def list_appointments(self, user: User, status: Optional[str] = None) -> list[Appointment]:
        return self.repo.list_for_participant(self.db, user.id, doctor_profile_id(self.db, user), status)

    def list_upcoming(self, user: User) -> list[Appointment]:
        return self.repo.list_upcoming(self.db, user.id, doctor_profile_id(self.db, user), datetime.utcnow())

    def get_appointment(self, appointment_id: int, user: User) -> Appointment:
        return get_appointment_for_participant(self.db, appointment_id, user)

    def _get_for_assigned_doctor(self, appointment_id: int, user: User) -> Appointment:
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if not appointment.doctor or appointment.doctor.user_id != user.id:
            raise HTTPException(status_code=403, detail="Only the assigned doctor can do this")
        return appointment

    def update_appointment(self, appointment_id: int, data: AppointmentUpdate, user: User) -> Appointment:
        """Reschedule while the appointment is still scheduled"""
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if appointment.status != SCHEDULED:
            raise HTTPException(status_code=409, detail=f"Only scheduled appointments can be changed ({appointment.status})")

        if data.date is not None and data.date <= datetime.utcnow():
            raise HTTPException(status_code=400, detail="Appointment date must be in the future")

        return self.repo.update(self.db, appointment, date=data.date, duration=data.duration, notes=data.notes)

    def start_appointment(self, appointment_id: int, user: User) -> Appointment:
        appointment = self._get_for_assigned_doctor(appointment_id, user)
        ensure_transition(appointment, IN_PROGRESS)

        appointment.status = IN_PROGRESS
        appointment.accepted_at = appointment.accepted_at or datetime.utcnow()
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"▶️ Appointment {appointment_id} started by doctor user {user.id}")
        return appointment

    def complete_appointment(self, appointment_id: int, user: User, notes: Optional[str] = None) -> Appointment:
        appointment = self._get_for_assigned_doctor(appointment_id, user)
        ensure_transition(appointment, COMPLETED)

        appointment.status = COMPLETED
        appointment.completed_at = datetime.utcnow()
        if notes:
            appointment.notes = notes
        create_notification(
            self.db,
            user_id=appointment.user_id,
            title="Consulta finalizada",
            message=f"Sua consulta #{appointment.id} foi finalizada.",
            type="appointment",
            related_id=appointment.id,
        )
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} completed")
        return appointment

    async def cancel_appointment(self, appointment_id: int, user: User, reason: Optional[str] = None) -> Appointment:
        """Cancel an appointment and release any pre-authorized payment"""
        appointment = get_appointment_for_participant(self.db, appointment_id, user)
        if appointment.is_emergency:
            raise HTTPException(status_code=400, detail="Use the emergency endpoints to cancel emergency consultations")
        ensure_transition(appointment, CANCELLED)

        if appointment.payment_status == "authorized" and appointment.payment_intent_id:
            try:
                await self.payments.cancel_payment_intent(appointment.payment_intent_id)
            except PaymentProviderError as e:
                raise HTTPException(status_code=502, detail="Could not release the payment authorization") from e
            appointment.payment_status = "cancelled"

        appointment.status = CANCELLED
        appointment.cancellation_reason = reason or f"{user.role}_cancelled"

        notify_user_id = appointment.user_id
        if user.id == appointment.user_id and appointment.doctor:
            notify_user_id = appointment.doctor.user_id
        if notify_user_id != user.id:
            create_notification(
                self.db,
                user_id=notify_user_id,
                title="Consulta cancelada",
                message=f"A consulta #{appointment.id} de {appointment.date:%d/%m/%Y %H:%M} foi cancelada.",
                type="appointment",
                related_id=appointment.id,
            )

        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🛑 Appointment {appointment_id} cancelled by user {user.id}")
        return appointment

    def finish_if_open(self, appointment: Appointment) -> None:
        """Complete an appointment after payment capture unless it already ended"""
        if is_terminal(appointment.status):
            return
        ensure_transition(appointment, COMPLETED)
        appointment.status = COMPLETED
        appointment.completed_at = datetime.utcnow()
