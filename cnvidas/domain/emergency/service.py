"""Emergency service - patient queue, doctor claim and case lifecycle"""

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Appointment, Doctor, User
from ..appointments.lifecycle import CANCELLED, COMPLETED, IN_PROGRESS, WAITING, ensure_transition
from ..billing.plan_benefits import has_unlimited_emergencies
from ..notifications.service import create_notification
from ..telemedicine.daily_service import DailyService, room_url, sanitize_room_name
from .repository import EmergencyRepository

logger = logging.getLogger(__name__)

EMERGENCY_DURATION_MINUTES = 30


class EmergencyService:
    """Service layer for emergency consultations"""

    def __init__(self, db: Session, video: DailyService):
        self.db = db
        self.video = video
        self.repo = EmergencyRepository()

    # ------------------------------------------------------------------
    # Patient side
    # ------------------------------------------------------------------

    def create_case(self, patient: User, preferred_doctor_id: Optional[int] = None, notes: Optional[str] = None) -> Appointment:
        """
        Open an emergency case in the waiting room.

        The case is always created unassigned. On counted plans one
        consultation is reserved in the same transaction as the insert.
        """
        existing = self.repo.get_active_case_for_patient(self.db, patient.id)
        if existing:
            self._raise_already_active(patient, existing)

        unlimited = has_unlimited_emergencies(patient.subscription_plan)
        if not unlimited and (patient.emergency_consultations_left or 0) <= 0:
            logger.warning(f"⚠️ Patient {patient.id} has no emergency consultations left ({patient.subscription_plan})")
            raise HTTPException(
                status_code=403,
                detail="No emergency consultations left on your plan. Upgrade your plan to continue.",
            )

        if preferred_doctor_id is not None:
            preferred = self.db.query(Doctor).filter(Doctor.id == preferred_doctor_id).first()
            if not preferred or preferred.status != "approved":
                raise HTTPException(status_code=400, detail="Preferred doctor not found")

        now = datetime.utcnow()
        room_name = sanitize_room_name(f"emergency-{patient.id}-{int(time.time() * 1000)}")

        try:
            if not unlimited and not self.repo.reserve_allowance(self.db, patient.id):
                self.db.rollback()
                raise HTTPException(status_code=403, detail="No emergency consultations left on your plan.")

            appointment = Appointment(
                user_id=patient.id,
                doctor_id=None,
                preferred_doctor_id=preferred_doctor_id,
                is_emergency=True,
                status=WAITING,
                type="emergency",
                date=now,
                duration=EMERGENCY_DURATION_MINUTES,
                notes=notes,
                telemed_provider="daily",
                telemed_room_name=room_name,
                telemed_link=room_url(room_name),
                payment_status="included_in_plan",
                allowance_reserved=not unlimited,
            )
            self.db.add(appointment)
            self.db.flush()

            for doctor in self.repo.get_emergency_doctors(self.db, preferred_doctor_id):
                create_notification(
                    self.db,
                    user_id=doctor.user_id,
                    title="Emergência: paciente aguardando",
                    message=f"{patient.full_name} está aguardando atendimento de emergência.",
                    type="emergency",
                    related_id=appointment.id,
                    link="/doctor/emergency",
                )

            self.db.commit()
        except HTTPException:
            raise
        except IntegrityError:
            # A concurrent start for the same patient committed first
            self.db.rollback()
            existing = self.repo.get_active_case_for_patient(self.db, patient.id)
            if not existing:
                raise
            self._raise_already_active(patient, existing)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create emergency case for patient {patient.id}: {e}")
            raise

        self.db.refresh(appointment)
        self.db.refresh(patient)
        logger.info(
            f"🚨 Emergency {appointment.id} opened by patient {patient.id} "
            f"(left: {'unlimited' if unlimited else patient.emergency_consultations_left})"
        )
        return appointment

    def _raise_already_active(self, patient: User, existing: Appointment) -> None:
        logger.info(f"ℹ️ Patient {patient.id} already has active emergency {existing.id}")
        raise HTTPException(
            status_code=409,
            detail={
                "message": "You already have an active emergency consultation",
                "appointment_id": existing.id,
                "status": existing.status,
                "room_url": existing.telemed_link,
            },
        )

    async def provision_room(self, appointment: Appointment) -> str:
        """Make sure the Daily room exists; the stored URL is always usable"""
        room = await self.video.ensure_room(appointment.telemed_room_name)
        if room["url"] != appointment.telemed_link:
            appointment.telemed_link = room["url"]
            self.db.commit()
        return appointment.telemed_link

    def get_latest(self, patient: User) -> Appointment:
        appointment = self.repo.get_latest_case_for_patient(self.db, patient.id)
        if not appointment:
            raise HTTPException(status_code=404, detail="No emergency consultations found")
        return appointment

    # ------------------------------------------------------------------
    # Doctor side
    # ------------------------------------------------------------------

    def list_waiting(self) -> list[dict]:
        now = datetime.utcnow()
        return [
            {
                "id": case.id,
                "patient_id": case.user_id,
                "patient_name": case.patient.full_name if case.patient else "Paciente",
                "notes": case.notes,
                "preferred_doctor_id": case.preferred_doctor_id,
                "waiting_since": case.date,
                "waiting_minutes": max(0, int((now - case.date).total_seconds() // 60)),
                "room_url": case.telemed_link,
            }
            for case in self.repo.get_waiting_cases(self.db)
        ]

    def accept(self, appointment_id: int, doctor: Doctor) -> Appointment:
        """
        Claim a waiting case for `doctor`.

        Exactly one doctor wins a case. The winner may repeat the call and
        gets the same result; everyone else gets 409.
        """
        if doctor.status != "approved":
            raise HTTPException(status_code=403, detail="Only approved doctors can accept emergencies")

        appointment = self.repo.get_case(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Emergency consultation not found")

        if appointment.doctor_id == doctor.id and appointment.status == IN_PROGRESS:
            logger.info(f"ℹ️ Doctor {doctor.id} re-accepted emergency {appointment_id}")
            return appointment

        claimed = self.repo.claim(self.db, appointment_id, doctor.id, datetime.utcnow())
        if not claimed:
            self.db.rollback()
            self.db.refresh(appointment)
            if appointment.doctor_id == doctor.id and appointment.status == IN_PROGRESS:
                return appointment
            logger.warning(
                f"⚠️ Doctor {doctor.id} lost emergency {appointment_id} "
                f"(status={appointment.status}, doctor={appointment.doctor_id})"
            )
            raise HTTPException(status_code=409, detail="This emergency was already taken or is no longer waiting")

        create_notification(
            self.db,
            user_id=appointment.user_id,
            title="Médico a caminho",
            message=f"Dr(a). {doctor.user.full_name} aceitou sua consulta de emergência.",
            type="emergency",
            related_id=appointment.id,
            link=f"/emergency/{appointment.id}",
        )
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Emergency {appointment_id} accepted by doctor {doctor.id}")
        return appointment

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def get_case_for_participant(self, appointment_id: int, user: User) -> Appointment:
        """Load a case visible to its patient, its assigned doctor or an admin"""
        appointment = self.repo.get_case(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Emergency consultation not found")

        if user.role == "admin" or appointment.user_id == user.id:
            return appointment
        if appointment.doctor and appointment.doctor.user_id == user.id:
            return appointment
        raise HTTPException(status_code=403, detail="You are not a participant of this consultation")

    async def create_join_token(self, appointment_id: int, user: User) -> dict:
        appointment = self.get_case_for_participant(appointment_id, user)
        if appointment.status not in (WAITING, IN_PROGRESS):
            raise HTTPException(status_code=409, detail=f"Consultation is {appointment.status}")

        is_owner = user.role == "doctor"
        await self.provision_room(appointment)
        token = await self.video.create_meeting_token(
            appointment.telemed_room_name,
            user_id=str(user.id),
            user_name=user.full_name,
            is_owner=is_owner,
        )
        return {
            "token": token,
            "room_name": appointment.telemed_room_name,
            "room_url": appointment.telemed_link,
            "is_owner": is_owner,
        }

    def complete(
        self, appointment_id: int, user: User, notes: Optional[str] = None, duration: Optional[int] = None
    ) -> Appointment:
        appointment = self.get_case_for_participant(appointment_id, user)
        if user.role == "admin":
            raise HTTPException(status_code=403, detail="Only the patient or the assigned doctor can complete")

        ensure_transition(appointment, COMPLETED)

        appointment.status = COMPLETED
        appointment.completed_at = datetime.utcnow()
        if notes:
            appointment.notes = notes
        if duration:
            appointment.duration = duration

        other_party_id = appointment.doctor.user_id if user.id == appointment.user_id else appointment.user_id
        create_notification(
            self.db,
            user_id=other_party_id,
            title="Consulta de emergência finalizada",
            message=f"A consulta de emergência #{appointment.id} foi finalizada.",
            type="emergency",
            related_id=appointment.id,
        )
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Emergency {appointment_id} completed by user {user.id}")
        return appointment

    def cancel(self, appointment_id: int, user: User) -> Appointment:
        """
        Patients may cancel while waiting; admins while waiting or in progress.
        A waiting case gives the reserved consultation back.
        """
        appointment = self.repo.get_case(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Emergency consultation not found")

        if user.role == "admin":
            allowed = (WAITING, IN_PROGRESS)
            reason = "admin_cancelled"
        elif appointment.user_id == user.id:
            allowed = (WAITING,)
            reason = "patient_cancelled"
        else:
            raise HTTPException(status_code=403, detail="You cannot cancel this consultation")

        ensure_transition(appointment, CANCELLED)
        was_waiting = appointment.status == WAITING

        if not self.repo.cancel_if_status(self.db, appointment.id, allowed, reason):
            self.db.rollback()
            self.db.refresh(appointment)
            raise HTTPException(
                status_code=409,
                detail=f"Consultation can no longer be cancelled (status: {appointment.status})",
            )

        self.db.refresh(appointment)
        if was_waiting:
            self.repo.refund_allowance(self.db, appointment)

        if appointment.doctor and appointment.doctor.user_id != user.id:
            create_notification(
                self.db,
                user_id=appointment.doctor.user_id,
                title="Consulta de emergência cancelada",
                message=f"A consulta de emergência #{appointment.id} foi cancelada.",
                type="emergency",
                related_id=appointment.id,
            )
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🛑 Emergency {appointment_id} cancelled by user {user.id} ({reason})")
        return appointment

    def get_status(self, appointment_id: int, user: User) -> dict:
        appointment = self.get_case_for_participant(appointment_id, user)
        return {
            "id": appointment.id,
            "status": appointment.status,
            "doctor_id": appointment.doctor_id,
            "doctor_name": appointment.doctor.user.full_name if appointment.doctor else None,
            "room_name": appointment.telemed_room_name,
            "room_url": appointment.telemed_link,
            "created_at": appointment.created_at,
            "accepted_at": appointment.accepted_at,
            "completed_at": appointment.completed_at,
            "cancellation_reason": appointment.cancellation_reason,
        }
