"""Emergency repository - queue queries and guarded status updates"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Doctor, User
from ..appointments.lifecycle import ACTIVE_EMERGENCY_STATUSES, CANCELLED, IN_PROGRESS, WAITING


class EmergencyRepository:
    """Repository for emergency appointment database operations"""

    @staticmethod
    def get_case(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.is_emergency == True)  # noqa: E712
            .first()
        )

    @staticmethod
    def get_active_case_for_patient(db: Session, user_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.user_id == user_id,
                Appointment.is_emergency == True,  # noqa: E712
                Appointment.status.in_(ACTIVE_EMERGENCY_STATUSES),
            )
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .first()
        )

    @staticmethod
    def get_latest_case_for_patient(db: Session, user_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.user_id == user_id, Appointment.is_emergency == True)  # noqa: E712
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .first()
        )

    @staticmethod
    def get_waiting_cases(db: Session) -> list[Appointment]:
        """Unclaimed emergency cases, oldest first"""
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.patient))
            .filter(
                Appointment.is_emergency == True,  # noqa: E712
                Appointment.status == WAITING,
                Appointment.doctor_id.is_(None),
            )
            .order_by(Appointment.created_at.asc(), Appointment.id.asc())
            .all()
        )

    @staticmethod
    def get_stale_waiting_cases(db: Session, cutoff: datetime) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.is_emergency == True,  # noqa: E712
                Appointment.status == WAITING,
                Appointment.doctor_id.is_(None),
                Appointment.date < cutoff,
            )
            .all()
        )

    @staticmethod
    def reserve_allowance(db: Session, user_id: int) -> bool:
        """Take one emergency consultation from the patient if any are left (not committed)"""
        updated = (
            db.query(User)
            .filter(User.id == user_id, User.emergency_consultations_left > 0)
            .update(
                {User.emergency_consultations_left: User.emergency_consultations_left - 1},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def refund_allowance(db: Session, appointment: Appointment) -> bool:
        """Give back the consultation reserved for this case (not committed)"""
        if not appointment.allowance_reserved:
            return False
        db.query(User).filter(User.id == appointment.user_id).update(
            {User.emergency_consultations_left: User.emergency_consultations_left + 1},
            synchronize_session=False,
        )
        appointment.allowance_reserved = False
        return True

    @staticmethod
    def claim(db: Session, appointment_id: int, doctor_id: int, now: datetime) -> bool:
        """
        Assign a waiting case to a doctor (not committed).

        The WHERE clause makes the claim single-winner: only the first
        UPDATE finds the row still waiting and unassigned.
        """
        updated = (
            db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.status == WAITING,
                Appointment.doctor_id.is_(None),
            )
            .update(
                {
                    Appointment.doctor_id: doctor_id,
                    Appointment.status: IN_PROGRESS,
                    Appointment.accepted_at: now,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def cancel_if_status(db: Session, appointment_id: int, statuses: tuple, reason: str) -> bool:
        """Cancel the case only if it is still in one of `statuses` (not committed)"""
        updated = (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.status.in_(statuses))
            .update(
                {Appointment.status: CANCELLED, Appointment.cancellation_reason: reason},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def get_emergency_doctors(db: Session, preferred_doctor_id: Optional[int] = None) -> list[Doctor]:
        """The preferred doctor if approved, otherwise every approved doctor on emergency duty"""
        query = db.query(Doctor).options(joinedload(Doctor.user)).filter(Doctor.status == "approved")
        if preferred_doctor_id:
            preferred = query.filter(Doctor.id == preferred_doctor_id).first()
            if preferred:
                return [preferred]
        return query.filter(Doctor.available_for_emergency == True).all()  # noqa: E712
