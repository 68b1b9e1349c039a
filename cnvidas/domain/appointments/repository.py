"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Appointment, Doctor
from .lifecycle import SCHEDULED


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_approved_doctor(db: Session, doctor_id: int) -> Optional[Doctor]:
        return db.query(Doctor).filter(Doctor.id == doctor_id, Doctor.status == "approved").first()

    @staticmethod
    def list_for_participant(
        db: Session, user_id: int, doctor_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Appointment]:
        """Appointments where the user is the patient or the assigned doctor"""
        condition = Appointment.user_id == user_id
        if doctor_id:
            condition = or_(condition, Appointment.doctor_id == doctor_id)

        query = db.query(Appointment).filter(condition)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.date.desc(), Appointment.id.desc()).all()

    @staticmethod
    def list_upcoming(db: Session, user_id: int, doctor_id: Optional[int], now: datetime) -> list[Appointment]:
        condition = Appointment.user_id == user_id
        if doctor_id:
            condition = or_(condition, Appointment.doctor_id == doctor_id)

        return (
            db.query(Appointment)
            .filter(condition, Appointment.status == SCHEDULED, Appointment.date >= now)
            .order_by(Appointment.date.asc())
            .all()
        )

    @staticmethod
    def list_for_doctor(db: Session, doctor_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.date.desc()).all()

    @staticmethod
    def create(db: Session, **appointment_data) -> Appointment:
        """Add an appointment and flush so its id is available (caller commits)"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def update(db: Session, appointment: Appointment, **updates) -> Appointment:
        for key, value in updates.items():
            if value is not None and hasattr(appointment, key):
                setattr(appointment, key, value)
        db.commit()
        db.refresh(appointment)
        return appointment
