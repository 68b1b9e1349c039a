"""Doctor service - profiles, emergency availability and weekly slots"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import (
    get_available_doctors_cached,
    invalidate_available_doctors_cache,
    set_available_doctors_cached,
)
from ...models import Appointment, AvailabilitySlot, Doctor
from ..appointments.repository import AppointmentRepository
from .repository import DoctorRepository
from .schemas import AvailabilitySlotsReplace, DoctorResponse, DoctorUpdate

logger = logging.getLogger(__name__)


def serialize_doctor(doctor: Doctor) -> dict:
    return DoctorResponse(
        id=doctor.id,
        user_id=doctor.user_id,
        full_name=doctor.user.full_name if doctor.user else "",
        specialization=doctor.specialization,
        license_number=doctor.license_number,
        biography=doctor.biography,
        education=doctor.education,
        experience_years=doctor.experience_years,
        available_for_emergency=doctor.available_for_emergency,
        consultation_fee=doctor.consultation_fee,
        profile_image=doctor.profile_image or (doctor.user.profile_image if doctor.user else None),
        status=doctor.status,
        created_at=doctor.created_at,
    ).model_dump(mode="json")


class DoctorService:
    """Service layer for doctor business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DoctorRepository()

    def list_doctors(self, specialization: Optional[str] = None) -> list[dict]:
        return [serialize_doctor(d) for d in self.repo.list_approved(self.db, specialization)]

    def list_available(self) -> list[dict]:
        """Approved doctors on emergency duty (cached briefly)"""
        cached = get_available_doctors_cached()
        if cached is not None:
            return cached

        doctors = [serialize_doctor(d) for d in self.repo.list_available_for_emergency(self.db)]
        set_available_doctors_cached(doctors)
        return doctors

    def get_profile(self, doctor: Doctor) -> dict:
        return serialize_doctor(doctor)

    def update_profile(self, doctor: Doctor, data: DoctorUpdate) -> dict:
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(doctor, key, value)
        self.db.commit()
        self.db.refresh(doctor)
        invalidate_available_doctors_cache()
        return serialize_doctor(doctor)

    def toggle_availability(self, doctor: Doctor, available: Optional[bool] = None) -> dict:
        if doctor.status != "approved":
            raise HTTPException(status_code=403, detail="Only approved doctors can go on emergency duty")

        doctor.available_for_emergency = (not doctor.available_for_emergency) if available is None else available
        self.db.commit()
        self.db.refresh(doctor)
        invalidate_available_doctors_cache()

        logger.info(f"🩺 Doctor {doctor.id} emergency availability: {doctor.available_for_emergency}")
        return {"available_for_emergency": doctor.available_for_emergency}

    def get_slots(self, doctor: Doctor) -> list[AvailabilitySlot]:
        return self.repo.get_slots(self.db, doctor.id)

    def replace_slots(self, doctor: Doctor, data: AvailabilitySlotsReplace) -> list[AvailabilitySlot]:
        slots = [slot.model_dump() for slot in data.slots]
        try:
            result = self.repo.replace_slots(self.db, doctor.id, slots)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save availability for doctor {doctor.id}: {e}")
            raise
        logger.info(f"📅 Doctor {doctor.id} saved {len(result)} availability slots")
        return result

    def list_appointments(self, doctor: Doctor, status: Optional[str] = None) -> list[Appointment]:
        return AppointmentRepository.list_for_doctor(self.db, doctor.id, status)
