"""Doctor repository - Database operations for doctor profiles and availability"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import AvailabilitySlot, Doctor


class DoctorRepository:
    """Repository for doctor database operations"""

    @staticmethod
    def list_approved(db: Session, specialization: Optional[str] = None) -> list[Doctor]:
        query = db.query(Doctor).options(joinedload(Doctor.user)).filter(Doctor.status == "approved")
        if specialization:
            query = query.filter(Doctor.specialization.ilike(f"%{specialization}%"))
        return query.order_by(Doctor.id.asc()).all()

    @staticmethod
    def list_available_for_emergency(db: Session) -> list[Doctor]:
        return (
            db.query(Doctor)
            .options(joinedload(Doctor.user))
            .filter(Doctor.status == "approved", Doctor.available_for_emergency == True)  # noqa: E712
            .order_by(Doctor.id.asc())
            .all()
        )

    @staticmethod
    def get_slots(db: Session, doctor_id: int) -> list[AvailabilitySlot]:
        return (
            db.query(AvailabilitySlot)
            .filter(AvailabilitySlot.doctor_id == doctor_id)
            .order_by(AvailabilitySlot.day_of_week.asc(), AvailabilitySlot.start_time.asc())
            .all()
        )

    @staticmethod
    def replace_slots(db: Session, doctor_id: int, slots: list[dict]) -> list[AvailabilitySlot]:
        """Delete every slot of the doctor and insert the new set in one transaction"""
        db.query(AvailabilitySlot).filter(AvailabilitySlot.doctor_id == doctor_id).delete(synchronize_session=False)
        for slot in slots:
            db.add(AvailabilitySlot(doctor_id=doctor_id, **slot))
        db.commit()
        return DoctorRepository.get_slots(db, doctor_id)
