"""Doctor router - directory, profile and availability endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_doctor
from ...database import get_db
from ...models import Doctor
from ..appointments.schemas import AppointmentResponse
from .schemas import (
    AvailabilitySlotResponse,
    AvailabilitySlotsReplace,
    DoctorResponse,
    DoctorUpdate,
    ToggleAvailabilityRequest,
)
from .service import DoctorService

router = APIRouter(prefix="/doctors", tags=["Doctors"])


def get_doctor_service(db: Session = Depends(get_db)) -> DoctorService:
    """Dependency injection for DoctorService"""
    return DoctorService(db)


# ============================================================================
# PUBLIC DIRECTORY
# ============================================================================


@router.get("", response_model=list[DoctorResponse])
async def list_doctors(
    specialization: Optional[str] = Query(None),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.list_doctors(specialization)


@router.get("/available", response_model=list[DoctorResponse])
async def available_doctors(service: DoctorService = Depends(get_doctor_service)):
    """Doctors currently taking emergency calls"""
    return service.list_available()


# ============================================================================
# DOCTOR SELF-SERVICE
# ============================================================================


@router.get("/profile", response_model=DoctorResponse)
async def get_profile(
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.get_profile(doctor)


@router.put("/profile", response_model=DoctorResponse)
async def update_profile(
    data: DoctorUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.update_profile(doctor, data)


@router.post("/toggle-availability")
async def toggle_availability(
    data: Optional[ToggleAvailabilityRequest] = None,
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.toggle_availability(doctor, data.available if data else None)


@router.get("/availability-slots", response_model=list[AvailabilitySlotResponse])
async def get_availability_slots(
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.get_slots(doctor)


@router.post("/availability-slots", response_model=list[AvailabilitySlotResponse])
async def replace_availability_slots(
    data: AvailabilitySlotsReplace,
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    """Replace the doctor's whole weekly schedule"""
    return service.replace_slots(doctor, data)


@router.get("/appointments", response_model=list[AppointmentResponse])
async def doctor_appointments(
    status: Optional[str] = Query(None),
    doctor: Doctor = Depends(get_current_doctor),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.list_appointments(doctor, status)
