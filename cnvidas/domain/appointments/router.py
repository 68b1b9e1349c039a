"""Appointment router - regular consultation endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ..billing.stripe_service import StripePaymentService, get_stripe_service
from ..telemedicine.daily_service import DailyService, get_daily_service
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentUpdate
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


class CompleteRequest(BaseModel):
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


def get_appointment_service(
    db: Session = Depends(get_db),
    payments: StripePaymentService = Depends(get_stripe_service),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, payments)


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(require_roles("patient")),
    service: AppointmentService = Depends(get_appointment_service),
    video: DailyService = Depends(get_daily_service),
):
    """Book a consultation with an approved doctor"""
    appointment = service.create_appointment(data, current_user)
    if appointment.telemed_room_name:
        await video.ensure_room(appointment.telemed_room_name, expiry_minutes=24 * 60)
    return appointment


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Get the caller's appointments as patient or as doctor"""
    return service.list_appointments(current_user, status)


@router.get("/upcoming", response_model=list[AppointmentResponse])
async def upcoming_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_upcoming(current_user)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reschedule a scheduled appointment"""
    return service.update_appointment(appointment_id, data, current_user)


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_appointment(
    appointment_id: int,
    current_user: User = Depends(require_roles("doctor")),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.start_appointment(appointment_id, current_user)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    data: Optional[CompleteRequest] = None,
    current_user: User = Depends(require_roles("doctor")),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.complete_appointment(appointment_id, current_user, data.notes if data else None)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.cancel_appointment(appointment_id, current_user, data.reason if data else None)
