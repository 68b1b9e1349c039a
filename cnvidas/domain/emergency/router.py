"""Emergency router - waiting room, claim and case lifecycle endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_doctor, get_current_user, require_roles
from ...database import get_db
from ...jobs import enqueue_job
from ...models import Doctor, User
from ..billing.plan_benefits import has_unlimited_emergencies
from ..telemedicine.daily_service import DailyService, VideoProviderError, get_daily_service
from .schemas import (
    EmergencyAcceptResponse,
    EmergencyCaseResponse,
    EmergencyCompleteRequest,
    EmergencyStartRequest,
    EmergencyStartResponse,
    EmergencyStatusResponse,
    MeetingTokenResponse,
    WaitingCaseResponse,
)
from .service import EmergencyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emergency", tags=["Emergency"])


def get_emergency_service(
    db: Session = Depends(get_db),
    video: DailyService = Depends(get_daily_service),
) -> EmergencyService:
    """Dependency injection for EmergencyService"""
    return EmergencyService(db, video)


# ============================================================================
# PATIENT
# ============================================================================


@router.post("/start", response_model=EmergencyStartResponse, status_code=201)
async def start_emergency(
    data: EmergencyStartRequest,
    current_user: User = Depends(require_roles("patient")),
    service: EmergencyService = Depends(get_emergency_service),
):
    """Open an emergency case in the waiting room"""
    appointment = service.create_case(current_user, data.preferred_doctor_id, data.notes)
    room_url = await service.provision_room(appointment)

    # Doctor alert emails run in the worker; a queue outage never fails the request
    await enqueue_job("send_emergency_alert_emails_task", appointment.id)

    return {
        "appointment": appointment,
        "room_url": room_url,
        "emergency_consultations_left": (
            None if has_unlimited_emergencies(current_user.subscription_plan) else current_user.emergency_consultations_left
        ),
    }


@router.get("/latest", response_model=EmergencyCaseResponse)
async def latest_emergency(
    current_user: User = Depends(require_roles("patient")),
    service: EmergencyService = Depends(get_emergency_service),
):
    return service.get_latest(current_user)


# ============================================================================
# DOCTOR
# ============================================================================


@router.get("/waiting", response_model=list[WaitingCaseResponse])
async def waiting_room(
    doctor: Doctor = Depends(get_current_doctor),
    service: EmergencyService = Depends(get_emergency_service),
):
    """Unclaimed emergency cases, oldest first"""
    return service.list_waiting()


@router.post("/{appointment_id}/accept", response_model=EmergencyAcceptResponse)
async def accept_emergency(
    appointment_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    service: EmergencyService = Depends(get_emergency_service),
):
    """Claim a waiting case. Only one doctor can win; repeating the call is safe"""
    appointment = service.accept(appointment_id, doctor)
    room_url = await service.provision_room(appointment)

    token = None
    try:
        token = await service.video.create_meeting_token(
            appointment.telemed_room_name,
            user_id=str(doctor.user_id),
            user_name=doctor.user.full_name,
            is_owner=True,
        )
    except VideoProviderError as e:
        # The claim is already committed; the doctor can fetch a token from /token
        logger.warning(f"⚠️ Meeting token unavailable for emergency {appointment_id}: {e}")

    return {"appointment": appointment, "room_url": room_url, "token": token}


# ============================================================================
# PARTICIPANTS
# ============================================================================


@router.post("/{appointment_id}/token", response_model=MeetingTokenResponse)
async def emergency_token(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: EmergencyService = Depends(get_emergency_service),
):
    try:
        return await service.create_join_token(appointment_id, current_user)
    except VideoProviderError as e:
        logger.error(f"❌ Failed to create meeting token for emergency {appointment_id}: {e}")
        raise HTTPException(status_code=502, detail="Video provider unavailable") from e


@router.post("/{appointment_id}/complete", response_model=EmergencyCaseResponse)
async def complete_emergency(
    appointment_id: int,
    data: Optional[EmergencyCompleteRequest] = None,
    current_user: User = Depends(get_current_user),
    service: EmergencyService = Depends(get_emergency_service),
):
    data = data or EmergencyCompleteRequest()
    return service.complete(appointment_id, current_user, data.notes, data.duration)


@router.post("/{appointment_id}/cancel", response_model=EmergencyCaseResponse)
async def cancel_emergency(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: EmergencyService = Depends(get_emergency_service),
):
    return service.cancel(appointment_id, current_user)


@router.get("/{appointment_id}/status", response_model=EmergencyStatusResponse)
async def emergency_status(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: EmergencyService = Depends(get_emergency_service),
):
    return service.get_status(appointment_id, current_user)
