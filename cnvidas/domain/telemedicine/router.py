"""Telemedicine router - video rooms and access tokens"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ..appointments.lifecycle import is_terminal
from ..appointments.service import get_appointment_for_participant
from .agora_token import generate_channel_token, normalize_uid
from .daily_service import DailyService, VideoProviderError, get_daily_service, sanitize_room_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telemedicine", tags=["Telemedicine"])


class RoomRequest(BaseModel):
    room_name: str = Field(..., min_length=1, max_length=128)
    expiry_minutes: int = Field(120, ge=5, le=24 * 60)


class TokenRequest(BaseModel):
    appointment_id: int


class AgoraTokenRequest(BaseModel):
    appointment_id: int
    uid: Optional[Union[int, str]] = None


@router.post("/rooms")
async def create_room(
    data: RoomRequest,
    current_user: User = Depends(require_roles("doctor", "admin")),
    video: DailyService = Depends(get_daily_service),
):
    """Create (or reuse) a Daily.co room"""
    return await video.ensure_room(data.room_name, data.expiry_minutes)


@router.post("/token")
async def create_meeting_token(
    data: TokenRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    video: DailyService = Depends(get_daily_service),
):
    """Daily.co meeting token for a participant of the appointment"""
    appointment = get_appointment_for_participant(db, data.appointment_id, current_user)
    if is_terminal(appointment.status):
        raise HTTPException(status_code=409, detail=f"Appointment is {appointment.status}")

    if not appointment.telemed_room_name:
        appointment.telemed_room_name = sanitize_room_name(f"appointment-{appointment.id}")
        appointment.telemed_provider = appointment.telemed_provider or "daily"

    room = await video.ensure_room(appointment.telemed_room_name)
    if appointment.telemed_link != room["url"]:
        appointment.telemed_link = room["url"]
    db.commit()

    is_owner = current_user.role == "doctor"
    try:
        token = await video.create_meeting_token(
            appointment.telemed_room_name,
            user_id=str(current_user.id),
            user_name=current_user.full_name,
            is_owner=is_owner,
        )
    except VideoProviderError as e:
        logger.error(f"❌ Failed to create meeting token for appointment {appointment.id}: {e}")
        raise HTTPException(status_code=502, detail="Video provider unavailable") from e

    return {"token": token, "room_name": appointment.telemed_room_name, "room_url": room["url"], "is_owner": is_owner}


@router.post("/agora-token")
async def create_agora_token(
    data: AgoraTokenRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Agora RTC token (24h) for a participant of the appointment"""
    appointment = get_appointment_for_participant(db, data.appointment_id, current_user)
    channel_name = appointment.telemed_room_name or sanitize_room_name(f"appointment-{appointment.id}")
    uid = normalize_uid(data.uid if data.uid is not None else current_user.id)

    try:
        token = generate_channel_token(channel_name, uid)
    except ValueError as e:
        logger.error(f"❌ Agora token generation failed: {e}")
        raise HTTPException(status_code=503, detail="Agora is not configured") from e

    return {"token": token, "channel_name": channel_name, "uid": uid}
