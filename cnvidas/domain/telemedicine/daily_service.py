"""Daily.co service - video room provisioning and meeting tokens"""

import logging
import re
import time
from typing import Any, Optional

import httpx

from ...config import DAILY_API_KEY, DAILY_API_URL, DAILY_DOMAIN

logger = logging.getLogger(__name__)

_INVALID_ROOM_CHARS = re.compile(r"[^a-zA-Z0-9-]")


class VideoProviderError(Exception):
    """Raised when the video provider cannot fulfil a request"""


def sanitize_room_name(name: str) -> str:
    """Replace every character outside [a-zA-Z0-9-] with '-' and lowercase the result"""
    return _INVALID_ROOM_CHARS.sub("-", name).lower()


def room_url(name: str) -> str:
    return f"https://{DAILY_DOMAIN}/{sanitize_room_name(name)}"


class DailyService:
    """Service for Daily.co REST API operations"""

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None, timeout: float = 15.0):
        self.api_key = api_key if api_key is not None else DAILY_API_KEY
        self.api_url = (api_url or DAILY_API_URL).rstrip("/")
        self.timeout = timeout

        if not self.api_key:
            logger.warning("DAILY_API_KEY not set; rooms fall back to static URLs and tokens are unavailable")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def get_room(self, name: str) -> Optional[dict[str, Any]]:
        """Get room details, or None if the room does not exist"""
        if not self.api_key:
            raise VideoProviderError("Daily.co API key not configured")

        room = sanitize_room_name(name)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.api_url}/rooms/{room}", headers=self._headers())

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"❌ Daily.co room lookup failed for {room}: {response.status_code} {response.text}")
            raise VideoProviderError(f"Room lookup failed with status {response.status_code}")
        return response.json()

    async def create_room(self, name: str, expiry_minutes: int = 120) -> dict[str, Any]:
        """
        Create a room, or return the existing one with the same name.

        The returned URL is always built from DAILY_DOMAIN so patients and
        doctors get the same link regardless of what the API echoes back.
        """
        room = sanitize_room_name(name)
        if room != name:
            logger.info(f"Room name sanitized: {name!r} -> {room!r}")

        existing = await self.get_room(room)
        if existing:
            logger.info(f"✅ Daily.co room {room} already exists")
            return {"id": existing.get("id"), "name": room, "url": room_url(room), "created": False}

        payload = {
            "name": room,
            "properties": {
                "start_audio_off": False,
                "start_video_off": False,
                "enable_chat": True,
                "enable_screenshare": True,
                "enable_knocking": False,
                "enable_prejoin_ui": False,
                "exp": int(time.time()) + expiry_minutes * 60,
            },
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.api_url}/rooms", headers=self._headers(), json=payload)

        if response.status_code != 200:
            logger.error(f"❌ Daily.co room creation failed for {room}: {response.status_code} {response.text}")
            raise VideoProviderError(f"Room creation failed with status {response.status_code}")

        data = response.json()
        logger.info(f"✅ Daily.co room {room} created")
        return {"id": data.get("id"), "name": room, "url": room_url(room), "created": True}

    async def ensure_room(self, name: str, expiry_minutes: int = 120) -> dict[str, Any]:
        """Create the room if possible; on provider failure return the deterministic URL"""
        try:
            return await self.create_room(name, expiry_minutes)
        except (VideoProviderError, httpx.HTTPError) as e:
            room = sanitize_room_name(name)
            logger.warning(f"⚠️ Daily.co unavailable for room {room}, using fallback URL: {e}")
            return {"id": None, "name": room, "url": room_url(room), "created": False}

    async def create_meeting_token(
        self,
        room_name: str,
        user_id: str,
        user_name: str,
        is_owner: bool = False,
        expiry_minutes: int = 120,
    ) -> str:
        """Create a meeting token for a participant"""
        if not self.api_key:
            raise VideoProviderError("Daily.co API key not configured")

        payload = {
            "properties": {
                "room_name": sanitize_room_name(room_name),
                "user_id": str(user_id),
                "user_name": user_name,
                "is_owner": is_owner,
                "exp": int(time.time()) + expiry_minutes * 60,
            }
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.api_url}/meeting-tokens", headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Daily.co token request failed for {room_name}: {e}")
            raise VideoProviderError("Meeting token request failed") from e

        if response.status_code != 200:
            logger.error(f"❌ Daily.co token creation failed: {response.status_code} {response.text}")
            raise VideoProviderError(f"Meeting token creation failed with status {response.status_code}")

        token = response.json().get("token")
        if not token:
            raise VideoProviderError("Daily.co returned no token")
        return token


daily_service = DailyService()


def get_daily_service() -> DailyService:
    """Dependency injection for DailyService"""
    return daily_service
