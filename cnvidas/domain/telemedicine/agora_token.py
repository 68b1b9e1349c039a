"""
Agora RTC access token (version 006) builder.

Token layout:
    "006." + b64(signature) + "." + b64(app_id) + "." + b64(channel)
           + "." + b64(uid) + "." + b64(message)

The signature is HMAC-SHA256 keyed with the app certificate over
app_id + channel + uid + message, where message is the compact JSON
{"salt": "<n>", "ts": <issued_at>, "privileges": {"<privilege>": <expire_ts>}}.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Optional, Union

from ...config import AGORA_APP_CERTIFICATE, AGORA_APP_ID

VERSION = "006"

# Privileges
JOIN_CHANNEL = 1
PUBLISH_AUDIO = 2
PUBLISH_VIDEO = 4
PUBLISH_DATA = 8

# Roles
PUBLISHER = 1
SUBSCRIBER = 2

DEFAULT_PRIVILEGE_SECONDS = 24 * 60 * 60


def _b64(value: Union[str, bytes]) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(value).decode("ascii")


def build_privileges(role: int, expire_ts: int) -> dict[str, int]:
    """Publishers get every privilege, subscribers may only join"""
    privileges = {str(JOIN_CHANNEL): expire_ts}
    if role == PUBLISHER:
        for privilege in (PUBLISH_AUDIO, PUBLISH_VIDEO, PUBLISH_DATA):
            privileges[str(privilege)] = expire_ts
    return privileges


def sign(app_id: str, app_certificate: str, channel_name: str, uid: Union[str, int], message: str) -> bytes:
    content = f"{app_id}{channel_name}{uid}{message}".encode("utf-8")
    return hmac.new(app_certificate.encode("utf-8"), content, hashlib.sha256).digest()


def build_rtc_token(
    app_id: str,
    app_certificate: str,
    channel_name: str,
    uid: Union[str, int],
    role: int = PUBLISHER,
    privilege_seconds: int = DEFAULT_PRIVILEGE_SECONDS,
    issued_at: Optional[int] = None,
    salt: Optional[int] = None,
) -> str:
    """
    Build an RTC token for a channel.

    Args:
        app_id: Agora project App ID
        app_certificate: Agora project certificate (HMAC key)
        channel_name: Channel the token grants access to
        uid: Numeric user id (0 lets the client pick any uid)
        role: PUBLISHER or SUBSCRIBER
        privilege_seconds: Lifetime of the granted privileges
        issued_at: Unix timestamp to sign with (defaults to now)
        salt: Random salt (defaults to a random 5-digit value)

    Raises:
        ValueError: If app_id, app_certificate or channel_name is missing
    """
    if not app_id or not app_certificate or not channel_name:
        raise ValueError("app_id, app_certificate and channel_name are required")

    ts = int(time.time()) if issued_at is None else issued_at
    salt = secrets.randbelow(100000) if salt is None else salt

    message = json.dumps(
        {"salt": str(salt), "ts": ts, "privileges": build_privileges(role, ts + privilege_seconds)},
        separators=(",", ":"),
    )
    signature = sign(app_id, app_certificate, channel_name, uid, message)

    return ".".join(
        [VERSION, _b64(signature), _b64(app_id), _b64(channel_name), _b64(str(uid)), _b64(message)]
    )


def normalize_uid(uid: Union[str, int, None]) -> int:
    """Agora SDKs expect a numeric uid; anything else maps to 0 (any uid)"""
    try:
        return int(uid)
    except (TypeError, ValueError):
        return 0


def generate_channel_token(channel_name: str, uid: Union[str, int, None]) -> str:
    """Build a 24h publisher token using the configured Agora project"""
    if not AGORA_APP_ID or not AGORA_APP_CERTIFICATE:
        raise ValueError("AGORA_APP_ID and AGORA_APP_CERTIFICATE must be configured")

    return build_rtc_token(
        AGORA_APP_ID,
        AGORA_APP_CERTIFICATE,
        channel_name,
        normalize_uid(uid),
        role=PUBLISHER,
        privilege_seconds=DEFAULT_PRIVILEGE_SECONDS,
    )
