"""
Security utilities: password hashing, access tokens, opaque tokens and text sanitization
"""

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

# Input sanitization
import bleach

# Token generation and validation
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, SECRET_KEY

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def check_password_strength(password: str) -> dict[str, Any]:
    """
    Check password strength and return detailed feedback

    Returns:
        dict with 'score' (0-4), 'strength' (weak/fair/good/strong),
        'feedback' (list of suggestions), and 'is_valid' (bool)
    """
    score = 0
    feedback = []

    if len(password) < 8:
        feedback.append("Password must be at least 8 characters long")
    elif len(password) >= 12:
        score += 2
    else:
        score += 1

    if re.search(r"[a-z]", password):
        score += 1
    else:
        feedback.append("Add lowercase letters")

    if re.search(r"[A-Z]", password):
        score += 1
    else:
        feedback.append("Add uppercase letters")

    if re.search(r"\d", password):
        score += 1
    else:
        feedback.append("Add numbers")

    common_passwords = ["password", "12345678", "password123", "qwerty123", "cnvidas123"]
    if password.lower() in common_passwords:
        score = 0
        feedback.append("This is a commonly used password - choose something unique")

    if score <= 1:
        strength = "weak"
    elif score == 2:
        strength = "fair"
    elif score == 3:
        strength = "good"
    else:
        strength = "strong"

    return {
        "score": min(score, 4),
        "strength": strength,
        "feedback": feedback,
        "is_valid": len(password) >= 8 and score >= 3,
    }


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def create_access_token(user_id: int, email: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token for a user

    Args:
        user_id: Stored as the 'sub' claim
        email: User email
        role: patient, doctor, partner or admin
        expires_delta: Token lifetime (default JWT_EXPIRE_DAYS)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(days=JWT_EXPIRE_DAYS))
    to_encode = {"sub": str(user_id), "email": email, "role": role, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode an access token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def generate_hex_token(num_bytes: int = 32) -> str:
    """Generate a cryptographically secure hex token (2 chars per byte)"""
    return secrets.token_hex(num_bytes)


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip all HTML from free-text input"""
    if value is None:
        return None
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Mask documents such as CPF for logging"""
    if not data or len(data) <= visible_chars:
        return "*" * len(data or "")
    return "*" * (len(data) - visible_chars) + data[-visible_chars:]
