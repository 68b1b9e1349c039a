"""User router - authentication, profile and QR identity endpoints"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...email_service import deliver_safely, send_welcome_email
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    QrGenerateResponse,
    QrVerifyRequest,
    QrVerifyResponse,
    RegisterRequest,
    UserResponse,
    UserUpdate,
)
from .service import UserService

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
users_router = APIRouter(prefix="/users", tags=["Users"])

# Rate limiters
rate_limit_register = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="register")
rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")
rate_limit_qr_verify = create_rate_limiter(limit=30, window_seconds=60, key_prefix="qr_verify")


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


# ============================================================================
# AUTH
# ============================================================================


@auth_router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    service: UserService = Depends(get_user_service),
    _: None = Depends(rate_limit_register),
):
    """Create a patient, doctor or partner account on the free plan"""
    user, token = service.register(data)
    background_tasks.add_task(deliver_safely, send_welcome_email, user.email, user.full_name)
    return {"token": token, "user": user}


@auth_router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    request: Request,
    service: UserService = Depends(get_user_service),
    _: None = Depends(rate_limit_login),
):
    user, token = service.login(data, request)
    return {"token": token, "user": user}


# ============================================================================
# PROFILE
# ============================================================================


@users_router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@users_router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.update_profile(current_user, data)


@users_router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.change_password(current_user, data)


# ============================================================================
# QR IDENTITY
# ============================================================================


@users_router.post("/generate-qr", response_model=QrGenerateResponse)
async def generate_qr(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Single-use identity QR code, valid for a few minutes"""
    return service.generate_qr(current_user)


@users_router.post("/verify-qr", response_model=QrVerifyResponse)
async def verify_qr(
    data: QrVerifyRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    _: None = Depends(rate_limit_qr_verify),
):
    """Partners and admins confirm who presented a QR code"""
    return service.verify_qr(data.token, current_user, request)
