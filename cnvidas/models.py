from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text

from .database import Base

USER_ROLES = ("patient", "doctor", "partner", "admin")
PLAN_NAMES = ("free", "basic", "premium", "ultra", "basic_family", "premium_family", "ultra_family")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), default="patient", nullable=False)  # patient, doctor, partner, admin
    cpf = Column(String(11), unique=True, nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zipcode = Column(String(8), nullable=True)
    birth_date = Column(Date, nullable=True)
    profile_image = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    status = Column(String(50), default="active", nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime, nullable=True)
    # Stripe identifiers
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    # Subscription state
    subscription_plan = Column(String(20), default="free", nullable=False)
    subscription_status = Column(String(50), default="inactive", nullable=True)  # active, cancelled
    subscription_plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True)
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)
    last_subscription_cancellation = Column(DateTime, nullable=True)
    # Emergency consultations remaining on counted plans (unlimited plans ignore it)
    emergency_consultations_left = Column(Integer, default=0, nullable=False)
    allowance_reset_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="user", uselist=False)
    partner = relationship("Partner", back_populates="user", uselist=False)
    plan = relationship("SubscriptionPlan")


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    specialization = Column(String(255), nullable=False)
    license_number = Column(String(50), unique=True, nullable=False)  # CRM
    biography = Column(Text, nullable=True)
    education = Column(Text, nullable=True)
    experience_years = Column(Integer, nullable=True)
    available_for_emergency = Column(Boolean, default=False, nullable=False)
    consultation_fee = Column(Integer, nullable=True)  # cents
    profile_image = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="doctor")
    availability_slots = relationship(
        "AvailabilitySlot", back_populates="doctor", cascade="all, delete-orphan"
    )


class Partner(Base):
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    business_name = Column(String(255), nullable=False)
    trading_name = Column(String(255), nullable=True)
    business_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    address = Column(String(255), nullable=True)
    zipcode = Column(String(8), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    phone = Column(String(20), nullable=True)
    cnpj = Column(String(14), nullable=True)
    nationwide_service = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="partner")
    services = relationship("PartnerService", back_populates="partner", cascade="all, delete-orphan")


class PartnerService(Base):
    __tablename__ = "partner_services"

    id = Column(Integer, primary_key=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False)
    regular_price = Column(Integer, nullable=False)  # cents
    discount_price = Column(Integer, nullable=False)  # cents
    discount_percentage = Column(Integer, nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    is_active = Column(Boolean, default=True, nullable=False)
    is_national = Column(Boolean, default=False, nullable=False)
    service_image = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    partner = relationship("Partner", back_populates="services")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True, index=True)
    # Patient's hint for emergencies; only used to target notifications
    preferred_doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)
    service_id = Column(Integer, ForeignKey("partner_services.id", ondelete="SET NULL"), nullable=True)
    partner_id = Column(Integer, ForeignKey("partners.id", ondelete="SET NULL"), nullable=True)
    is_emergency = Column(Boolean, default=False, nullable=False)
    # waiting, scheduled, in_progress, completed, cancelled
    status = Column(String(20), default="scheduled", nullable=False)
    type = Column(String(20), nullable=False)  # telemedicine, presential, emergency
    date = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    notes = Column(Text, nullable=True)
    specialization = Column(String(255), nullable=True)
    telemed_provider = Column(String(20), nullable=True)  # daily, agora
    telemed_room_name = Column(String(255), nullable=True)
    telemed_link = Column(String(500), nullable=True)
    payment_intent_id = Column(String(255), nullable=True)
    # pending, authorized, completed, cancelled, included_in_plan
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_amount = Column(Integer, nullable=True)  # cents
    payment_captured_at = Column(DateTime, nullable=True)
    # Emergency allowance taken from the patient when the case was opened
    allowance_reserved = Column(Boolean, default=False, nullable=False)
    cancellation_reason = Column(String(50), nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("User", foreign_keys=[user_id])
    doctor = relationship("Doctor", foreign_keys=[doctor_id])
    preferred_doctor = relationship("Doctor", foreign_keys=[preferred_doctor_id])

    __table_args__ = (
        Index("ix_appointments_emergency_queue", "is_emergency", "status", "created_at"),
        # At most one open emergency per patient
        Index(
            "uq_appointments_active_emergency",
            "user_id",
            unique=True,
            postgresql_where=text("is_emergency AND status IN ('waiting', 'in_progress')"),
            sqlite_where=text("is_emergency AND status IN ('waiting', 'in_progress')"),
        ),
    )


class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(100), nullable=False)
    occurrence_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    documents = Column(JSON, default=list, nullable=True)  # document URLs
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    amount_requested = Column(Integer, nullable=True)  # cents
    amount_approved = Column(Integer, nullable=True)  # cents
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)  # emergency, appointment, claim, subscription, system
    is_read = Column(Boolean, default=False, nullable=False)
    related_id = Column(Integer, nullable=True)
    link = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class QrToken(Base):
    __tablename__ = "qr_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User")


class QrAuthLog(Base):
    __tablename__ = "qr_auth_logs"

    id = Column(Integer, primary_key=True, index=True)
    qr_token_id = Column(Integer, ForeignKey("qr_tokens.id", ondelete="SET NULL"), nullable=True)
    scanner_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    token_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    scanned_at = Column(DateTime, server_default=func.now())
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    success = Column(Boolean, default=True, nullable=False)

    scanner = relationship("User", foreign_keys=[scanner_user_id])
    token_user = relationship("User", foreign_keys=[token_user_id])


class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="availability_slots")


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(20), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)  # cents per month
    emergency_consultations = Column(String(20), nullable=False)  # "unlimited" or a count
    specialist_discount = Column(Integer, nullable=False)  # percent
    insurance_coverage = Column(Boolean, default=False, nullable=False)
    features = Column(JSON, default=list, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(100), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    details = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
