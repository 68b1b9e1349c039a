import json
import os
from types import SimpleNamespace

# Configure the app for an in-memory database before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-pytest-only"
os.environ["RESEND_API_KEY"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient

from cnvidas import rate_limiter
from cnvidas.database import Base, SessionLocal, engine, get_db
from cnvidas.domain.billing.repository import BillingRepository
from cnvidas.domain.billing.stripe_service import get_stripe_service
from cnvidas.domain.telemedicine.daily_service import VideoProviderError, get_daily_service, room_url, sanitize_room_name
from cnvidas.main import app
from cnvidas.models import Doctor, Partner, User
from cnvidas.security_utils import create_access_token, hash_password

PASSWORD = "Senha@Forte123"
PASSWORD_HASH = hash_password(PASSWORD)
VALID_CPF = "52998224725"


class FakeVideoService:
    """Stands in for Daily.co: rooms always exist, tokens are predictable"""

    def __init__(self):
        self.rooms = []
        self.fail_tokens = False

    def is_available(self) -> bool:
        return True

    async def ensure_room(self, name, expiry_minutes=120):
        room = sanitize_room_name(name)
        self.rooms.append(room)
        return {"id": f"id-{room}", "name": room, "url": room_url(room), "created": True}

    async def create_meeting_token(self, room_name, user_id, user_name, is_owner=False, expiry_minutes=120):
        if self.fail_tokens:
            raise VideoProviderError("Daily.co unavailable")
        return f"token-{room_name}-{user_id}"


class FakeStripeService:
    """In-memory PaymentIntents with the same surface as StripePaymentService"""

    currency = "brl"

    def __init__(self):
        self.intents = {}
        self.captured = []
        self.cancelled = []

    def is_available(self) -> bool:
        return True

    async def ensure_customer(self, user):
        return user.stripe_customer_id or f"cus_{user.id}"

    async def create_payment_intent(self, amount, metadata, customer_id=None, capture_method="automatic", description=None):
        intent_id = f"pi_{len(self.intents) + 1}"
        status = "requires_capture" if capture_method == "manual" else "requires_payment_method"
        intent = SimpleNamespace(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            amount=amount,
            status=status,
            metadata={key: str(value) for key, value in metadata.items()},
        )
        self.intents[intent_id] = intent
        return intent

    async def retrieve_payment_intent(self, payment_intent_id):
        return self.intents[payment_intent_id]

    async def capture_payment_intent(self, payment_intent_id):
        self.captured.append(payment_intent_id)
        self.intents[payment_intent_id].status = "succeeded"
        return self.intents[payment_intent_id]

    async def cancel_payment_intent(self, payment_intent_id):
        self.cancelled.append(payment_intent_id)
        self.intents[payment_intent_id].status = "canceled"
        return self.intents[payment_intent_id]

    def construct_webhook_event(self, payload, signature):
        if signature != "valid-signature":
            raise ValueError("Invalid signature")
        return json.loads(payload)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    BillingRepository.seed_plans(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def video():
    return FakeVideoService()


@pytest.fixture
def payments():
    return FakeStripeService()


@pytest.fixture
def client(db, video, payments):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_daily_service] = lambda: video
    app.dependency_overrides[get_stripe_service] = lambda: payments
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role="patient", plan="free", allowance=0, full_name=None, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"{role}{n}@example.com",
            username=f"{role}{n}",
            password_hash=PASSWORD_HASH,
            full_name=full_name or f"{role.title()} {n}",
            role=role,
            subscription_plan=plan,
            subscription_status="active" if plan != "free" else "inactive",
            emergency_consultations_left=allowance,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    counter = {"n": 0}

    def _make_doctor(status="approved", emergency=True, fee=20000, full_name=None):
        counter["n"] += 1
        user = make_user(role="doctor", full_name=full_name)
        doctor = Doctor(
            user_id=user.id,
            specialization="Clínica Geral",
            license_number=f"CRM-SP-{1000 + counter['n']}",
            available_for_emergency=emergency,
            consultation_fee=fee,
            status=status,
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_partner(db, make_user):
    def _make_partner(status="approved", city="São Paulo", business_name="Farmácia Vida"):
        user = make_user(role="partner")
        partner = Partner(
            user_id=user.id,
            business_name=business_name,
            business_type="pharmacy",
            city=city,
            state="SP",
            status=status,
        )
        db.add(partner)
        db.commit()
        db.refresh(partner)
        return partner

    return _make_partner


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", full_name="Admin CN Vidas")
