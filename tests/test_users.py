from datetime import datetime, timedelta

from cnvidas.models import AuditLog, Doctor, Partner, QrAuthLog, QrToken, User

from .conftest import PASSWORD, VALID_CPF, auth_headers


def register(client, **overrides):
    payload = {
        "email": "Maria@Example.com",
        "username": "maria.souza",
        "password": PASSWORD,
        "full_name": "Maria Souza",
        "cpf": "529.982.247-25",
        "phone": "(11) 98765-4321",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


class TestRegistration:
    def test_patient_registers_on_free_plan(self, client, db):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["token"].count(".") == 2
        assert body["user"]["email"] == "maria@example.com"
        assert body["user"]["cpf"] == VALID_CPF
        assert body["user"]["role"] == "patient"
        assert body["user"]["subscription_plan"] == "free"
        assert body["user"]["emergency_consultations_left"] == 0

    def test_doctor_registration_creates_pending_profile(self, client, db):
        response = register(
            client, role="doctor", specialization="Cardiologia", license_number="CRM-SP-123456"
        )

        assert response.status_code == 201
        doctor = db.query(Doctor).one()
        assert doctor.status == "pending"
        assert doctor.specialization == "Cardiologia"

    def test_doctor_registration_requires_license(self, client, db):
        response = register(client, role="doctor", specialization="Cardiologia")
        assert response.status_code == 422

    def test_partner_registration_creates_pending_profile(self, client, db):
        response = register(client, role="partner", business_name="Ótica Visão", business_type="optics")

        assert response.status_code == 201
        assert db.query(Partner).one().status == "pending"

    def test_admin_role_cannot_be_self_assigned(self, client, db):
        assert register(client, role="admin").status_code == 422

    def test_invalid_cpf_is_rejected(self, client, db):
        assert register(client, cpf="123.456.789-00").status_code == 422

    def test_weak_password_is_rejected(self, client, db):
        response = register(client, password="abcdefgh")
        assert response.status_code == 400
        assert db.query(User).count() == 0

    def test_duplicate_email_conflicts(self, client, db):
        register(client)
        response = register(client, username="outra.maria", cpf=None)
        assert response.status_code == 409


class TestLogin:
    def test_login_with_email_or_username(self, client, db):
        register(client)

        by_email = client.post("/api/auth/login", json={"email": "maria@example.com", "password": PASSWORD})
        by_username = client.post("/api/auth/login", json={"username": "maria.souza", "password": PASSWORD})

        assert by_email.status_code == 200
        assert by_username.status_code == 200
        assert by_email.json()["user"]["last_login"] is not None
        assert db.query(AuditLog).filter(AuditLog.action == "login").count() == 2

    def test_wrong_password_is_unauthorized(self, client, db):
        register(client)
        response = client.post("/api/auth/login", json={"email": "maria@example.com", "password": "Errada@123"})
        assert response.status_code == 401

    def test_deactivated_account_cannot_login(self, client, db, make_user):
        user = make_user(is_active=False)
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 403

    def test_login_is_rate_limited(self, client, db):
        for _ in range(10):
            client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert response.status_code == 429


class TestProfile:
    def test_me_requires_token(self, client, db):
        assert client.get("/api/users/me").status_code == 401
        assert client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    def test_update_profile(self, client, db, make_user):
        user = make_user()
        response = client.put(
            "/api/users/me",
            json={"city": "Campinas", "state": "sp", "zipcode": "13010-000"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        assert response.json()["state"] == "SP"
        assert response.json()["zipcode"] == "13010000"

    def test_change_password(self, client, db, make_user):
        user = make_user()

        wrong = client.post(
            "/api/users/change-password",
            json={"current_password": "Errada@123", "new_password": "Nova@Senha456"},
            headers=auth_headers(user),
        )
        changed = client.post(
            "/api/users/change-password",
            json={"current_password": PASSWORD, "new_password": "Nova@Senha456"},
            headers=auth_headers(user),
        )

        assert wrong.status_code == 400
        assert changed.status_code == 200
        login = client.post("/api/auth/login", json={"email": user.email, "password": "Nova@Senha456"})
        assert login.status_code == 200


class TestQrIdentity:
    def test_partner_verifies_patient_qr_once(self, client, db, make_user, make_partner):
        patient = make_user(plan="basic", allowance=2)
        partner = make_partner()

        generated = client.post("/api/users/generate-qr", headers=auth_headers(patient))
        assert generated.status_code == 200
        assert generated.json()["qr_code"].startswith("data:image/png;base64,")
        token = generated.json()["token"]

        first = client.post("/api/users/verify-qr", json={"token": token}, headers=auth_headers(partner.user))
        second = client.post("/api/users/verify-qr", json={"token": token}, headers=auth_headers(partner.user))

        assert first.status_code == 200
        assert first.json()["user"]["id"] == patient.id
        assert first.json()["user"]["subscription_plan"] == "basic"
        assert second.status_code == 401
        assert [log.success for log in db.query(QrAuthLog).order_by(QrAuthLog.id).all()] == [True, False]

    def test_patient_cannot_scan(self, client, db, make_user):
        patient = make_user()
        other = make_user()
        token = client.post("/api/users/generate-qr", headers=auth_headers(other)).json()["token"]

        response = client.post("/api/users/verify-qr", json={"token": token}, headers=auth_headers(patient))

        assert response.status_code == 403

    def test_expired_token_is_rejected(self, client, db, make_user, admin):
        patient = make_user()
        db.add(QrToken(user_id=patient.id, token="a" * 64, expires_at=datetime.utcnow() - timedelta(minutes=1)))
        db.commit()

        response = client.post("/api/users/verify-qr", json={"token": "a" * 64}, headers=auth_headers(admin))

        assert response.status_code == 401

    def test_unknown_token_is_rejected_without_log(self, client, db, admin):
        response = client.post("/api/users/verify-qr", json={"token": "b" * 64}, headers=auth_headers(admin))

        assert response.status_code == 401
        assert db.query(QrAuthLog).count() == 0

    def test_partner_qr_is_not_an_identity(self, client, db, make_partner, admin):
        partner = make_partner()
        token = client.post("/api/users/generate-qr", headers=auth_headers(partner.user)).json()["token"]

        response = client.post("/api/users/verify-qr", json={"token": token}, headers=auth_headers(admin))

        assert response.status_code == 403
