from cnvidas.models import AuditLog, Notification

from .conftest import auth_headers


class TestStats:
    def test_counts_by_role_plan_and_status(self, client, db, make_user, make_doctor, make_partner, admin):
        make_user(plan="basic", allowance=2)
        make_user(plan="premium")
        make_user()
        make_doctor()
        make_partner()
        client.post("/api/emergency/start", json={}, headers=auth_headers(make_user(plan="premium")))

        stats = client.get("/api/admin/stats", headers=auth_headers(admin)).json()

        assert stats["users_by_role"] == {"patient": 4, "doctor": 1, "partner": 1, "admin": 1}
        assert stats["active_subscriptions_by_plan"] == {"basic": 1, "premium": 2}
        assert stats["appointments_by_status"] == {"waiting": 1}
        assert stats["emergencies_waiting"] == 1
        assert stats["partners"] == 1
        assert stats["pending_claims"] == 0

    def test_stats_are_admin_only(self, client, db, make_doctor):
        assert client.get("/api/admin/stats", headers=auth_headers(make_doctor().user)).status_code == 403


class TestUserModeration:
    def test_list_users_by_role_and_search(self, client, db, make_user, admin):
        make_user(full_name="Joana Prado")
        make_user(full_name="Carlos Reis")
        make_user(role="partner", full_name="Joana Farmácia")
        headers = auth_headers(admin)

        patients = client.get("/api/admin/users", params={"role": "patient"}, headers=headers).json()
        joanas = client.get("/api/admin/users", params={"search": "joana"}, headers=headers).json()

        assert len(patients) == 2
        assert {u["full_name"] for u in joanas} == {"Joana Prado", "Joana Farmácia"}

    def test_deactivate_user_blocks_access(self, client, db, make_user, admin):
        patient = make_user()

        response = client.patch(
            f"/api/admin/users/{patient.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get("/api/users/me", headers=auth_headers(patient)).status_code == 403
        audit = db.query(AuditLog).filter(AuditLog.action == "user_status_changed").one()
        assert audit.details["target_user_id"] == patient.id

    def test_admin_cannot_deactivate_self(self, client, db, admin):
        response = client.patch(
            f"/api/admin/users/{admin.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )
        assert response.status_code == 400

    def test_unknown_user(self, client, db, admin):
        response = client.patch("/api/admin/users/9999/status", json={"is_active": True}, headers=auth_headers(admin))
        assert response.status_code == 404


class TestProfileReview:
    def test_approve_doctor(self, client, db, make_doctor, admin):
        doctor = make_doctor(status="pending", emergency=False)

        response = client.put(
            f"/api/admin/doctors/{doctor.id}/status", json={"status": "approved"}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert db.query(Notification).filter(Notification.user_id == doctor.user_id).count() == 1
        audit = db.query(AuditLog).filter(AuditLog.action == "doctor_status_changed").one()
        assert audit.details == {"doctor_id": doctor.id, "from": "pending", "to": "approved"}

    def test_rejecting_doctor_takes_them_off_duty(self, client, db, make_doctor, admin):
        doctor = make_doctor()

        response = client.put(
            f"/api/admin/doctors/{doctor.id}/status", json={"status": "rejected"}, headers=auth_headers(admin)
        )

        assert response.json()["available_for_emergency"] is False
        assert client.get("/api/doctors/available").json() == []

    def test_invalid_review_status(self, client, db, make_doctor, admin):
        response = client.put(
            f"/api/admin/doctors/{make_doctor().id}/status", json={"status": "banned"}, headers=auth_headers(admin)
        )
        assert response.status_code == 422

    def test_approve_partner_publishes_services(self, client, db, make_partner, admin):
        partner = make_partner(status="pending")
        client.post(
            "/api/partners/services",
            json={"name": "Exame de vista", "category": "optics", "regular_price": 10000, "discount_price": 8000},
            headers=auth_headers(partner.user),
        )
        assert client.get("/api/services").json() == []

        response = client.put(
            f"/api/admin/partners/{partner.id}/status", json={"status": "approved"}, headers=auth_headers(admin)
        )

        assert response.json()["status"] == "approved"
        assert len(client.get("/api/services").json()) == 1
        assert db.query(AuditLog).filter(AuditLog.action == "partner_status_changed").count() == 1


class TestQrAuthLogs:
    def test_logs_name_scanner_and_subject(self, client, db, make_user, make_partner, admin):
        patient = make_user(full_name="Paciente QR")
        partner = make_partner()
        token = client.post("/api/users/generate-qr", headers=auth_headers(patient)).json()["token"]
        client.post("/api/users/verify-qr", json={"token": token}, headers=auth_headers(partner.user))

        logs = client.get("/api/admin/qr-auth-logs", headers=auth_headers(admin)).json()

        assert len(logs) == 1
        assert logs[0]["token_user_name"] == "Paciente QR"
        assert logs[0]["scanner_user_id"] == partner.user_id
        assert logs[0]["success"] is True
