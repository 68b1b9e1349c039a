from datetime import date, timedelta

from cnvidas.domain.notifications.service import create_notification
from cnvidas.models import AuditLog, Notification

from .conftest import auth_headers


def file_claim(client, patient, **overrides):
    payload = {
        "type": "reembolso",
        "occurrence_date": (date.today() - timedelta(days=3)).isoformat(),
        "description": "Consulta particular com ortopedista",
        "amount_requested": 25000,
        "documents": ["https://files.example.com/recibo.pdf"],
    }
    payload.update(overrides)
    return client.post("/api/claims", json=payload, headers=auth_headers(patient))


class TestClaims:
    def test_patient_files_claim_and_admins_are_notified(self, client, db, make_user, admin):
        patient = make_user(plan="basic", allowance=2)

        response = file_claim(client, patient)

        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        assert response.json()["documents"] == ["https://files.example.com/recibo.pdf"]
        notice = db.query(Notification).filter(Notification.user_id == admin.id).one()
        assert notice.type == "claim"

    def test_future_occurrence_is_rejected(self, client, db, make_user):
        response = file_claim(client, make_user(), occurrence_date=(date.today() + timedelta(days=1)).isoformat())
        assert response.status_code == 422

    def test_document_must_be_url(self, client, db, make_user):
        response = file_claim(client, make_user(), documents=["recibo.pdf"])
        assert response.status_code == 422

    def test_description_markup_is_stripped(self, client, db, make_user):
        response = file_claim(client, make_user(), description="<script>alert(1)</script>Dor lombar intensa")
        assert "<script>" not in response.json()["description"]

    def test_claims_are_private(self, client, db, make_user, admin):
        owner = make_user()
        claim_id = file_claim(client, owner).json()["id"]

        assert client.get(f"/api/claims/{claim_id}", headers=auth_headers(owner)).status_code == 200
        assert client.get(f"/api/claims/{claim_id}", headers=auth_headers(make_user())).status_code == 403
        assert client.get(f"/api/claims/{claim_id}", headers=auth_headers(admin)).status_code == 403
        assert client.get("/api/claims", headers=auth_headers(make_user())).json() == []


class TestClaimReview:
    def test_admin_approves_claim(self, client, db, make_user, admin):
        patient = make_user()
        claim_id = file_claim(client, patient).json()["id"]

        response = client.put(
            f"/api/admin/claims/{claim_id}/review",
            json={"status": "approved", "amount_approved": 20000, "review_notes": "Documentação ok"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert response.json()["reviewed_by"] == admin.id
        assert db.query(Notification).filter(Notification.user_id == patient.id).count() == 1
        assert db.query(AuditLog).filter(AuditLog.action == "claim_reviewed").count() == 1

    def test_approval_requires_amount(self, client, db, make_user, admin):
        claim_id = file_claim(client, make_user()).json()["id"]
        response = client.put(
            f"/api/admin/claims/{claim_id}/review", json={"status": "approved"}, headers=auth_headers(admin)
        )
        assert response.status_code == 422

    def test_approved_amount_is_capped(self, client, db, make_user, admin):
        claim_id = file_claim(client, make_user()).json()["id"]
        response = client.put(
            f"/api/admin/claims/{claim_id}/review",
            json={"status": "approved", "amount_approved": 30000},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400

    def test_claim_is_reviewed_once(self, client, db, make_user, admin):
        claim_id = file_claim(client, make_user()).json()["id"]
        url = f"/api/admin/claims/{claim_id}/review"

        rejected = client.put(url, json={"status": "rejected"}, headers=auth_headers(admin))
        again = client.put(url, json={"status": "approved", "amount_approved": 1}, headers=auth_headers(admin))

        assert rejected.json()["amount_approved"] is None
        assert again.status_code == 409

    def test_admin_listing_filters_by_status(self, client, db, make_user, admin):
        patient = make_user(full_name="Paciente Sinistro")
        file_claim(client, patient)
        reviewed = file_claim(client, patient).json()["id"]
        client.put(f"/api/admin/claims/{reviewed}/review", json={"status": "rejected"}, headers=auth_headers(admin))

        pending = client.get("/api/admin/claims", params={"status": "pending"}, headers=auth_headers(admin)).json()

        assert len(pending) == 1
        assert pending[0]["user_name"] == "Paciente Sinistro"

    def test_patients_cannot_review(self, client, db, make_user):
        patient = make_user()
        claim_id = file_claim(client, patient).json()["id"]
        response = client.put(
            f"/api/admin/claims/{claim_id}/review", json={"status": "rejected"}, headers=auth_headers(patient)
        )
        assert response.status_code == 403


class TestNotifications:
    def seed(self, db, user, count):
        for n in range(count):
            create_notification(db, user_id=user.id, title=f"Aviso {n}", message="Mensagem", type="system")
        db.commit()

    def test_inbox_and_unread_count(self, client, db, make_user):
        user = make_user()
        self.seed(db, user, 3)
        self.seed(db, make_user(), 2)

        inbox = client.get("/api/notifications", headers=auth_headers(user)).json()
        count = client.get("/api/notifications/unread-count", headers=auth_headers(user)).json()

        assert [n["title"] for n in inbox] == ["Aviso 2", "Aviso 1", "Aviso 0"]
        assert count == {"count": 3}

    def test_mark_one_and_all_read(self, client, db, make_user):
        user = make_user()
        self.seed(db, user, 3)
        first_id = client.get("/api/notifications", headers=auth_headers(user)).json()[0]["id"]

        one = client.put(f"/api/notifications/{first_id}/read", headers=auth_headers(user))
        unread = client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers(user)).json()
        rest = client.put("/api/notifications/read-all", headers=auth_headers(user))

        assert one.json()["is_read"] is True
        assert len(unread) == 2
        assert rest.json() == {"updated": 2}
        assert client.get("/api/notifications/unread-count", headers=auth_headers(user)).json() == {"count": 0}

    def test_cannot_read_someone_elses_notification(self, client, db, make_user):
        owner = make_user()
        self.seed(db, owner, 1)
        notification_id = db.query(Notification).filter(Notification.user_id == owner.id).one().id

        response = client.put(f"/api/notifications/{notification_id}/read", headers=auth_headers(make_user()))

        assert response.status_code == 404
